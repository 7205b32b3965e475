"""Daily-menu page acquisition.

Fetches a restaurant page (static first, headless browser as fallback),
reduces it to menu text plus candidate menu images, and decides whether
the result looks like a menu.

Usage::

    python -m menu_scraper https://example.com/menu               # Full lookup
    python -m menu_scraper https://example.com/menu --fetch-only  # Fetch + extract only
"""
