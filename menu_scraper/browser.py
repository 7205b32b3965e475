"""Rendered page fetcher backed by a headless Chromium (Playwright).

Used as the fallback for menus that only appear after JavaScript runs.
Every call launches its own browser and closes it on all exit paths.
Requires ``playwright install chromium``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Awaitable, Callable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from menu_scraper.errors import (
    FetchError,
    FetchHTTPError,
    FetchNetworkError,
    FetchTimeoutError,
)
from menu_scraper.fetch import USER_AGENT

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

_PW_NAV_TIMEOUT = 20_000  # ms, max time to wait for page load
_PW_CONSENT_TIMEOUT = 2_000  # ms, per consent selector
_PW_SCROLL_PAUSE = 1_000  # ms
_PW_MENU_CLICK_PAUSE = 2_000  # ms
_PW_SETTLE = 2_000  # ms, final wait for late renders

_LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]

# Cookie / consent dialogs seen on Czech and German restaurant sites
_CONSENT_SELECTORS = (
    'button:has-text("Přijmout")',
    'button:has-text("Accept")',
    'button:has-text("Souhlasím")',
    'button:has-text("Akzeptieren")',
    '[id*="cookie"] button',
    '[class*="cookie"] button',
    '[id*="consent"] button',
    '[class*="consent"] button',
)

_MENU_LINK_SELECTOR = 'a[href*="menu"], a[href*="denni"], button:has-text("Menu")'


async def _attempt(step: str, url: str, action: Callable[[], Awaitable[object]]) -> bool:
    """Run a best-effort browser step; report whether it succeeded."""
    try:
        await action()
    except PlaywrightError as exc:
        logger.debug("Skipped %s on %s: %s", step, url, exc)
        return False
    return True


async def _dismiss_consent(page: Page, url: str) -> None:
    for selector in _CONSENT_SELECTORS:

        async def click(selector: str = selector) -> None:
            await page.wait_for_selector(selector, timeout=_PW_CONSENT_TIMEOUT)
            await page.click(selector, timeout=_PW_CONSENT_TIMEOUT)

        await _attempt(f"consent {selector!r}", url, click)


async def _trigger_lazy_load(page: Page) -> None:
    await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
    await page.wait_for_timeout(_PW_SCROLL_PAUSE)
    await page.evaluate("window.scrollTo(0, 0)")
    await page.wait_for_timeout(_PW_SCROLL_PAUSE)


async def _open_menu_link(page: Page) -> None:
    link = await page.query_selector(_MENU_LINK_SELECTOR)
    if link is None:
        return
    await link.click()
    await page.wait_for_timeout(_PW_MENU_CLICK_PAUSE)


def _classify(exc: PlaywrightError, url: str) -> FetchError:
    if isinstance(exc, PlaywrightTimeoutError):
        return FetchTimeoutError(f"Browser timeout loading {url}: {exc.message}")
    if "net::ERR_" in exc.message:
        return FetchNetworkError(f"Network error: could not reach {url} ({exc.message})")
    return FetchError(f"Failed to fetch page with browser: {exc.message}")


async def render_page(page: Page, url: str, *, nav_timeout: int = _PW_NAV_TIMEOUT) -> str:
    """Drive an open *page* through the menu-loading sequence.

    Navigation and the final ``page.content()`` are fatal; consent
    dismissal, the lazy-load scroll and the menu-link click are
    attempted and skipped on failure.
    """
    try:
        response = await page.goto(url, wait_until="networkidle", timeout=nav_timeout)
    except PlaywrightError as exc:
        raise _classify(exc, url) from exc
    if response is not None and response.status >= 400:
        raise FetchHTTPError(response.status, f"HTTP {response.status}: {url}")

    await _dismiss_consent(page, url)
    await _attempt("lazy-load scroll", url, lambda: _trigger_lazy_load(page))
    await _attempt("menu link click", url, lambda: _open_menu_link(page))

    try:
        await page.wait_for_timeout(_PW_SETTLE)
        return await page.content()
    except PlaywrightError as exc:
        raise _classify(exc, url) from exc


class RenderedFetcher:
    """Fetch fully rendered HTML with a fresh headless browser per call."""

    def __init__(
        self,
        *,
        nav_timeout: float = _PW_NAV_TIMEOUT / 1000,
        user_agent: str = USER_AGENT,
    ) -> None:
        self.nav_timeout = nav_timeout
        self.user_agent = user_agent

    async def fetch(self, url: str) -> str:
        """Render *url* and return the serialized DOM."""
        try:
            async with async_playwright() as pw:
                browser = await pw.chromium.launch(headless=True, args=_LAUNCH_ARGS)
                try:
                    page = await browser.new_page(user_agent=self.user_agent)
                    html = await render_page(
                        page, url, nav_timeout=int(self.nav_timeout * 1000)
                    )
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            # launch / new_page / close failures
            raise _classify(exc, url) from exc

        logger.debug("Rendered %s (%d chars)", url, len(html))
        return html
