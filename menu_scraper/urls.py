"""URL helpers shared by the fetchers and the cache key."""

from urllib.parse import urlsplit


def normalize_url(url: str) -> str:
    """Drop the ``#fragment`` from *url*.

    Fragments are never sent to the server, so ``/menu#denni-menu`` and
    ``/menu`` are the same page and must share one cache key.  Everything
    before the first ``#`` is kept byte for byte, including an empty
    ``?`` and the case of the scheme and host.
    """
    return url.split("#", 1)[0]


def is_fetchable_url(url: str) -> bool:
    """Check that *url* is an absolute http(s) URL with a host."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)
