"""Static page fetcher: a single plain HTTP GET, no JavaScript."""

from __future__ import annotations

import logging

import httpx

from menu_scraper.errors import (
    FetchError,
    FetchHTTPError,
    FetchNetworkError,
    FetchTimeoutError,
)

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)
_REQUEST_TIMEOUT = 10.0


class StaticFetcher:
    """Fetch raw HTML with httpx.

    Pass *client* to share one connection pool across requests; the
    caller then owns its lifecycle.  Without it a short-lived client is
    opened per call.  Failures are classified into the
    :mod:`menu_scraper.errors` types and never retried here.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = _REQUEST_TIMEOUT,
        user_agent: str = USER_AGENT,
    ) -> None:
        self._client = client
        self.timeout = timeout
        self.user_agent = user_agent

    async def fetch(self, url: str) -> str:
        """GET *url* and return the response body as text."""
        if self._client is not None:
            return await self._get(self._client, url)

        async with httpx.AsyncClient(follow_redirects=True) as client:
            return await self._get(client, url)

    async def _get(self, client: httpx.AsyncClient, url: str) -> str:
        try:
            resp = await client.get(
                url,
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
            )
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            raise FetchTimeoutError(
                f"Request timeout: {url} took longer than {self.timeout:g}s"
            ) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise FetchHTTPError(
                status, f"HTTP {status}: {exc.response.reason_phrase}"
            ) from exc
        except httpx.NetworkError as exc:
            raise FetchNetworkError(f"Network error: could not reach {url}") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise FetchError(f"Failed to fetch {url}: {exc}") from exc

        logger.debug("Fetched %s (%d bytes)", url, len(resp.content))
        return resp.text
