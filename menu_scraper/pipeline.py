"""Fetch-strategy state machine: static first, rendered browser on demand.

::

    INIT -> STATIC_ATTEMPTED -> ACCEPTED
                             -> ESCALATING -> RENDERED_ATTEMPTED -> ACCEPTED
                                                                 -> FAILED

A static failure escalates straight to the rendered fetch.  Rendered
output is final: it is accepted whatever the classifier thinks of it.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from menu_scraper.classifier import DEFAULT_HEURISTICS, MenuHeuristics, looks_like_menu
from menu_scraper.content import extract_images, extract_text
from menu_scraper.errors import FetchError

logger = logging.getLogger(__name__)

Fetch = Callable[[str], Awaitable[str]]


class FetchState(str, enum.Enum):
    INIT = "init"
    STATIC_ATTEMPTED = "static_attempted"
    ESCALATING = "escalating"
    RENDERED_ATTEMPTED = "rendered_attempted"
    ACCEPTED = "accepted"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchResult:
    """Text and candidate menu images from one fetch."""

    text: str
    images: tuple[str, ...] = field(default_factory=tuple)
    strategy: str = "static"


class MenuPageFetcher:
    """Run the static/rendered strategy for a single URL.

    *static* and *rendered* are async callables ``url -> html`` that
    raise :class:`~menu_scraper.errors.FetchError` on failure.
    """

    def __init__(
        self,
        static: Fetch,
        rendered: Fetch,
        heuristics: MenuHeuristics = DEFAULT_HEURISTICS,
    ) -> None:
        self.static = static
        self.rendered = rendered
        self.heuristics = heuristics

    def _extract(self, html: str, url: str, strategy: str) -> FetchResult:
        return FetchResult(
            text=extract_text(html, self.heuristics),
            images=extract_images(html, url, self.heuristics),
            strategy=strategy,
        )

    async def fetch(self, url: str) -> FetchResult:
        """Return the extracted content of *url*.

        Raises:
            FetchError: If both the static and the rendered fetch failed.
                The static error is raised; the rendered one is chained.
        """
        static_error: FetchError | None = None
        static_result: FetchResult | None = None

        try:
            html = await self.static(url)
        except FetchError as exc:
            _log_transition(url, FetchState.INIT, FetchState.RENDERED_ATTEMPTED)
            logger.info("Static fetch failed for %s (%s), trying browser", url, exc)
            static_error = exc
        else:
            static_result = self._extract(html, url, "static")
            if looks_like_menu(static_result.text, static_result.images, self.heuristics):
                _log_transition(url, FetchState.STATIC_ATTEMPTED, FetchState.ACCEPTED)
                return static_result
            _log_transition(url, FetchState.STATIC_ATTEMPTED, FetchState.ESCALATING)
            logger.info("No menu content in static HTML of %s, trying browser", url)

        try:
            html = await self.rendered(url)
        except FetchError as exc:
            if static_error is None and static_result is not None:
                logger.warning(
                    "Browser fetch failed for %s (%s), keeping static content", url, exc
                )
                return static_result
            _log_transition(url, FetchState.RENDERED_ATTEMPTED, FetchState.FAILED)
            logger.warning("Both fetch strategies failed for %s: %s", url, exc)
            raise static_error from exc

        _log_transition(url, FetchState.RENDERED_ATTEMPTED, FetchState.ACCEPTED)
        return self._extract(html, url, "rendered")


def _log_transition(url: str, source: FetchState, target: FetchState) -> None:
    logger.debug("%s: %s -> %s", url, source.value, target.value)
