"""Menu lookup: cache, fetch, extract, store.

``MenuService.resolve`` is the one entry point used by the API and the
CLI.  Concurrent lookups for the same (url, date) share one in-flight
task, so a page is fetched and sent to the LLM at most once at a time.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import date
from typing import Awaitable, Protocol, Sequence

from pydantic import ValidationError

from app.schemas.menu import MenuResult
from app.services.cache import CacheUnavailableError, MenuCache
from app.services.extraction import czech_weekday
from menu_scraper.pipeline import FetchResult
from menu_scraper.urls import is_fetchable_url, normalize_url

logger = logging.getLogger(__name__)

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class InvalidInputError(Exception):
    """Raised when the URL or date cannot be used, before any I/O."""

    pass


class EmptyContentError(Exception):
    """Raised when a page was fetched but yielded no text."""

    pass


class PageFetcher(Protocol):
    def fetch(self, url: str) -> Awaitable[FetchResult]: ...


class Extractor(Protocol):
    def extract(
        self,
        text: str,
        images: Sequence[str] | None = None,
        *,
        source_url: str,
        target_date: str,
        day_of_week: str,
    ) -> Awaitable[MenuResult]: ...


def _parse_date(value: str | date | None) -> date:
    if value is None:
        return date.today()
    if isinstance(value, date):
        return value
    if not _ISO_DATE_RE.match(value):
        raise InvalidInputError(f'"date" must be in YYYY-MM-DD format, got {value!r}')
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidInputError(f"Invalid date {value!r}: {exc}") from exc


class MenuService:
    """Resolve a restaurant page + date into a cached :class:`MenuResult`.

    Args:
        cache: An opened menu cache.
        fetcher: Content acquisition (static fetch with browser fallback).
        extractor: Structured extraction capability.
    """

    def __init__(self, cache: MenuCache, fetcher: PageFetcher, extractor: Extractor) -> None:
        self.cache = cache
        self.fetcher = fetcher
        self.extractor = extractor
        self._in_flight: dict[tuple[str, str], asyncio.Task[MenuResult]] = {}

    async def resolve(self, url: str, target_date: str | date | None = None) -> MenuResult:
        """Return the menu of *url* for *target_date* (default: today).

        Raises:
            InvalidInputError: Unusable URL or date.
            FetchError: Neither the static nor the browser fetch worked.
            EmptyContentError: The page had no text.
            ExtractionError: The LLM could not produce a menu.
        """
        if not isinstance(url, str) or not is_fetchable_url(url.strip()):
            raise InvalidInputError(f'"url" must be a valid http(s) URL, got {url!r}')
        day = _parse_date(target_date)
        key = (normalize_url(url.strip()), day.isoformat())

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._resolve_key(key[0], day))
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        else:
            logger.info("Joining in-flight lookup for %s on %s", *key)

        # One cancelled caller must not cancel the lookup for the others
        return await asyncio.shield(task)

    def _forget(self, key: tuple[str, str], task: asyncio.Task[MenuResult]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark the failure as seen even when every waiter was cancelled
            task.exception()

    async def _cached(self, url: str, iso_date: str) -> MenuResult | None:
        try:
            payload = await self.cache.get(url, iso_date)
        except CacheUnavailableError as exc:
            logger.warning("Cache read failed, treating as miss: %s", exc)
            return None
        if payload is None:
            return None
        try:
            return MenuResult.model_validate_json(payload)
        except ValidationError as exc:
            logger.warning("Discarding undecodable cache entry for %s on %s: %s", url, iso_date, exc)
            return None

    async def _store(self, url: str, iso_date: str, menu: MenuResult) -> None:
        try:
            await self.cache.set(url, iso_date, menu.model_dump_json())
        except CacheUnavailableError as exc:
            logger.error("Error writing to cache: %s", exc)

    async def _resolve_key(self, url: str, day: date) -> MenuResult:
        iso_date = day.isoformat()

        cached = await self._cached(url, iso_date)
        if cached is not None:
            logger.info("Cache hit for %s on %s", url, iso_date)
            return cached

        logger.info("Cache miss for %s on %s, fetching …", url, iso_date)
        page = await self.fetcher.fetch(url)
        if not page.text.strip():
            raise EmptyContentError(f"No content extracted from {url}")

        menu = await self.extractor.extract(
            page.text,
            list(page.images) or None,
            source_url=url,
            target_date=iso_date,
            day_of_week=czech_weekday(day),
        )

        await self._store(url, iso_date, menu)
        return menu
