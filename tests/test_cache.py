"""Tests for the (url, date) menu cache."""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from app.services.cache import CacheUnavailableError, MenuCache, expiry_for


def test_expiry_is_following_local_midnight() -> None:
    assert expiry_for("2025-10-22") == datetime(2025, 10, 23, 0, 0, 0)
    assert expiry_for("2025-12-31") == datetime(2026, 1, 1, 0, 0, 0)


async def test_set_then_get_round_trips(cache: MenuCache) -> None:
    payload = '{"restaurant_name": "U Lípy", "price": 145.0, "note": "Polévka ✓"}'
    await cache.set("https://x.test/menu", "2025-10-22", payload)

    assert await cache.get("https://x.test/menu", "2025-10-22") == payload


async def test_get_missing_key(cache: MenuCache) -> None:
    assert await cache.get("https://x.test/menu", "2025-10-22") is None


async def test_distinct_keys_do_not_collide(cache: MenuCache) -> None:
    await cache.set("https://x.test/a", "2025-10-22", "a-22")
    await cache.set("https://x.test/a", "2025-10-23", "a-23")
    await cache.set("https://x.test/b", "2025-10-22", "b-22")

    assert await cache.get("https://x.test/a", "2025-10-22") == "a-22"
    assert await cache.get("https://x.test/a", "2025-10-23") == "a-23"
    assert await cache.get("https://x.test/b", "2025-10-22") == "b-22"
    assert await cache.size() == 3


async def test_second_write_replaces_first(cache: MenuCache) -> None:
    await cache.set("https://x.test/menu", "2025-10-22", "first")
    await cache.set("https://x.test/menu", "2025-10-22", "second")

    assert await cache.size() == 1
    assert await cache.get("https://x.test/menu", "2025-10-22") == "second"


async def test_entry_expires_at_midnight_without_sweep(cache: MenuCache, clock) -> None:
    await cache.set("https://x.test/menu", "2025-10-22", "payload")

    clock.now = datetime(2025, 10, 22, 23, 59, 59)
    assert await cache.get("https://x.test/menu", "2025-10-22") == "payload"

    clock.now = datetime(2025, 10, 23, 0, 0, 1)
    assert await cache.get("https://x.test/menu", "2025-10-22") is None
    # The expired row was deleted by the read
    assert await cache.size() == 0


async def test_entry_expired_exactly_at_midnight(cache: MenuCache, clock) -> None:
    await cache.set("https://x.test/menu", "2025-10-22", "payload")

    clock.now = datetime(2025, 10, 23, 0, 0, 0)
    assert await cache.get("https://x.test/menu", "2025-10-22") is None


async def test_sweep_removes_only_expired_rows(cache: MenuCache, clock) -> None:
    await cache.set("https://x.test/menu", "2025-10-21", "old")
    await cache.set("https://x.test/menu", "2025-10-22", "today")
    await cache.set("https://x.test/menu", "2025-10-23", "tomorrow")

    clock.now = datetime(2025, 10, 23, 8, 0, 0)
    assert await cache.sweep() == 2
    assert await cache.size() == 1
    assert await cache.get("https://x.test/menu", "2025-10-23") == "tomorrow"


async def test_open_sweeps_and_is_idempotent(tmp_path, clock) -> None:
    url = f"sqlite+aiosqlite:///{tmp_path / 'cache' / 'menu.db'}"

    first = MenuCache(url, clock=clock)
    await first.open()
    await first.open()
    await first.set("https://x.test/menu", "2025-10-21", "yesterday")
    await first.set("https://x.test/menu", "2025-10-22", "today")
    await first.close()

    # Survives a restart; schema creation runs again without error
    second = MenuCache(url, clock=clock)
    await second.open()
    try:
        assert await second.size() == 1
        assert await second.get("https://x.test/menu", "2025-10-22") == "today"
    finally:
        await second.close()


async def test_unopened_cache_raises_unavailable() -> None:
    cache = MenuCache.in_memory()

    with pytest.raises(CacheUnavailableError):
        await cache.get("https://x.test/menu", "2025-10-22")
    with pytest.raises(CacheUnavailableError):
        await cache.set("https://x.test/menu", "2025-10-22", "payload")


async def test_sweep_never_raises() -> None:
    cache = MenuCache.in_memory()
    assert await cache.sweep() == 0


async def test_database_errors_become_cache_unavailable(cache: MenuCache, monkeypatch) -> None:
    async def broken_execute(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr("sqlalchemy.ext.asyncio.AsyncSession.execute", broken_execute)

    with pytest.raises(CacheUnavailableError):
        await cache.get("https://x.test/menu", "2025-10-22")
    with pytest.raises(CacheUnavailableError):
        await cache.set("https://x.test/menu", "2025-10-22", "payload")
    assert await cache.sweep() == 0
