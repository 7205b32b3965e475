"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from app.schemas.menu import MenuItem, MenuResult
from app.services.cache import MenuCache
from app.services.menu_service import MenuService
from menu_scraper.pipeline import MenuPageFetcher

MENU_HTML = """
<html>
  <head><title>Restaurace U Lípy</title><script>var x = 1;</script></head>
  <body>
    <nav>Úvod | Kontakt</nav>
    <div id="denni-menu">
      <h2>Denní menu</h2>
      <p>Polévka: Hovězí vývar s nudlemi 45 Kč</p>
      <p>1. Svíčková na smetaně, knedlík 145 Kč</p>
    </div>
  </body>
</html>
"""

PLAIN_HTML = """
<html><body><h1>Vítejte</h1><p>Otevřeno denně od 11 do 22 hodin.</p></body></html>
"""


class FakeClock:
    """Settable replacement for ``datetime.now``."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 10, 22, 12, 0, 0))


@pytest.fixture
async def cache(clock: FakeClock) -> AsyncGenerator[MenuCache, None]:
    """Opened in-memory cache driven by the fake clock."""
    store = MenuCache.in_memory(clock=clock)
    await store.open()
    yield store
    await store.close()


@pytest.fixture
def sample_menu() -> MenuResult:
    return MenuResult(
        restaurant_name="Restaurace U Lípy",
        date="2025-10-22",
        day_of_week="středa",
        menu_items=[
            MenuItem(
                category="polévka",
                name="Hovězí vývar s nudlemi",
                price=45,
                allergens=["1", "3", "9"],
                weight="0.3l",
            )
        ],
        daily_menu=True,
        source_url="https://x.test/menu",
    )


@pytest.fixture
def static_fetch() -> AsyncMock:
    return AsyncMock(return_value=MENU_HTML)


@pytest.fixture
def rendered_fetch() -> AsyncMock:
    return AsyncMock(return_value=MENU_HTML)


@pytest.fixture
def extractor(sample_menu: MenuResult) -> AsyncMock:
    mock = AsyncMock()
    mock.extract.return_value = sample_menu
    return mock


@pytest.fixture
def menu_service(
    cache: MenuCache,
    static_fetch: AsyncMock,
    rendered_fetch: AsyncMock,
    extractor: AsyncMock,
) -> MenuService:
    """Service wired to the in-memory cache and mocked network edges."""
    fetcher = MenuPageFetcher(static=static_fetch, rendered=rendered_fetch)
    return MenuService(cache, fetcher, extractor)


@pytest.fixture
def menu_html() -> str:
    return MENU_HTML


@pytest.fixture
def plain_html() -> str:
    return PLAIN_HTML
