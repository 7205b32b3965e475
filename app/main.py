"""FastAPI application factory and configuration."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from openai import AsyncOpenAI

from app.api.menu import router as menu_router
from app.config import settings
from app.services.cache import MenuCache
from app.services.extraction import MenuExtractor
from app.services.menu_service import MenuService
from menu_scraper.browser import RenderedFetcher
from menu_scraper.fetch import StaticFetcher
from menu_scraper.pipeline import MenuPageFetcher

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


async def _sweep_periodically(cache: MenuCache, interval: float) -> None:
    """Drop expired cache rows every *interval* seconds."""
    while True:
        await asyncio.sleep(interval)
        await cache.sweep()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Owns the cache, the shared HTTP client and the sweep task: all are
    created on startup and released on shutdown.
    """
    # Startup
    logger.info("Starting application...")

    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; menu extraction will fail")

    cache = MenuCache(settings.cache_database_url)
    await cache.open()

    http_client = httpx.AsyncClient(
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent},
    )
    fetcher = MenuPageFetcher(
        static=StaticFetcher(
            http_client,
            timeout=settings.static_fetch_timeout,
            user_agent=settings.user_agent,
        ).fetch,
        rendered=RenderedFetcher(
            nav_timeout=settings.render_timeout,
            user_agent=settings.user_agent,
        ).fetch,
    )
    extractor = MenuExtractor(
        AsyncOpenAI(api_key=settings.openai_api_key),
        model=settings.llm_model,
        temperature=settings.llm_temperature,
        http_client=http_client,
        user_agent=settings.user_agent,
    )
    app.state.menu_service = MenuService(cache, fetcher, extractor)

    sweeper: asyncio.Task[None] | None = None
    if settings.cache_sweep_interval > 0:
        sweeper = asyncio.create_task(
            _sweep_periodically(cache, settings.cache_sweep_interval)
        )

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
    await http_client.aclose()
    await cache.close()


# Create FastAPI app
app = FastAPI(
    title="Daily Menu Service",
    description="Turns restaurant web pages into structured daily menus",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
if settings.cors_origins:
    from fastapi.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

# Include routers
app.include_router(menu_router)
