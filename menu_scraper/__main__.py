"""Command-line lookup of a restaurant's daily menu.

Usage::

    python -m menu_scraper https://example.com/menu                      # Today's menu (cached)
    python -m menu_scraper https://example.com/menu --date 2025-10-22    # Specific date
    python -m menu_scraper https://example.com/menu --fetch-only         # Text + images, no LLM
    python -m menu_scraper https://example.com/menu --cache-url sqlite+aiosqlite:///:memory:
"""

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from menu_scraper.browser import RenderedFetcher
from menu_scraper.errors import FetchError
from menu_scraper.fetch import StaticFetcher
from menu_scraper.pipeline import MenuPageFetcher

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def fetch_only(url: str, fetcher: MenuPageFetcher) -> int:
    """Run only the static/browser fetch and print what was extracted."""
    try:
        result = await fetcher.fetch(url)
    except FetchError as exc:
        logger.error("Could not fetch %s: %s", url, exc)
        return 1

    print(
        json.dumps(
            {
                "strategy": result.strategy,
                "images": list(result.images),
                "text": result.text,
            },
            indent=2,
            ensure_ascii=False,
        )
    )
    return 0


async def lookup(url: str, date: str | None, cache_url: str | None, fetcher: MenuPageFetcher) -> int:
    """Full lookup through the cache and the LLM, printing the menu as JSON."""
    from openai import AsyncOpenAI

    from app.config import settings
    from app.services.cache import MenuCache
    from app.services.extraction import ExtractionError, MenuExtractor
    from app.services.menu_service import EmptyContentError, InvalidInputError, MenuService

    if not settings.openai_api_key:
        logger.error("OPENAI_API_KEY not set. Set it in .env or use --fetch-only.")
        return 2

    cache = MenuCache(cache_url or settings.cache_database_url)
    await cache.open()
    try:
        extractor = MenuExtractor(
            AsyncOpenAI(api_key=settings.openai_api_key),
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            user_agent=settings.user_agent,
        )
        service = MenuService(cache, fetcher, extractor)
        try:
            menu = await service.resolve(url, date)
        except InvalidInputError as exc:
            logger.error("Invalid input: %s", exc)
            return 2
        except (FetchError, EmptyContentError, ExtractionError) as exc:
            logger.error("Lookup failed: %s", exc)
            return 1
    finally:
        await cache.close()

    print(menu.model_dump_json(indent=2))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Extract a restaurant's daily menu from its web page."
    )
    parser.add_argument("url", help="Restaurant menu page URL.")
    parser.add_argument(
        "--date",
        default=None,
        help="Target date in YYYY-MM-DD format (default: today).",
    )
    parser.add_argument(
        "--fetch-only",
        action="store_true",
        help="Only fetch and extract page text/images; skip the LLM and the cache.",
    )
    parser.add_argument(
        "--cache-url",
        default=None,
        help="SQLAlchemy URL of the menu cache (default: from settings).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Static fetch timeout in seconds (default: 10).",
    )
    args = parser.parse_args()

    if args.fetch_only and args.date:
        parser.error("--date has no effect with --fetch-only")

    fetcher = MenuPageFetcher(
        static=StaticFetcher(timeout=args.timeout).fetch,
        rendered=RenderedFetcher().fetch,
    )
    if args.fetch_only:
        code = asyncio.run(fetch_only(args.url, fetcher))
    else:
        code = asyncio.run(lookup(args.url, args.date, args.cache_url, fetcher))
    sys.exit(code)


if __name__ == "__main__":
    main()
