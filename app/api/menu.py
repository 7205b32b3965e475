"""Menu summarization API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from app.config import settings
from app.schemas.menu import ErrorResponse, MenuResult, SummarizeRequest
from app.services.cache import CacheUnavailableError
from app.services.extraction import ExtractionError
from app.services.menu_service import EmptyContentError, InvalidInputError, MenuService
from menu_scraper.errors import (
    FetchError,
    FetchHTTPError,
    FetchNetworkError,
    FetchTimeoutError,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["menu"])

_ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (400, 404, 422, 500, 502, 504)
}


def get_menu_service(request: Request) -> MenuService:
    """Return the service built by the application lifespan."""
    service = getattr(request.app.state, "menu_service", None)
    if service is None:
        raise HTTPException(
            status_code=500,
            detail={"error": "Menu service not initialized", "details": ""},
        )
    return service


def _error(status_code: int, error: str, exc: Exception) -> HTTPException:
    return HTTPException(
        status_code=status_code, detail={"error": error, "details": str(exc)}
    )


@router.post("/summarize", response_model=MenuResult, responses=_ERROR_RESPONSES)
async def summarize(
    request: SummarizeRequest,
    service: MenuService = Depends(get_menu_service),
) -> MenuResult:
    """
    Summarize the daily menu of a restaurant page.

    Args:
        request: SummarizeRequest with the page URL and optional date
        service: Menu service (injected dependency)

    Returns:
        Structured menu for the requested date

    Raises:
        HTTPException: With an ``error``/``details`` body telling an
            unreachable source apart from an unusable one
    """
    try:
        return await service.resolve(request.url, request.date)

    except InvalidInputError as e:
        raise _error(400, "Invalid request", e)

    except (FetchTimeoutError, FetchNetworkError) as e:
        logger.warning("Could not reach %s: %s", request.url, e)
        raise _error(504, "Gateway timeout: Could not fetch the menu page", e)

    except FetchHTTPError as e:
        logger.warning("Source %s answered HTTP %d", request.url, e.status)
        if e.status == 404:
            raise _error(404, "Page not found: The menu URL could not be accessed", e)
        raise _error(502, "Bad gateway: The menu page returned an error", e)

    except FetchError as e:
        logger.warning("Fetching %s failed: %s", request.url, e)
        raise _error(502, "Bad gateway: Could not fetch the menu page", e)

    except EmptyContentError as e:
        raise _error(422, "No content: The menu page contained no readable text", e)

    except ExtractionError as e:
        logger.error("Menu extraction failed for %s: %s", request.url, e)
        raise _error(502, "LLM service error: Failed to process menu content", e)

    except Exception as e:
        logger.error(f"Error summarizing menu: {e}", exc_info=True)
        raise _error(500, "Internal server error", e)


@router.get("/health")
async def health(service: MenuService = Depends(get_menu_service)) -> dict[str, object]:
    """
    Health check endpoint.

    Returns:
        Status information including the number of cached menus
    """
    try:
        cache_entries: int | None = await service.cache.size()
    except CacheUnavailableError as e:
        logger.warning("Cache unavailable during health check: %s", e)
        cache_entries = None
    return {
        "status": "healthy",
        "environment": settings.app_env,
        "cache_entries": cache_entries,
    }
