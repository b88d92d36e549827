"""Review scraping endpoint.

The handler only deals with HTTP concerns: it reads the query parameters,
delegates the work to a ScrapeSession and maps ScrapeError subclasses to
JSON error payloads carrying their status code.
"""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from review_scraper.models.review_models import ErrorResponse, ScrapeResult
from review_scraper.services.scrape_session import (
    ScrapeError,
    ScrapeSession,
    get_scrape_session,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def error_response(error: ScrapeError) -> JSONResponse:
    """Build the JSON error payload for a failed scrape."""
    payload = ErrorResponse(error=error.message, status=error.status_code)
    return JSONResponse(status_code=error.status_code, content=payload.model_dump())


@router.get(
    "/reviews",
    response_model=ScrapeResult,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def get_reviews(
    url: str | None = Query(default=None, description="Product page URL"),
    # Parsed by ScrapeSession; invalid counts raise ClientInputError
    num_reviews: str | None = Query(
        default=None,
        alias="numReviews",
        description="Number of reviews wanted (default 5)",
    ),
    session: ScrapeSession = Depends(get_scrape_session),
):
    """Scrape reviews from url, following pagination until numReviews are found."""
    try:
        return await session.run(url, num_reviews)
    except ScrapeError as e:
        if e.status_code >= 500:
            logger.error(f"Review scrape failed: {e.message}")
        else:
            logger.warning(f"Review scrape rejected ({e.status_code}): {e.message}")
        return error_response(e)
