"""Health check endpoint."""

from fastapi import APIRouter

from review_scraper.config import get_settings

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness check."""
    settings = get_settings()
    return {
        "status": "ok",
        "environment": settings.env,
        "browser_backend": settings.browser_backend,
    }
