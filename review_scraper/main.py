"""FastAPI application initialization."""

import os
from contextlib import asynccontextmanager

import logfire
import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration

from review_scraper import __version__
from review_scraper.api import health, reviews
from review_scraper.config import export_provider_credentials, get_settings
from review_scraper.logging_config import settings_summary, setup_logfire
from review_scraper.middleware.correlation_id import CorrelationIDMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    export_provider_credentials(settings)

    setup_logfire(app)

    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=settings.sentry_traces_sample_rate,
            environment=settings.env,
            integrations=[FastApiIntegration()],
        )

    logfire.info(
        "Application startup complete",
        model=settings.default_model,
        environment=settings.env,
        browser_backend=settings.browser_backend,
        settings=settings_summary(settings),
    )

    yield

    logfire.info("Application shutdown complete")


app = FastAPI(
    title="Review Scraper",
    description="Scrape product reviews from arbitrary pages using LLM-discovered selectors",
    version=__version__,
    lifespan=lifespan,
)

# Correlation ID middleware (must be first for request tracing)
app.add_middleware(CorrelationIDMiddleware)

# CORS for the browser front-end consuming /api/reviews
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["health"])
app.include_router(reviews.router, prefix="/api", tags=["reviews"])


@app.get("/")
def root():
    """Root endpoint."""
    settings = get_settings()
    return {
        "message": "Review Scraper API",
        "model": settings.default_model,
        "version": __version__,
    }


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "review_scraper.main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "local",
    )
