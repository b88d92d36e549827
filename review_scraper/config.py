"""Application configuration using Pydantic BaseSettings."""

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from review_scraper.constants import (
    BODY_WAIT_TIMEOUT_SECONDS,
    BROWSER_PAGE_LOAD_TIMEOUT_SECONDS,
    DEFAULT_CHUNK_SIZE_CHARS,
    DEFAULT_INFERENCE_TEMPERATURE,
    DEFAULT_MAX_PAGES,
    DEFAULT_OVERLAY_CLOSE_SELECTOR,
    DEFAULT_REVIEW_COUNT,
    NEXT_PAGE_SETTLE_SECONDS,
    OVERLAY_SETTLE_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        # Load .env first, then .env.local (for local/test overrides)
        # Later files override earlier ones, so .env.local takes precedence
        env_file=[".env", ".env.local"],
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # LLM Configuration
    # Exported as GOOGLE_API_KEY for pydantic-ai's Google provider
    google_api_key: str = Field(..., description="Google Generative AI API key")
    default_model: str = Field(
        default="google-gla:gemini-1.5-pro",
        description="pydantic-ai model used for selector discovery",
    )
    fallback_model: str | None = Field(
        default=None,
        description="Optional model tried when the default model fails",
    )
    inference_temperature: float = Field(
        default=DEFAULT_INFERENCE_TEMPERATURE,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for selector inference",
    )

    # Environment
    env: Literal["local", "railway", "prod"] = Field(
        default="local", description="Current environment"
    )
    log_level: str = Field(default="INFO", description="Python logging level")

    # Sentry Configuration
    sentry_dsn: str | None = Field(
        default=None, description="Sentry DSN for error tracking (optional)"
    )
    sentry_traces_sample_rate: float = Field(
        default=1.0, description="Sentry traces sample rate (0.0 to 1.0)"
    )

    # Logfire Configuration
    logfire_token: str | None = Field(
        default=None, description="Pydantic Logfire token for observability"
    )

    # ==========================================================================
    # Browser Configuration
    # ==========================================================================

    browser_backend: Literal["playwright", "chromedriver"] = Field(
        default="playwright",
        description="Browser automation backend used for scraping sessions",
    )
    browser_headless: bool = Field(default=True, description="Run browser headless")
    browser_page_load_timeout_seconds: float = Field(
        default=BROWSER_PAGE_LOAD_TIMEOUT_SECONDS,
        description="Timeout for the initial page navigation (seconds)",
    )
    body_wait_timeout_seconds: float = Field(
        default=BODY_WAIT_TIMEOUT_SECONDS,
        description="Timeout waiting for the page body to render (seconds)",
    )
    overlay_close_selector: str | None = Field(
        default=DEFAULT_OVERLAY_CLOSE_SELECTOR,
        description="Close control of a popup to dismiss before scraping (optional)",
    )
    overlay_settle_seconds: float = Field(
        default=OVERLAY_SETTLE_SECONDS,
        description="Delay after dismissing the popup (seconds)",
    )
    next_page_settle_seconds: float = Field(
        default=NEXT_PAGE_SETTLE_SECONDS,
        description="Delay after clicking the next-page control (seconds)",
    )

    # ==========================================================================
    # Scraping Configuration
    # ==========================================================================

    chunk_size_chars: int = Field(
        default=DEFAULT_CHUNK_SIZE_CHARS,
        gt=0,
        description="Maximum characters per HTML chunk sent for inference",
    )
    default_review_count: int = Field(
        default=DEFAULT_REVIEW_COUNT,
        ge=1,
        description="Reviews returned when numReviews is not given",
    )
    max_pages: int = Field(
        default=DEFAULT_MAX_PAGES,
        ge=1,
        description="Maximum review pages visited per scraping session",
    )
    reresolve_on_empty: bool = Field(
        default=False,
        description="Re-derive selectors when a later page yields no reviews",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def export_provider_credentials(settings: Settings) -> None:
    """Expose the API key to pydantic-ai, which reads it from os.environ.

    Settings may come from .env files that pydantic-settings does not export.
    An already-exported variable wins.
    """
    os.environ.setdefault("GOOGLE_API_KEY", settings.google_api_key)
