"""Centralized logging configuration with Pydantic Logfire integration."""

import logging
from typing import Any

import logfire
from fastapi import FastAPI

from review_scraper.config import Settings, get_settings

_SENSITIVE_KEYS = (
    "token",
    "api_key",
    "secret",
    "password",
    "authorization",
    "dsn",
)


def setup_logfire(app: FastAPI | None = None) -> None:
    """
    Initialize and configure Pydantic Logfire for observability.

    Sets up:
    - FastAPI instrumentation (request/response tracing) when an app is given
    - Pydantic and PydanticAI instrumentation (selector inference calls)
    - Environment-aware stdlib logging format
    """
    settings = get_settings()

    logfire_config: dict[str, Any] = {
        "environment": settings.env,
        "send_to_logfire": "if-token-present",
    }
    if settings.logfire_token:
        logfire_config["token"] = settings.logfire_token

    logfire.configure(**logfire_config)

    if app is not None:
        logfire.instrument_fastapi(app)
    logfire.instrument_pydantic()

    try:
        logfire.instrument_pydantic_ai()
    except AttributeError:
        # Older logfire releases have no pydantic-ai integration
        pass

    log_level = settings.log_level.upper()

    if settings.env == "local":
        logging.basicConfig(
            level=getattr(logging, log_level, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
    else:
        logging.basicConfig(
            level=getattr(logging, log_level, logging.INFO),
            format="%(message)s",  # Logfire handles structured formatting
        )


def mask_pii(value: str | None, mask_char: str = "*") -> str:
    """
    Mask potentially sensitive data in logs.

    Args:
        value: Value to mask
        mask_char: Character to use for masking

    Returns:
        Masked string showing only the first and last 2 characters
    """
    if not value:
        return ""

    if len(value) <= 4:
        return mask_char * len(value)

    return f"{value[:2]}{mask_char * (len(value) - 4)}{value[-2:]}"


def redact_tokens(data: dict[str, Any]) -> dict[str, Any]:
    """
    Redact credentials from log data.

    Any key containing one of the sensitive markers (e.g. google_api_key,
    logfire_token, sentry_dsn) is masked; nested dicts are redacted too.

    Args:
        data: Dictionary that may contain sensitive values

    Returns:
        Copy of data with credentials masked
    """
    redacted = data.copy()
    for key, value in data.items():
        if isinstance(value, dict):
            redacted[key] = redact_tokens(value)
        elif isinstance(value, str) and any(
            marker in key.lower() for marker in _SENSITIVE_KEYS
        ):
            redacted[key] = mask_pii(value)
    return redacted


def settings_summary(settings: Settings) -> dict[str, Any]:
    """Settings as a loggable dict with credentials masked."""
    return redact_tokens(settings.model_dump())
