"""Correlation ID middleware for tracing a scrape request through its logs."""

import uuid
from typing import Callable

import logfire
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Attach a correlation ID to every request.

    The ID is taken from the incoming header when present, otherwise
    generated. It is stored on request.state, set as an attribute of the
    request span so every scrape/inference event nests under it, and echoed
    back in the response header.
    """

    def __init__(self, app: ASGIApp, header_name: str = "X-Correlation-ID"):
        """
        Initialize correlation ID middleware.

        Args:
            app: ASGI application
            header_name: HTTP header carrying the correlation ID
        """
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        with logfire.span(
            "{method} {path}",
            method=request.method,
            path=request.url.path,
            correlation_id=correlation_id,
        ):
            response = await call_next(request)

        response.headers[self.header_name] = correlation_id
        return response
