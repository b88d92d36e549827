"""Top-level review scraping session.

A ScrapeSession validates the request, owns one browser for its whole
lifetime, runs the PaginationDriver and turns the outcome into either a
ScrapeResult or a ScrapeError carrying the HTTP status to report.
"""

from __future__ import annotations

import time
from typing import Awaitable, Callable, List
from urllib.parse import urlparse

import logfire

from review_scraper.config import Settings, get_settings
from review_scraper.models.review_models import ReviewRecord, ScrapeResult
from review_scraper.services.browser import BrowserPage, launch_browser
from review_scraper.services.html_chunker import HtmlChunker
from review_scraper.services.pagination import (
    PaginationDriver,
    PaginationState,
    never_reresolve,
    reresolve_on_empty,
)
from review_scraper.services.review_extractor import ReviewExtractor
from review_scraper.services.selector_inference import SelectorInferenceClient
from review_scraper.services.selector_resolver import SelectorProposer, SelectorResolver

BrowserFactory = Callable[[], Awaitable[BrowserPage]]


class ScrapeError(Exception):
    """Base exception for scraping failures reported to the client."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientInputError(ScrapeError):
    """Raised when the request is missing a URL or has invalid parameters."""

    status_code = 400


class SelectorsNotFoundError(ScrapeError):
    """Raised when no usable selector set could be discovered."""

    status_code = 404


class ExtractionFaultError(ScrapeError):
    """Raised for any unexpected failure while navigating or extracting."""

    status_code = 500


def validate_url(url: str | None) -> str:
    """Return the stripped URL or raise ClientInputError."""
    if url is None or not url.strip():
        raise ClientInputError("URL parameter is required")
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ClientInputError(f"URL must be an absolute http(s) URL: {url}")
    return url


def parse_review_count(value: int | str | None, default: int) -> int:
    """Return the requested review count, default when absent, or raise ClientInputError."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise ClientInputError(
            f"numReviews must be a positive integer, got {value!r}"
        ) from None
    if count < 1:
        raise ClientInputError(f"numReviews must be a positive integer, got {count}")
    return count


def log_review_details(reviews: List[ReviewRecord]) -> None:
    """Log each returned review, one event per review."""
    for index, review in enumerate(reviews, start=1):
        logfire.info(
            "Review #{index}",
            index=index,
            reviewer=review.reviewer,
            rating="⭐" * review.rating,
            date=review.date,
            body=review.body[:500],
        )
    logfire.info("Total reviews: {total}", total=len(reviews))


class ScrapeSession:
    """Run one review scrape end to end.

    Collaborators can be injected for testing; by default the browser is
    launched from settings and selectors come from SelectorInferenceClient.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        browser_factory: BrowserFactory | None = None,
        proposer: SelectorProposer | None = None,
        chunker: HtmlChunker | None = None,
        extractor: ReviewExtractor | None = None,
    ):
        self._settings = settings or get_settings()
        self._browser_factory = browser_factory or (
            lambda: launch_browser(self._settings)
        )
        self._proposer = proposer
        self._chunker = chunker
        self._extractor = extractor

    def _build_driver(self, page: BrowserPage) -> PaginationDriver:
        settings = self._settings
        proposer = self._proposer or SelectorInferenceClient(settings=settings)
        return PaginationDriver(
            page,
            SelectorResolver(proposer),
            extractor=self._extractor or ReviewExtractor(),
            chunker=self._chunker or HtmlChunker(size=settings.chunk_size_chars),
            overlay_close_selector=settings.overlay_close_selector,
            body_wait_timeout=settings.body_wait_timeout_seconds,
            overlay_settle_seconds=settings.overlay_settle_seconds,
            next_page_settle_seconds=settings.next_page_settle_seconds,
            max_pages=settings.max_pages,
            reresolve_policy=(
                reresolve_on_empty if settings.reresolve_on_empty else never_reresolve
            ),
        )

    async def run(
        self, url: str | None, num_reviews: int | str | None = None
    ) -> ScrapeResult:
        """
        Scrape up to num_reviews reviews from url.

        Args:
            url: Product page URL
            num_reviews: Reviews wanted, as an int or the raw query string
                (defaults to settings.default_review_count)

        Returns:
            ScrapeResult with the retained reviews

        Raises:
            ClientInputError: Missing/invalid URL or review count (no browser work done)
            SelectorsNotFoundError: No usable selector set was discovered
            ExtractionFaultError: Any other failure during the session
        """
        url = validate_url(url)
        target = parse_review_count(num_reviews, self._settings.default_review_count)

        start_time = time.time()
        logfire.info(
            "Scraping reviews",
            url=url,
            target=target,
            backend=self._settings.browser_backend,
        )

        page: BrowserPage | None = None
        try:
            with logfire.span("scrape_session", url=url, target=target):
                page = await self._browser_factory()
                outcome = await self._build_driver(page).run(url, target)
        except ScrapeError:
            raise
        except Exception as e:
            logfire.error(
                "Exception occurred while scraping reviews",
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ExtractionFaultError(
                "An error occurred while processing reviews."
            ) from e
        finally:
            if page is not None:
                await self._close_browser(page)

        if outcome.state is PaginationState.FAILED:
            raise SelectorsNotFoundError("Review selectors not found.")

        log_review_details(outcome.reviews)
        logfire.info(
            "Review scrape completed",
            url=url,
            pages_visited=outcome.pages_visited,
            review_count=len(outcome.reviews),
            total_time_ms=(time.time() - start_time) * 1000,
        )
        return ScrapeResult(review_count=len(outcome.reviews), reviews=outcome.reviews)

    @staticmethod
    async def _close_browser(page: BrowserPage) -> None:
        try:
            await page.close()
        except Exception as e:
            logfire.warning(
                "Browser close failed",
                error=str(e),
                error_type=type(e).__name__,
            )


def get_scrape_session() -> ScrapeSession:
    """Get scrape session instance (FastAPI dependency)."""
    return ScrapeSession()
