"""Paginated review extraction loop.

PaginationDriver walks a product's review pages with one browser page:

    INITIALIZING -> AWAITING_SELECTORS -> EXTRACTING -> PAGINATING
                                              ^              |
                                              +--------------+--> DONE
    AWAITING_SELECTORS --(no usable selectors)--> FAILED

Selectors are resolved from the first page only and cached for the rest of
the session, unless the configured re-resolution policy asks for a fresh set.
The loop stops once enough reviews are collected, when there is no next-page
control, or when the page budget is spent.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List

import logfire

from review_scraper.constants import (
    BODY_WAIT_TIMEOUT_SECONDS,
    DEFAULT_MAX_PAGES,
    NEXT_PAGE_SETTLE_SECONDS,
    OVERLAY_SETTLE_SECONDS,
)
from review_scraper.models.review_models import ReviewRecord, SelectorSet
from review_scraper.services.browser import BrowserPage
from review_scraper.services.html_chunker import HtmlChunker
from review_scraper.services.review_extractor import ReviewExtractor
from review_scraper.services.selector_resolver import SelectorResolver


class PaginationState(str, Enum):
    """Where a PaginationDriver is in its run."""

    INITIALIZING = "initializing"
    AWAITING_SELECTORS = "awaiting_selectors"
    EXTRACTING = "extracting"
    PAGINATING = "paginating"
    DONE = "done"
    FAILED = "failed"


class FailureReason(str, Enum):
    """Why a run ended in FAILED."""

    SELECTORS_NOT_FOUND = "selectors_not_found"


@dataclass
class PaginationOutcome:
    """Terminal result of a pagination run."""

    state: PaginationState
    reviews: List[ReviewRecord] = field(default_factory=list)
    pages_visited: int = 0
    selectors: SelectorSet | None = None
    failure_reason: FailureReason | None = None


# (page_number, reviews extracted from that page) -> re-derive selectors?
ReresolvePolicy = Callable[[int, List[ReviewRecord]], bool]


def never_reresolve(page_number: int, page_reviews: List[ReviewRecord]) -> bool:
    """Discover once, reuse for the whole session."""
    return False


def reresolve_on_empty(page_number: int, page_reviews: List[ReviewRecord]) -> bool:
    """Re-derive selectors when a page after the first yields nothing."""
    return page_number > 1 and not page_reviews


def finalize_reviews(reviews: List[ReviewRecord], target: int) -> List[ReviewRecord]:
    """Trim to target, then drop reviews missing a reviewer or a body."""
    return [review for review in reviews[:target] if review.is_complete]


class PaginationDriver:
    """Drive selector discovery, extraction and next-page navigation."""

    def __init__(
        self,
        page: BrowserPage,
        resolver: SelectorResolver,
        extractor: ReviewExtractor | None = None,
        chunker: HtmlChunker | None = None,
        *,
        overlay_close_selector: str | None = None,
        body_wait_timeout: float = BODY_WAIT_TIMEOUT_SECONDS,
        overlay_settle_seconds: float = OVERLAY_SETTLE_SECONDS,
        next_page_settle_seconds: float = NEXT_PAGE_SETTLE_SECONDS,
        max_pages: int = DEFAULT_MAX_PAGES,
        reresolve_policy: ReresolvePolicy = never_reresolve,
    ):
        """
        Initialize the driver.

        Args:
            page: Browser page owned by the calling session
            resolver: Selector resolver used on the first page
            extractor: Review extractor (defaults to ReviewExtractor)
            chunker: HTML chunker (defaults to HtmlChunker)
            overlay_close_selector: Close control of a popup to dismiss, if any
            body_wait_timeout: Seconds to wait for <body> after navigation
            overlay_settle_seconds: Delay after dismissing the popup
            next_page_settle_seconds: Delay after clicking the next-page control
            max_pages: Maximum number of review pages to visit
            reresolve_policy: Decides when cached selectors are re-derived
        """
        if max_pages < 1:
            raise ValueError(f"max_pages must be at least 1, got {max_pages}")
        self._page = page
        self._resolver = resolver
        self._extractor = extractor or ReviewExtractor()
        self._chunker = chunker or HtmlChunker()
        self._overlay_close_selector = overlay_close_selector
        self._body_wait_timeout = body_wait_timeout
        self._overlay_settle_seconds = overlay_settle_seconds
        self._next_page_settle_seconds = next_page_settle_seconds
        self._max_pages = max_pages
        self._reresolve_policy = reresolve_policy
        self.state = PaginationState.INITIALIZING

    async def run(self, url: str, target: int) -> PaginationOutcome:
        """
        Collect up to target reviews starting at url.

        Args:
            url: Product page URL
            target: Number of reviews wanted (>= 1)

        Returns:
            PaginationOutcome in state DONE (reviews trimmed and filtered)
            or FAILED (no usable selectors)
        """
        self.state = PaginationState.INITIALIZING
        await self._initialize(url)

        selectors: SelectorSet | None = None
        collected: List[ReviewRecord] = []
        page_number = 0

        while True:
            page_number += 1

            if selectors is None:
                self.state = PaginationState.AWAITING_SELECTORS
                selectors = await self._resolve_selectors()
                if not selectors.is_usable:
                    self.state = PaginationState.FAILED
                    logfire.warning(
                        "Review selectors not found",
                        url=url,
                        missing=selectors.missing_fields,
                    )
                    return PaginationOutcome(
                        state=PaginationState.FAILED,
                        pages_visited=page_number,
                        selectors=selectors,
                        failure_reason=FailureReason.SELECTORS_NOT_FOUND,
                    )
            else:
                logfire.info("Reusing cached selectors", page_number=page_number)

            self.state = PaginationState.EXTRACTING
            page_reviews = await self._extractor.extract(self._page, selectors)

            if self._reresolve_policy(page_number, page_reviews):
                fresh = await self._resolve_selectors()
                if fresh.is_usable and fresh != selectors:
                    logfire.info(
                        "Selectors re-resolved for page",
                        page_number=page_number,
                        selectors=fresh.model_dump(exclude_none=True),
                    )
                    selectors = fresh
                    page_reviews = await self._extractor.extract(self._page, selectors)

            collected.extend(page_reviews)
            logfire.info(
                "Page processed",
                page_number=page_number,
                page_reviews=len(page_reviews),
                total_reviews=len(collected),
                target=target,
            )

            if len(collected) >= target:
                logfire.info("Collected required number of reviews", total=len(collected))
                break

            if page_number >= self._max_pages:
                logfire.warning(
                    "Page budget exhausted before reaching target",
                    max_pages=self._max_pages,
                    total_reviews=len(collected),
                    target=target,
                )
                break

            self.state = PaginationState.PAGINATING
            if not await self._go_to_next_page(selectors):
                break

        self.state = PaginationState.DONE
        return PaginationOutcome(
            state=PaginationState.DONE,
            reviews=finalize_reviews(collected, target),
            pages_visited=page_number,
            selectors=selectors,
        )

    async def _initialize(self, url: str) -> None:
        """Navigate, wait for the body and dismiss the popup if one is shown."""
        logfire.info("Navigating to review page", url=url)
        await self._page.navigate(url)
        await self._page.wait_for_element("body", self._body_wait_timeout)

        if not self._overlay_close_selector:
            return
        close_button = await self._page.find_optional(self._overlay_close_selector)
        if close_button is None:
            logfire.info("No popup found", selector=self._overlay_close_selector)
            return
        logfire.info("Popup found, closing it", selector=self._overlay_close_selector)
        await self._page.click(close_button)
        await self._page.sleep(self._overlay_settle_seconds)

    async def _resolve_selectors(self) -> SelectorSet:
        html = await self._page.current_html()
        chunks = self._chunker.chunk(html)
        review_chunks = self._chunker.filter_likely_review_chunks(chunks)
        logfire.info(
            "Resolving selectors from page snapshot",
            html_length=len(html),
            chunk_count=len(chunks),
            review_chunk_count=len(review_chunks),
        )
        return await self._resolver.resolve(review_chunks)

    async def _go_to_next_page(self, selectors: SelectorSet) -> bool:
        """Click the next-page control; False when there is none."""
        if not selectors.next_page:
            logfire.info("No next-page selector, stopping")
            return False
        next_button = await self._page.find_optional(selectors.next_page)
        if next_button is None:
            logfire.info("No next page found, stopping", selector=selectors.next_page)
            return False
        logfire.info("Loading next page", selector=selectors.next_page)
        await self._page.click(next_button)
        await self._page.sleep(self._next_page_settle_seconds)
        return True
