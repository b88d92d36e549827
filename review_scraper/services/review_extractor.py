"""Extract review records from a rendered page with a resolved SelectorSet."""

import re
from typing import Any, List

import logfire

from review_scraper.constants import MAX_RATING, MIN_RATING
from review_scraper.models.review_models import ReviewRecord, SelectorSet
from review_scraper.services.browser import BrowserPage

_STAR_RATING_RE = re.compile(r"(\d+)\s*star", re.IGNORECASE)

# One sweep over every container; field lookups are scoped to the container.
EXTRACT_REVIEWS_SCRIPT = """
(selectors) => {
  const textOf = (root, selector) => {
    if (!selector) return '';
    const el = root.querySelector(selector);
    return el && el.textContent ? el.textContent.trim() : '';
  };
  return Array.from(document.querySelectorAll(selectors.container)).map((node) => {
    const ratingEl = selectors.rating ? node.querySelector(selectors.rating) : null;
    return {
      name: textOf(node, selectors.name),
      ratingLabel: ratingEl ? ratingEl.getAttribute('aria-label') : null,
      review: textOf(node, selectors.review),
      date: textOf(node, selectors.date),
    };
  });
}
"""


def parse_rating(label: str | None) -> int:
    """Read a star count such as "4 stars" from an accessible label.

    Returns 0 when there is no label, no "<n> star" pattern, or the number
    is outside the 0-5 range.
    """
    if not label:
        return 0
    match = _STAR_RATING_RE.search(label)
    if not match:
        return 0
    rating = int(match.group(1))
    if rating < MIN_RATING or rating > MAX_RATING:
        return 0
    return rating


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def build_review(row: dict) -> ReviewRecord:
    """Turn one raw row from the page script into a ReviewRecord."""
    reviewer = _text(row.get("name"))
    return ReviewRecord(
        title=reviewer,
        body=_text(row.get("review")),
        rating=parse_rating(row.get("ratingLabel")),
        reviewer=reviewer,
        date=_text(row.get("date")),
    )


class ReviewExtractor:
    """Pull every review on the current page in a single read-only pass."""

    def __init__(self, script: str = EXTRACT_REVIEWS_SCRIPT):
        self._script = script

    async def extract(
        self, page: BrowserPage, selectors: SelectorSet
    ) -> List[ReviewRecord]:
        """
        Extract reviews from page.

        Args:
            page: Live rendered page
            selectors: Resolved selectors (container is required)

        Returns:
            One ReviewRecord per container match, in document order
        """
        if not selectors.container:
            return []

        rows = await page.evaluate(
            self._script,
            {
                "container": selectors.container,
                "name": selectors.name,
                "rating": selectors.rating,
                "review": selectors.review,
                "date": selectors.date,
            },
        )
        reviews = [build_review(row) for row in rows or [] if isinstance(row, dict)]
        logfire.info(
            "Reviews extracted from page",
            container=selectors.container,
            review_count=len(reviews),
        )
        return reviews
