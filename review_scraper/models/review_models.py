"""Models for selector discovery and review extraction."""

from dataclasses import dataclass
from typing import List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from review_scraper.constants import MAX_RATING, MIN_RATING

# Fields that must be set before a SelectorSet can drive extraction
REQUIRED_SELECTOR_FIELDS = ("container", "name", "review", "date")

SELECTOR_FIELDS = ("container", "name", "rating", "review", "date", "next_page")


@dataclass(frozen=True)
class HtmlChunk:
    """A fixed-length slice of a page snapshot and its position in the page."""

    index: int
    text: str


class SelectorSet(BaseModel):
    """CSS selectors locating review containers, their fields and the pager.

    Field lookups other than container and next_page are relative to each
    container element. Instances are immutable; merging produces a new set.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    container: str | None = Field(default=None, description="Outer review element")
    name: str | None = Field(default=None, description="Reviewer name")
    rating: str | None = Field(default=None, description="Rating element")
    review: str | None = Field(default=None, description="Review body text")
    date: str | None = Field(default=None, description="Review date")
    next_page: str | None = Field(
        default=None,
        validation_alias=AliasChoices("next_page", "nextPage", "nextPageSelector"),
        serialization_alias="nextPage",
        description="Next-page button or link (document-wide)",
    )

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @property
    def is_usable(self) -> bool:
        """True when every field required for extraction is set."""
        return all(getattr(self, field) for field in REQUIRED_SELECTOR_FIELDS)

    @property
    def missing_fields(self) -> List[str]:
        return [field for field in SELECTOR_FIELDS if not getattr(self, field)]


class ReviewRecord(BaseModel):
    """A single review pulled from a product page."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(default="", description="Same as reviewer (kept for UI compatibility)")
    body: str = Field(default="", description="Review text")
    rating: int = Field(
        default=0,
        ge=MIN_RATING,
        le=MAX_RATING,
        description="Star rating, 0 when unknown",
    )
    reviewer: str = Field(default="", description="Reviewer display name")
    date: str = Field(default="", description="Date as rendered by the site")

    @property
    def is_complete(self) -> bool:
        """Reviews without a reviewer or a body are not returned to callers."""
        return bool(self.reviewer) and bool(self.body)


class ScrapeResult(BaseModel):
    """Successful response of a review scrape."""

    model_config = ConfigDict(populate_by_name=True)

    review_count: int = Field(
        ...,
        ge=0,
        alias="reviews_numReviews",
        description="Number of reviews returned",
    )
    reviews: List[ReviewRecord] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Error payload returned for failed scrapes."""

    error: str = Field(..., description="Human-readable error message")
    status: int = Field(..., description="HTTP status code")
