"""Selector discovery and paginated review extraction services."""

from review_scraper.services.html_chunker import HtmlChunker
from review_scraper.services.pagination import PaginationDriver, PaginationState
from review_scraper.services.review_extractor import ReviewExtractor, parse_rating
from review_scraper.services.scrape_session import (
    ClientInputError,
    ExtractionFaultError,
    ScrapeError,
    ScrapeSession,
    SelectorsNotFoundError,
)
from review_scraper.services.selector_inference import SelectorInferenceClient
from review_scraper.services.selector_resolver import SelectorResolver, merge_selectors

__all__ = [
    "HtmlChunker",
    "PaginationDriver",
    "PaginationState",
    "ReviewExtractor",
    "parse_rating",
    "ClientInputError",
    "ExtractionFaultError",
    "ScrapeError",
    "ScrapeSession",
    "SelectorsNotFoundError",
    "SelectorInferenceClient",
    "SelectorResolver",
    "merge_selectors",
]
