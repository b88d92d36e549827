"""Split rendered page HTML into bounded chunks for selector inference."""

from typing import Iterable, List

from review_scraper.constants import DEFAULT_CHUNK_SIZE_CHARS, REVIEW_CHUNK_MARKER
from review_scraper.models.review_models import HtmlChunk


class HtmlChunker:
    """Cut HTML into fixed-length windows and keep the ones likely to hold reviews.

    Cuts are plain character offsets with no awareness of tag boundaries, so
    joining the chunks in order always reproduces the original document.
    """

    def __init__(
        self,
        size: int = DEFAULT_CHUNK_SIZE_CHARS,
        marker: str = REVIEW_CHUNK_MARKER,
    ):
        """Initialize the chunker.

        Args:
            size: Default maximum characters per chunk
            marker: Lowercase substring a chunk must contain to be kept by the filter
        """
        if size <= 0:
            raise ValueError(f"Chunk size must be positive, got {size}")
        self._size = size
        self._marker = marker.lower()

    def chunk(self, html: str, size: int | None = None) -> List[HtmlChunk]:
        """Split html into contiguous, non-overlapping windows.

        Args:
            html: Full page markup
            size: Characters per chunk (defaults to the chunker's size)

        Returns:
            Chunks in document order; the last one may be shorter

        Raises:
            ValueError: If size is not positive
        """
        size = self._size if size is None else size
        if size <= 0:
            raise ValueError(f"Chunk size must be positive, got {size}")
        if not html:
            return []
        return [
            HtmlChunk(index=index, text=html[start : start + size])
            for index, start in enumerate(range(0, len(html), size))
        ]

    def filter_likely_review_chunks(
        self, chunks: Iterable[HtmlChunk]
    ) -> List[HtmlChunk]:
        """Keep chunks whose lowercased text contains the review marker."""
        return [chunk for chunk in chunks if self._marker in chunk.text.lower()]

    def review_chunks(self, html: str) -> List[HtmlChunk]:
        """Chunk html and filter in one step."""
        return self.filter_likely_review_chunks(self.chunk(html))
