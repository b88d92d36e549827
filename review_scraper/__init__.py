"""Review scraper: LLM-discovered selectors driving paginated review extraction."""

__version__ = "0.1.0"
