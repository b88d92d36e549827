"""Shared pytest fixtures and configuration.

Fixture Categories:
1. Settings / logging: mock_settings, mock_logfire, logfire_capture
2. Selector data: usable_selectors, make_rows
3. Collaborator fakes: FakeBrowser, FakeProposer, StaticHtmlBrowser
"""

import os
from contextlib import contextmanager
from typing import Any, Dict, List
from unittest.mock import MagicMock, Mock, patch

import pytest

os.environ.setdefault("LOGFIRE_IGNORE_NO_CONFIG", "1")

import logfire  # noqa: E402
from bs4 import BeautifulSoup  # noqa: E402

from review_scraper.config import Settings  # noqa: E402
from review_scraper.models.review_models import SelectorSet  # noqa: E402
from review_scraper.services.selector_inference import InferenceFailure  # noqa: E402


# =============================================================================
# Collaborator Fakes
# =============================================================================


class FakeElement:
    """Element handle returned by FakeBrowser.find_optional()."""

    def __init__(self, kind: str):
        self.kind = kind


class FakeBrowser:
    """Scripted BrowserPage.

    Each page is a dict with:
    - html: markup returned by current_html()
    - rows: raw rows returned by evaluate() (the page script output)
    - has_next: whether the next-page control exists on this page
    """

    def __init__(
        self,
        pages: List[Dict[str, Any]],
        next_selector: str = ".next",
        popup_selector: str | None = None,
        fail_on: str | None = None,
    ):
        self.pages = pages
        self.next_selector = next_selector
        self.popup_selector = popup_selector
        self.fail_on = fail_on
        self.page_index = 0
        self.calls: List[tuple] = []
        self.close_count = 0
        self.evaluate_args: List[Any] = []

    def _record(self, name: str, *args):
        self.calls.append((name, *args))
        if self.fail_on == name:
            raise RuntimeError(f"{name} failed")

    @property
    def current(self) -> Dict[str, Any]:
        return self.pages[self.page_index]

    async def navigate(self, url: str) -> None:
        self._record("navigate", url)

    async def wait_for_element(self, selector: str, timeout: float) -> None:
        self._record("wait_for_element", selector, timeout)

    async def find_optional(self, selector: str):
        self._record("find_optional", selector)
        if self.popup_selector and selector == self.popup_selector:
            return FakeElement("popup")
        if selector == self.next_selector and self.current.get("has_next"):
            return FakeElement("next")
        return None

    async def click(self, element: FakeElement) -> None:
        self._record("click", element.kind)
        if element.kind == "next":
            self.page_index += 1

    async def sleep(self, seconds: float) -> None:
        self._record("sleep", seconds)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self._record("evaluate")
        self.evaluate_args.append(arg)
        return self.current.get("rows", [])

    async def current_html(self) -> str:
        self._record("current_html")
        return self.current.get("html", "")

    async def close(self) -> None:
        self.close_count += 1

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


class StaticHtmlBrowser(FakeBrowser):
    """FakeBrowser whose evaluate() runs the review sweep over real markup.

    Mirrors the in-page script with BeautifulSoup: containers are matched
    document-wide, field selectors inside each container.
    """

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self._record("evaluate")
        soup = BeautifulSoup(self.current["html"], "html.parser")

        def text_of(node, selector):
            if not selector:
                return ""
            el = node.select_one(selector)
            return el.get_text().strip() if el else ""

        rows = []
        for node in soup.select(arg["container"]):
            rating_el = node.select_one(arg["rating"]) if arg.get("rating") else None
            rows.append(
                {
                    "name": text_of(node, arg.get("name")),
                    "ratingLabel": rating_el.get("aria-label") if rating_el else None,
                    "review": text_of(node, arg.get("review")),
                    "date": text_of(node, arg.get("date")),
                }
            )
        return rows


class FakeProposer:
    """SelectorProposer returning scripted results in call order."""

    def __init__(self, results: List[SelectorSet | InferenceFailure]):
        self.results = list(results)
        self.chunks: List[str] = []

    async def infer(self, chunk_text: str) -> SelectorSet | InferenceFailure:
        self.chunks.append(chunk_text)
        if not self.results:
            return SelectorSet()
        return self.results.pop(0)


@pytest.fixture
def usable_selectors() -> SelectorSet:
    """Complete selector set with a next-page control."""
    return SelectorSet(
        container=".review",
        name=".author",
        rating=".stars",
        review=".text",
        date=".date",
        next_page=".next",
    )


@pytest.fixture
def make_rows():
    """Factory for raw page-script rows: make_rows(3, prefix="p1")."""

    def _make(count: int, prefix: str = "r", rating_label: str | None = "5 stars"):
        return [
            {
                "name": f"{prefix}-reviewer-{i}",
                "ratingLabel": rating_label,
                "review": f"{prefix} review body {i}",
                "date": "2024-01-01",
            }
            for i in range(count)
        ]

    return _make


@pytest.fixture
def review_page_html() -> str:
    """Product page with two reviews inside a review list."""
    return """
    <html><body>
      <header><nav>Shop</nav></header>
      <section class="reviews" data-rating-summary="4.5">
        <div class="review">
          <span class="author"> Alice </span>
          <div class="stars" aria-label="4 stars"></div>
          <p class="text">Great kettle, boils fast.</p>
          <time class="date">March 2, 2024</time>
        </div>
        <div class="review">
          <span class="author">Bob</span>
          <p class="text">Handle gets hot.</p>
          <time class="date">March 5, 2024</time>
        </div>
      </section>
      <a class="next" href="?page=2">Next</a>
    </body></html>
    """


# =============================================================================
# Settings and Logging
# =============================================================================


@pytest.fixture
def mock_settings(monkeypatch):
    """Mock application settings with zero settle delays."""
    settings = Settings(
        google_api_key="test-google-key",
        default_model="test",
        fallback_model=None,
        env="local",
        logfire_token=None,
        sentry_dsn=None,
        overlay_settle_seconds=0.0,
        next_page_settle_seconds=0.0,
    )

    monkeypatch.setattr("review_scraper.config.get_settings", lambda: settings)
    # Patch where get_settings is used so request handlers see the mock
    monkeypatch.setattr("review_scraper.main.get_settings", lambda: settings)
    monkeypatch.setattr("review_scraper.api.health.get_settings", lambda: settings)
    monkeypatch.setattr("review_scraper.logging_config.get_settings", lambda: settings)
    monkeypatch.setattr(
        "review_scraper.services.selector_inference.get_settings", lambda: settings
    )
    monkeypatch.setattr(
        "review_scraper.services.scrape_session.get_settings", lambda: settings
    )
    return settings


@pytest.fixture
def logfire_capture():
    """
    Capture Logfire logs for testing.

    This fixture patches Logfire to capture log calls for assertion.
    """
    captured_logs = []

    def capture(level):
        def _capture(*args, **kwargs):
            captured_logs.append((level, args, kwargs))

        return _capture

    with (
        patch("logfire.info", side_effect=capture("info")),
        patch("logfire.warning", side_effect=capture("warning")),
        patch("logfire.error", side_effect=capture("error")),
    ):
        yield captured_logs


@pytest.fixture
def mock_logfire(monkeypatch):
    """
    Mock Logfire for testing without actual logging.

    Replaces the module-level logfire reference in every module that logs.
    """

    @contextmanager
    def mock_span(*args, **kwargs):
        yield {}

    mock_logfire_module = MagicMock()
    mock_logfire_module.info = Mock()
    mock_logfire_module.warning = Mock()
    mock_logfire_module.error = Mock()
    mock_logfire_module.span = mock_span
    mock_logfire_module.configure = Mock()
    mock_logfire_module.instrument_fastapi = Mock()
    mock_logfire_module.instrument_pydantic = Mock()
    mock_logfire_module.instrument_pydantic_ai = Mock()

    for module in (
        "review_scraper.main",
        "review_scraper.logging_config",
        "review_scraper.middleware.correlation_id",
        "review_scraper.services.browser",
        "review_scraper.services.pagination",
        "review_scraper.services.review_extractor",
        "review_scraper.services.scrape_session",
        "review_scraper.services.selector_inference",
        "review_scraper.services.selector_resolver",
    ):
        monkeypatch.setattr(f"{module}.logfire", mock_logfire_module)

    return mock_logfire_module


@pytest.fixture
def test_client(mock_settings, mock_logfire):
    """FastAPI TestClient for E2E tests."""
    from fastapi.testclient import TestClient

    from review_scraper.main import app

    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
