"""Tests for the PaginationDriver loop."""

import pytest

from conftest import FakeBrowser, FakeProposer
from review_scraper.models.review_models import ReviewRecord, SelectorSet
from review_scraper.services.html_chunker import HtmlChunker
from review_scraper.services.pagination import (
    FailureReason,
    PaginationDriver,
    PaginationState,
    finalize_reviews,
    never_reresolve,
    reresolve_on_empty,
)
from review_scraper.services.selector_resolver import SelectorResolver

REVIEW_HTML = "<div class='review'><span class='rating'>5</span></div>"


def _driver(page, proposer, **kwargs):
    kwargs.setdefault("next_page_settle_seconds", 0.0)
    kwargs.setdefault("overlay_settle_seconds", 0.0)
    return PaginationDriver(page, SelectorResolver(proposer), chunker=HtmlChunker(size=50), **kwargs)


def _review(name="n", body="b"):
    return ReviewRecord(title=name, reviewer=name, body=body)


class TestFinalizeReviews:
    """Tests for finalize_reviews()."""

    def test_trims_then_filters(self):
        reviews = [_review("a"), _review("", "b"), _review("c"), _review("d")]

        result = finalize_reviews(reviews, 3)

        # Trimming happens first, so "d" is never considered
        assert [r.reviewer for r in result] == ["a", "c"]

    def test_drops_empty_body(self):
        assert finalize_reviews([_review("a", "")], 5) == []

    def test_keeps_review_without_rating_or_date(self):
        review = ReviewRecord(title="a", reviewer="a", body="b", rating=0, date="")

        assert finalize_reviews([review], 5) == [review]


class TestReresolvePolicies:
    def test_never_reresolve(self):
        assert not never_reresolve(3, [])

    def test_reresolve_on_empty(self):
        assert reresolve_on_empty(2, [])
        assert not reresolve_on_empty(1, [])
        assert not reresolve_on_empty(2, [_review()])


class TestPaginationDriver:
    """Tests for PaginationDriver.run()."""

    @pytest.mark.asyncio
    async def test_stops_once_target_reached_and_trims(
        self, mock_logfire, usable_selectors, make_rows
    ):
        """Target 5 with three reviews per page ends on page 2."""
        page = FakeBrowser(
            [
                {"html": REVIEW_HTML, "rows": make_rows(3, "p1"), "has_next": True},
                {"html": REVIEW_HTML, "rows": make_rows(3, "p2"), "has_next": True},
                {"html": REVIEW_HTML, "rows": make_rows(3, "p3"), "has_next": False},
            ]
        )
        proposer = FakeProposer([usable_selectors])

        outcome = await _driver(page, proposer).run("https://shop.test/p/1", 5)

        assert outcome.state is PaginationState.DONE
        # Target is reached on page 2 (6 >= 5), so page 3 is never loaded
        assert outcome.pages_visited == 2
        assert len(outcome.reviews) == 5
        assert [r.reviewer for r in outcome.reviews[:3]] == [
            "p1-reviewer-0",
            "p1-reviewer-1",
            "p1-reviewer-2",
        ]

    @pytest.mark.asyncio
    async def test_runs_out_of_pages_short_of_target(
        self, mock_logfire, usable_selectors, make_rows
    ):
        """Three pages of three reviews with target 20 returns all nine."""
        page = FakeBrowser(
            [
                {"html": REVIEW_HTML, "rows": make_rows(3, "p1"), "has_next": True},
                {"html": REVIEW_HTML, "rows": make_rows(3, "p2"), "has_next": True},
                {"html": REVIEW_HTML, "rows": make_rows(3, "p3"), "has_next": False},
            ]
        )

        outcome = await _driver(page, FakeProposer([usable_selectors])).run(
            "https://shop.test/p/1", 20
        )

        assert outcome.state is PaginationState.DONE
        assert outcome.pages_visited == 3
        assert len(outcome.reviews) == 9
        assert page.count("evaluate") == 3

    @pytest.mark.asyncio
    async def test_target_met_on_first_page_skips_next_lookup(
        self, mock_logfire, usable_selectors, make_rows
    ):
        """Target 10 met on page 1: no next-page lookup happens."""
        page = FakeBrowser(
            [{"html": REVIEW_HTML, "rows": make_rows(10), "has_next": True}]
        )

        outcome = await _driver(page, FakeProposer([usable_selectors])).run(
            "https://shop.test/p/1", 10
        )

        assert len(outcome.reviews) == 10
        assert ("find_optional", ".next") not in page.calls
        assert page.count("click") == 0

    @pytest.mark.asyncio
    async def test_selectors_resolved_once_and_cached(
        self, mock_logfire, usable_selectors, make_rows
    ):
        page = FakeBrowser(
            [
                {"html": REVIEW_HTML, "rows": make_rows(1, "p1"), "has_next": True},
                {"html": REVIEW_HTML, "rows": make_rows(1, "p2"), "has_next": True},
                {"html": REVIEW_HTML, "rows": make_rows(1, "p3"), "has_next": False},
            ]
        )
        proposer = FakeProposer([usable_selectors])

        await _driver(page, proposer).run("https://shop.test/p/1", 10)

        assert len(proposer.chunks) == 1
        assert page.count("current_html") == 1

    @pytest.mark.asyncio
    async def test_unusable_selectors_fail(self, mock_logfire, make_rows):
        page = FakeBrowser([{"html": REVIEW_HTML, "rows": make_rows(3)}])
        proposer = FakeProposer([SelectorSet(container=".review")])

        driver = _driver(page, proposer)
        outcome = await driver.run("https://shop.test/p/1", 5)

        assert outcome.state is PaginationState.FAILED
        assert outcome.failure_reason is FailureReason.SELECTORS_NOT_FOUND
        assert outcome.reviews == []
        assert driver.state is PaginationState.FAILED
        assert page.count("evaluate") == 0

    @pytest.mark.asyncio
    async def test_page_without_review_chunks_fails_without_inference(
        self, mock_logfire
    ):
        page = FakeBrowser([{"html": "<html><body>No reviews yet</body></html>"}])
        proposer = FakeProposer([])

        outcome = await _driver(page, proposer).run("https://shop.test/p/1", 5)

        assert outcome.state is PaginationState.FAILED
        assert proposer.chunks == []

    @pytest.mark.asyncio
    async def test_missing_next_page_selector_ends_loop(self, mock_logfire, make_rows):
        selectors = SelectorSet(
            container=".review", name=".author", review=".text", date=".date"
        )
        page = FakeBrowser([{"html": REVIEW_HTML, "rows": make_rows(2), "has_next": True}])

        outcome = await _driver(page, FakeProposer([selectors])).run(
            "https://shop.test/p/1", 5
        )

        assert outcome.state is PaginationState.DONE
        assert len(outcome.reviews) == 2
        assert page.count("find_optional") == 0

    @pytest.mark.asyncio
    async def test_initialization_dismisses_popup(
        self, mock_logfire, usable_selectors, make_rows
    ):
        page = FakeBrowser(
            [{"html": REVIEW_HTML, "rows": make_rows(5)}],
            popup_selector=".popup-close",
        )

        await _driver(
            page,
            FakeProposer([usable_selectors]),
            overlay_close_selector=".popup-close",
            overlay_settle_seconds=1.5,
            body_wait_timeout=7.0,
        ).run("https://shop.test/p/1", 5)

        assert page.calls[:5] == [
            ("navigate", "https://shop.test/p/1"),
            ("wait_for_element", "body", 7.0),
            ("find_optional", ".popup-close"),
            ("click", "popup"),
            ("sleep", 1.5),
        ]

    @pytest.mark.asyncio
    async def test_absent_popup_is_not_an_error(
        self, mock_logfire, usable_selectors, make_rows
    ):
        page = FakeBrowser([{"html": REVIEW_HTML, "rows": make_rows(5)}])

        outcome = await _driver(
            page, FakeProposer([usable_selectors]), overlay_close_selector=".popup-close"
        ).run("https://shop.test/p/1", 5)

        assert outcome.state is PaginationState.DONE
        assert page.count("click") == 0

    @pytest.mark.asyncio
    async def test_next_page_click_waits_settle_delay(
        self, mock_logfire, usable_selectors, make_rows
    ):
        page = FakeBrowser(
            [
                {"html": REVIEW_HTML, "rows": make_rows(1), "has_next": True},
                {"html": REVIEW_HTML, "rows": make_rows(1), "has_next": False},
            ]
        )

        await _driver(
            page, FakeProposer([usable_selectors]), next_page_settle_seconds=3.0
        ).run("https://shop.test/p/1", 5)

        click_at = page.calls.index(("click", "next"))
        assert page.calls[click_at + 1] == ("sleep", 3.0)

    @pytest.mark.asyncio
    async def test_page_budget_stops_endless_pagination(
        self, mock_logfire, usable_selectors
    ):
        """A site that always offers a next page still terminates."""
        pages = [{"html": REVIEW_HTML, "rows": [], "has_next": True} for _ in range(10)]
        page = FakeBrowser(pages)

        outcome = await _driver(
            page, FakeProposer([usable_selectors]), max_pages=4
        ).run("https://shop.test/p/1", 5)

        assert outcome.state is PaginationState.DONE
        assert outcome.pages_visited == 4
        assert page.count("evaluate") == 4
        assert page.count("click") == 3
        mock_logfire.warning.assert_called()

    def test_rejects_zero_page_budget(self):
        with pytest.raises(ValueError):
            _driver(FakeBrowser([]), FakeProposer([]), max_pages=0)

    @pytest.mark.asyncio
    async def test_reresolve_policy_refreshes_selectors(self, mock_logfire, make_rows):
        first = SelectorSet(
            container=".review", name=".author", review=".text", date=".date", next_page=".next"
        )
        second = SelectorSet(
            container=".review-v2", name=".author", review=".text", date=".date", next_page=".next"
        )
        page = FakeBrowser(
            [
                {"html": REVIEW_HTML, "rows": make_rows(2, "p1"), "has_next": True},
                {"html": REVIEW_HTML, "rows": make_rows(2, "p2"), "has_next": False},
            ]
        )
        # Page 2 returns rows regardless of selectors; force the empty path
        original_evaluate = page.evaluate

        async def evaluate(script, arg=None):
            rows = await original_evaluate(script, arg)
            if page.page_index == 1 and arg["container"] == ".review":
                return []
            return rows

        page.evaluate = evaluate
        proposer = FakeProposer([first, second])

        outcome = await _driver(page, proposer, reresolve_policy=reresolve_on_empty).run(
            "https://shop.test/p/1", 10
        )

        assert outcome.selectors == second
        assert [r.reviewer for r in outcome.reviews] == [
            "p1-reviewer-0",
            "p1-reviewer-1",
            "p2-reviewer-0",
            "p2-reviewer-1",
        ]
        assert len(proposer.chunks) == 2

    @pytest.mark.asyncio
    async def test_navigation_errors_propagate(self, mock_logfire, usable_selectors):
        page = FakeBrowser([{"html": REVIEW_HTML}], fail_on="navigate")

        with pytest.raises(RuntimeError):
            await _driver(page, FakeProposer([usable_selectors])).run(
                "https://shop.test/p/1", 5
            )
