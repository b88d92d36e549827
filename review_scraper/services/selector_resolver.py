"""Resolve one usable SelectorSet from per-chunk model proposals."""

from typing import Protocol, Sequence

import logfire
import soupsieve

from review_scraper.models.review_models import SELECTOR_FIELDS, HtmlChunk, SelectorSet
from review_scraper.services.selector_inference import InferenceFailure


class SelectorProposer(Protocol):
    """Anything that can propose selectors for a chunk of HTML."""

    async def infer(self, chunk_text: str) -> SelectorSet | InferenceFailure: ...


def merge_selectors(current: SelectorSet, proposal: SelectorSet) -> SelectorSet:
    """Fill the unset fields of current from proposal.

    First non-empty value wins: a field that is already set is never replaced
    by a later proposal, even a conflicting one.
    """
    updates = {
        field: getattr(proposal, field)
        for field in SELECTOR_FIELDS
        if not getattr(current, field) and getattr(proposal, field)
    }
    if not updates:
        return current
    return current.model_copy(update=updates)


def is_valid_css(selector: str) -> bool:
    """True if soupsieve can compile selector."""
    try:
        soupsieve.compile(selector)
    except (soupsieve.SelectorSyntaxError, ValueError, TypeError):
        return False
    return True


def drop_invalid_selectors(proposal: SelectorSet) -> SelectorSet:
    """Unset proposal fields that are not syntactically valid CSS."""
    invalid = {
        field: None
        for field in SELECTOR_FIELDS
        if getattr(proposal, field) and not is_valid_css(getattr(proposal, field))
    }
    if invalid:
        logfire.warning(
            "Discarding invalid selectors from proposal",
            fields=sorted(invalid),
            selectors={f: getattr(proposal, f) for f in invalid},
        )
        return proposal.model_copy(update=invalid)
    return proposal


class SelectorResolver:
    """Query chunks one by one until the merged selectors are usable.

    Chunks are tried last-to-first: the end of a product page is where
    individual review markup usually lives, while the start is dominated by
    navigation and header markup. Inference is the most expensive step, so
    the remaining chunks are skipped as soon as the set becomes usable.
    """

    def __init__(self, proposer: SelectorProposer):
        """
        Initialize the resolver.

        Args:
            proposer: Inference client used for each chunk
        """
        self._proposer = proposer

    async def resolve(self, chunks: Sequence[HtmlChunk]) -> SelectorSet:
        """
        Build a SelectorSet from the given chunks.

        Args:
            chunks: Candidate chunks in document order

        Returns:
            The merged SelectorSet; it may be incomplete (check is_usable)
        """
        selectors = SelectorSet()
        ordered = list(reversed(chunks))

        with logfire.span("resolve_selectors", chunk_count=len(ordered)):
            for position, chunk in enumerate(ordered, start=1):
                logfire.info(
                    "Processing chunk for selectors",
                    position=position,
                    total=len(ordered),
                    chunk_index=chunk.index,
                )
                proposal = await self._proposer.infer(chunk.text)
                if isinstance(proposal, InferenceFailure):
                    logfire.warning(
                        "No selector proposal for chunk",
                        chunk_index=chunk.index,
                        kind=proposal.kind.value,
                        detail=proposal.detail,
                    )
                    continue

                selectors = merge_selectors(selectors, drop_invalid_selectors(proposal))
                if selectors.is_usable:
                    logfire.info(
                        "Usable selectors found, skipping remaining chunks",
                        chunks_used=position,
                        chunks_skipped=len(ordered) - position,
                        selectors=selectors.model_dump(exclude_none=True),
                    )
                    return selectors

        logfire.warning(
            "Failed to find usable selectors after processing all chunks",
            missing=selectors.missing_fields,
            chunk_count=len(ordered),
        )
        return selectors
