"""Selector inference via a pydantic-ai text generation call."""

import json
import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import logfire
from pydantic import ValidationError
from pydantic_ai import Agent
from pydantic_ai.models.fallback import FallbackModel

from review_scraper.config import Settings, get_settings
from review_scraper.models.review_models import SelectorSet

logger = logging.getLogger(__name__)

_PROMPT_PATH = Path(__file__).resolve().parent.parent / "prompts" / "selector_discovery.md"

_CODE_FENCE_RE = re.compile(r"^\s*```[a-zA-Z]*\s*\n?|\n?\s*```\s*$")


class InferenceErrorKind(str, Enum):
    """Why a chunk produced no selector proposal."""

    PARSE_ERROR = "inference_parse_error"
    SERVICE_ERROR = "inference_service_error"


@dataclass(frozen=True)
class InferenceFailure:
    """A non-fatal inference outcome; the resolver moves on to the next chunk."""

    kind: InferenceErrorKind
    detail: str


def load_selector_prompt() -> str:
    """Load the instruction block from prompts/selector_discovery.md.

    Anything above a '---' line is a title and is dropped.
    """
    if not _PROMPT_PATH.exists():
        raise FileNotFoundError(f"Selector discovery prompt not found: {_PROMPT_PATH}")
    template = _PROMPT_PATH.read_text(encoding="utf-8")
    if "---" in template:
        template = template.split("---", 1)[-1]
    return template.strip()


def strip_code_fences(text: str) -> str:
    """Remove a leading ```/```json fence and a trailing ``` fence."""
    return _CODE_FENCE_RE.sub("", text.strip()).strip()


def parse_selector_response(text: str) -> SelectorSet:
    """Parse a model reply into a SelectorSet.

    Accepts a bare or fenced JSON object. When the reply carries prose around
    the object, the outermost {...} span is parsed instead.

    Raises:
        ValueError: If no JSON object can be recovered or its fields are invalid
    """
    body = strip_code_fences(text)
    if not body:
        raise ValueError("Empty model response")

    data: Any
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        start, end = body.find("{"), body.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("No JSON object in model response") from None
        try:
            data = json.loads(body[start : end + 1])
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed JSON in model response: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

    try:
        return SelectorSet.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid selector fields: {e.error_count()} error(s)") from e


class SelectorInferenceClient:
    """Ask a language model for the review selectors present in one HTML chunk."""

    def __init__(
        self,
        model: str | None = None,
        fallback_model: str | None = None,
        temperature: float | None = None,
        agent: Agent | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the inference client.

        Args:
            model: pydantic-ai model string (defaults to settings.default_model)
            fallback_model: Model tried when the primary fails (defaults to settings)
            temperature: Sampling temperature (defaults to settings, normally 0)
            agent: Pre-built agent, mainly for tests
            settings: Settings supplying the defaults (defaults to get_settings())
        """
        settings = settings or get_settings()
        self._model_name = model or settings.default_model
        self._fallback_model = (
            fallback_model if fallback_model is not None else settings.fallback_model
        )
        self._temperature = (
            temperature if temperature is not None else settings.inference_temperature
        )
        self._agent = agent

    @property
    def agent(self) -> Agent:
        """Agent built on first use so no provider is created until a chunk needs it."""
        if self._agent is None:
            model: Any = self._model_name
            if self._fallback_model:
                model = FallbackModel(self._model_name, self._fallback_model)
            self._agent = Agent(
                model,
                output_type=str,
                system_prompt=load_selector_prompt(),
            )
            logger.info(f"Selector inference agent created with model: {self._model_name}")
        return self._agent

    async def infer(self, chunk_text: str) -> SelectorSet | InferenceFailure:
        """
        Propose selectors for one chunk.

        Never raises: service and parse problems come back as InferenceFailure.

        Args:
            chunk_text: Raw HTML slice

        Returns:
            SelectorSet proposal (possibly partial) or InferenceFailure
        """
        start_time = time.time()
        try:
            result = await self.agent.run(
                f"HTML Chunk:\n{chunk_text}",
                model_settings={"temperature": self._temperature},
            )
            response_text = str(result.output or "")
        except Exception as e:
            logfire.error(
                "Selector inference call failed",
                error=str(e),
                error_type=type(e).__name__,
                model=self._model_name,
                chunk_length=len(chunk_text),
                response_time_ms=(time.time() - start_time) * 1000,
            )
            return InferenceFailure(InferenceErrorKind.SERVICE_ERROR, str(e))

        try:
            proposal = parse_selector_response(response_text)
        except ValueError as e:
            logfire.warning(
                "Could not parse selector proposal",
                error=str(e),
                response_preview=response_text[:200],
            )
            return InferenceFailure(InferenceErrorKind.PARSE_ERROR, str(e))

        logfire.info(
            "Selector proposal received",
            model=self._model_name,
            proposal=proposal.model_dump(exclude_none=True),
            response_time_ms=(time.time() - start_time) * 1000,
        )
        return proposal


def get_selector_inference_client() -> SelectorInferenceClient:
    """Get selector inference client instance."""
    return SelectorInferenceClient()
