"""Mapping-suggestion oracle backed by a local Ollama model.

The oracle object owns its own token budget and HTTP client. It is built
once per application lifespan and closed at shutdown; callers only read
``available`` and never inspect the budget counters.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import httpx

from sheetport.core.config import settings
from sheetport.core.errors import MappingError

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """You are a data mapping assistant. Match spreadsheet column headers to CMS field names.

Source columns: {headers}

Target fields: {fields}

Return a JSON object with a "mappings" array. Each mapping has this structure:
{{
  "sourceField": "column name from source",
  "targetField": "field id from target",
  "confidence": 0.0 to 1.0,
  "transformRequired": boolean,
  "transformDescription": "description if transform needed"
}}

Only include mappings where there's a reasonable match. Be conservative with confidence scores.
Map each source column at most once. Return ONLY the JSON object, no other text."""


class MappingOracle(Protocol):
    @property
    def available(self) -> bool: ...

    async def suggest(self, headers: list[str], fields: list[dict[str, str]]) -> Any: ...


@dataclass
class TokenBudget:
    """Per-session token accounting for oracle calls."""
    max_tokens: int
    warning_threshold: float = 0.8
    prompt_tokens: int = 0
    completion_tokens: int = 0
    calls: int = 0
    _warned: bool = field(default=False, init=False, repr=False)

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def can_make_call(self, estimated_tokens: int) -> bool:
        return self.total_tokens + estimated_tokens <= self.max_tokens

    def record_usage(self, prompt_tokens: int, completion_tokens: int) -> None:
        self.prompt_tokens += prompt_tokens
        self.completion_tokens += completion_tokens
        self.calls += 1
        if not self._warned and self.total_tokens >= self.max_tokens * self.warning_threshold:
            self._warned = True
            logger.warning(
                f"Oracle token budget warning: {self.total_tokens}/{self.max_tokens} tokens used"
            )

    def summary(self) -> str:
        percent = (self.total_tokens / self.max_tokens * 100) if self.max_tokens else 100.0
        return (
            f"Oracle usage: {self.calls} calls | "
            f"{self.total_tokens:,}/{self.max_tokens:,} tokens ({percent:.1f}%)"
        )


class OllamaMappingOracle:
    """Asks an Ollama model for column mappings via ``/api/generate``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        budget: Optional[TokenBudget] = None,
        client: Optional[httpx.AsyncClient] = None,
        enabled: bool = True,
    ):
        self.base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self.model = model or settings.ollama_model
        self.budget = budget or TokenBudget(
            max_tokens=settings.oracle_max_tokens,
            warning_threshold=settings.oracle_warning_threshold,
        )
        self.enabled = enabled
        self._client = client or httpx.AsyncClient(timeout=settings.ollama_timeout_seconds)

    @property
    def available(self) -> bool:
        return self.enabled and self.budget.can_make_call(
            settings.oracle_estimated_tokens_per_call
        )

    def build_prompt(self, headers: list[str], fields: list[dict[str, str]]) -> str:
        return PROMPT_TEMPLATE.format(
            headers=json.dumps(headers),
            fields=json.dumps(fields),
        )

    async def suggest(self, headers: list[str], fields: list[dict[str, str]]) -> Any:
        """Return the decoded JSON answer; raise MappingError on any failure."""
        payload = {
            "model": self.model,
            "prompt": self.build_prompt(headers, fields),
            "stream": False,
            "format": "json",
            "options": {"temperature": 0.1},
        }
        try:
            response = await self._client.post(f"{self.base_url}/api/generate", json=payload)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise MappingError(f"Ollama request failed: {e}") from e

        self.budget.record_usage(
            int(body.get("prompt_eval_count") or 0),
            int(body.get("eval_count") or 0),
        )
        logger.info(self.budget.summary())

        content = (body.get("response") or "").strip()
        if not content:
            raise MappingError("Ollama returned an empty response")
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise MappingError(f"Ollama response is not JSON: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Mapping oracle client closed")
