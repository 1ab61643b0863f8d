"""Filter resolution pipeline (deterministic -> AI -> heuristic).

Strategy:
    1) Try the deterministic translator; a resolved tree is repaired and returned.
    2) If a text-generation backend is configured and passes its preflight probe, ask it for a filter
       envelope. A malformed answer gets one retry with a stricter, example-augmented prompt. A valid
       envelope is repaired and pruned to known columns; a tree left without any known column is
       treated as no answer.
    3) Fall back to the keyword heuristic.
    4) If nothing produced a filter, raise `UnresolvableQueryError` with the raw model outputs and a
       reason: `no_response` (no usable reply), `invalid_json` (malformed reply) or `no_known_field`
       (well-formed reply on columns that do not exist).

Tiers run strictly in order and the first success wins. Every result carries its provenance.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from time import monotonic
from typing import Any

from src.llm.client import LLMResponseError, LLMUnavailableError, Preflight, TextGenerator
from src.llm.prompts import SYSTEM_PROMPT, build_user_prompt
from src.llm.response import envelope_from_text
from src.query.dsl import Entity
from src.query.heuristics import heuristic_filter
from src.query.repair import prune_unknown_fields, references_known_field, repair_filter
from src.query.schema import FieldSchema, column_names
from src.query.translator import nl_to_dsl

logger = logging.getLogger(__name__)


class QueryInputError(ValueError):
    """Raised for empty or malformed requests; never retried."""


class UnresolvableQueryError(ValueError):
    """Raised when no tier produced a filter referencing a known column."""

    def __init__(self, reason: str, *, raw_first: str | None = None, raw_retry: str | None = None) -> None:
        super().__init__(f"could not build a filter ({reason})")
        self.reason = reason
        self.raw_first = raw_first
        self.raw_retry = raw_retry


class FilterSource(StrEnum):
    """Which tier produced a filter."""

    deterministic = "deterministic"
    ai = "ai"
    heuristic = "heuristic"


@dataclass(frozen=True)
class ResolvedFilter:
    """Repaired filter plus information about which tier produced it."""

    filter: Any
    source: FilterSource

    def to_response(self, entity: str) -> dict[str, Any]:
        return {
            "kind": "filter",
            "entity": str(entity),
            "filter": self.filter.to_dict(),
            "source": str(self.source),
        }


@dataclass(frozen=True)
class _AIResult:
    node: Any | None = None
    raw_first: str | None = None
    raw_retry: str | None = None
    failure: str | None = None


class FilterPipeline:
    """Resolve an English query into a filter for one entity sheet."""

    def __init__(self, generator: TextGenerator | None = None, *, timeout_s: float = 25.0) -> None:
        self.generator = generator
        self.timeout_s = timeout_s

    async def resolve(self, entity: Entity | str, text: str, schema: Sequence[FieldSchema]) -> ResolvedFilter:
        """Run the tiers in order and return the first filter produced.

        Raises:
            QueryInputError: If the entity is unknown or the text is empty.
            UnresolvableQueryError: If no tier produced a usable filter.
        """

        started = monotonic()
        try:
            target = Entity(entity)
        except ValueError as exc:
            raise QueryInputError(f"unknown entity: {entity!r}") from exc
        query = (text or "").strip()
        if not query:
            raise QueryInputError("empty query")

        columns = column_names(schema)

        node = nl_to_dsl(query, target, columns)
        if node is not None:
            return self._done(repair_filter(node, schema), FilterSource.deterministic, target, started)

        ai = _AIResult()
        if self.generator is not None:
            ai = await self._ai_tier(target, query, schema, columns)
            if ai.node is not None:
                return self._done(ai.node, FilterSource.ai, target, started)

        fallback = heuristic_filter(target, query, schema)
        if fallback is not None:
            return self._done(repair_filter(fallback, schema), FilterSource.heuristic, target, started)

        reason = ai.failure or "no_response"
        logger.info(
            "unresolved entity=%s reason=%s latency_ms=%d",
            target,
            reason,
            int((monotonic() - started) * 1000),
        )
        raise UnresolvableQueryError(reason, raw_first=ai.raw_first, raw_retry=ai.raw_retry)

    @staticmethod
    def _done(node: Any, source: FilterSource, entity: Entity, started: float) -> ResolvedFilter:
        logger.info(
            "resolved source=%s entity=%s latency_ms=%d",
            source,
            entity,
            int((monotonic() - started) * 1000),
        )
        return ResolvedFilter(filter=node, source=source)

    async def _call(self, func: Any, *args: Any) -> Any:
        """Run a blocking backend call in a worker thread under the pipeline deadline."""

        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout_s)
        except TimeoutError as exc:
            raise LLMUnavailableError("LLM call timed out") from exc

    async def _preflight(self) -> Preflight:
        assert self.generator is not None
        try:
            return await self._call(self.generator.preflight)
        except LLMUnavailableError as exc:
            return Preflight(ok=False, error=str(exc))

    async def _ai_tier(
            self,
            entity: Entity,
            text: str,
            schema: Sequence[FieldSchema],
            columns: list[str],
    ) -> _AIResult:
        assert self.generator is not None

        pre = await self._preflight()
        if not pre.ok:
            logger.info("ai skipped reason=preflight_failed error=%s", pre.error)
            return _AIResult()

        raws: list[str] = []
        failure: str | None = None
        for attempt, with_examples in enumerate((False, True), start=1):
            prompt = build_user_prompt(str(entity), text, columns, with_examples=with_examples)
            try:
                raw = await self._call(self.generator.generate, SYSTEM_PROMPT, prompt)
            except LLMUnavailableError as exc:
                # Upstream failures are not retried; the next tier takes over.
                logger.info("ai unavailable attempt=%d error=%s", attempt, exc)
                break
            except LLMResponseError as exc:
                # An unusable body counts as a malformed answer.
                logger.info("ai malformed attempt=%d error=%s", attempt, exc)
                failure = "invalid_json"
                continue
            raws.append(raw)

            envelope = envelope_from_text(raw)
            if envelope is None:
                logger.info("ai malformed attempt=%d", attempt)
                failure = "invalid_json"
                continue

            node = self._repair_and_prune(envelope.filter, schema, columns)
            if node is None:
                logger.info("ai discarded attempt=%d reason=no_known_field", attempt)
                return _AIResult(None, *_pad(raws), failure="no_known_field")
            return _AIResult(node, *_pad(raws))

        return _AIResult(None, *_pad(raws), failure=failure)

    @staticmethod
    def _repair_and_prune(node: Any, schema: Sequence[FieldSchema], columns: list[str]) -> Any | None:
        repaired = repair_filter(node, schema, soften=False)
        cleaned = prune_unknown_fields(repaired, columns)
        if cleaned is None or not references_known_field(cleaned, columns):
            return None
        return cleaned


def _pad(raws: list[str]) -> tuple[str | None, str | None]:
    first = raws[0] if raws else None
    retry = raws[1] if len(raws) > 1 else None
    return first, retry
