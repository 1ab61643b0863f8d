"""Interactive search over the row store.

A search shows an instant heuristic preview, then replaces it with the authoritative pipeline result.
Each search gets a monotonic sequence number per session; starting a new search on an entity cancels
the one in flight, and a result whose sequence number is no longer the latest is discarded instead
of overwriting a newer view.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Any

from src.pipeline.cache import FilterCache, key_for
from src.pipeline.orchestrator import (
    FilterPipeline,
    QueryInputError,
    ResolvedFilter,
    UnresolvableQueryError,
)
from src.query.dsl import Entity
from src.query.evaluator import apply_filter
from src.query.heuristics import client_heuristic
from src.query.repair import repair_filter
from src.query.schema import Row, infer_schema
from src.store.rows import RowStore

logger = logging.getLogger(__name__)

# Fewer samples keep the model prompt small.
DEFAULT_MAX_SAMPLES = 4


@dataclass(frozen=True)
class SearchOutcome:
    """Rows written to the filtered view and where the filter came from.

    `source` is one of the pipeline tiers (`deterministic`, `ai`, `heuristic`), `cache` for a cache
    hit, or `preview` when only the instant heuristic could be applied.
    """

    entity: Entity
    rows: list[Row]
    filter: Any
    source: str
    seq: int
    softened: bool = False

    @property
    def count(self) -> int:
        return len(self.rows)


class SearchSession:
    """Owns the search state of one caller (one UI, one chat)."""

    def __init__(
            self,
            store: RowStore,
            pipeline: FilterPipeline,
            cache: FilterCache[ResolvedFilter] | None = None,
            *,
            max_samples: int = DEFAULT_MAX_SAMPLES,
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.cache: FilterCache[ResolvedFilter] = cache if cache is not None else FilterCache()
        self.max_samples = max_samples
        self._sequence = itertools.count(1)
        self._latest: dict[Entity, int] = {}
        self._inflight: dict[Entity, asyncio.Task[ResolvedFilter]] = {}

    def clear(self, entity: Entity) -> None:
        """Drop the filtered view of `entity` (base rows become visible again)."""

        self.store.set_filtered(entity, None)

    async def search(self, entity: Entity | str, text: str) -> SearchOutcome | None:
        """Run one search and write its result to the store.

        Returns:
            The applied outcome, or `None` if a newer search on the same entity superseded it.

        Raises:
            QueryInputError: Empty text, unknown entity, or no rows to search.
            UnresolvableQueryError: No tier produced a filter and there was no preview.
        """

        try:
            target = Entity(entity)
        except ValueError as exc:
            raise QueryInputError(f"unknown entity: {entity!r}") from exc
        query = (text or "").strip()
        if not query:
            raise QueryInputError("Tell me what to find.")
        base = self.store.rows(target)
        if not base:
            raise QueryInputError("Load some data first.")
        schema = infer_schema(base, self.max_samples)
        if not schema:
            raise QueryInputError("Could not infer the schema yet.")

        seq = next(self._sequence)
        self._latest[target] = seq
        previous = self._inflight.pop(target, None)
        if previous is not None and not previous.done():
            previous.cancel()

        key = key_for(target, schema, query)
        cached = self.cache.get(key)
        if cached is not None:
            rows = apply_filter(base, cached.filter)
            self.store.set_filtered(target, rows)
            logger.info("search entity=%s seq=%d source=cache matches=%d", target, seq, len(rows))
            return SearchOutcome(target, rows, cached.filter, "cache", seq)

        preview: SearchOutcome | None = None
        quick = client_heuristic(target, query, schema)
        if quick is not None:
            rows = apply_filter(base, quick)
            self.store.set_filtered(target, rows)
            preview = SearchOutcome(target, rows, quick, "preview", seq)

        task = asyncio.create_task(self.pipeline.resolve(target, query, schema))
        self._inflight[target] = task
        try:
            await asyncio.wait({task})
        finally:
            if not task.done():
                task.cancel()
            if self._inflight.get(target) is task:
                del self._inflight[target]

        if task.cancelled() or self._latest.get(target) != seq:
            logger.info("search discarded entity=%s seq=%d reason=superseded", target, seq)
            return None

        try:
            resolved = task.result()
        except UnresolvableQueryError as exc:
            if preview is None:
                raise
            logger.info("search entity=%s seq=%d keeping preview reason=%s", target, seq, exc.reason)
            return preview

        node = resolved.filter
        rows = apply_filter(base, node)
        softened = False
        if not rows:
            # Second chance: strict string equality becomes substring match.
            soft = repair_filter(node, schema, soften=True)
            if soft != node:
                node, softened = soft, True
                rows = apply_filter(base, node)

        self.cache.put(key, ResolvedFilter(filter=node, source=resolved.source))
        self.store.set_filtered(target, rows)
        logger.info(
            "search entity=%s seq=%d source=%s matches=%d softened=%s",
            target,
            seq,
            resolved.source,
            len(rows),
            softened,
        )
        return SearchOutcome(target, rows, node, str(resolved.source), seq, softened)
