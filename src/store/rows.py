"""In-memory row store for the three entity sheets.

Base rows are never modified by searches: a search result is kept as a separate, named filtered
view per entity that callers render instead of the base rows until it is cleared.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from src.query.dsl import Entity
from src.query.schema import Row


class RowStore:
    """Base rows plus non-destructive filtered views, keyed by entity."""

    def __init__(self, data: Mapping[Entity, Sequence[Row]] | None = None) -> None:
        self._rows: dict[Entity, list[Row]] = {entity: [] for entity in Entity}
        self._filtered: dict[Entity, list[Row]] = {}
        for entity, rows in (data or {}).items():
            self.set_rows(entity, rows)

    def rows(self, entity: Entity) -> list[Row]:
        return self._rows[Entity(entity)]

    def set_rows(self, entity: Entity, rows: Sequence[Row]) -> None:
        """Replace the base rows of an entity; any filtered view of it is dropped."""

        key = Entity(entity)
        self._rows[key] = list(rows)
        self._filtered.pop(key, None)

    def filtered(self, entity: Entity) -> list[Row] | None:
        return self._filtered.get(Entity(entity))

    def set_filtered(self, entity: Entity, rows: Sequence[Row] | None) -> None:
        """Set or (with `None`) clear the filtered view of an entity."""

        key = Entity(entity)
        if rows is None:
            self._filtered.pop(key, None)
            return
        self._filtered[key] = list(rows)

    def visible(self, entity: Entity) -> list[Row]:
        view = self.filtered(entity)
        return self.rows(entity) if view is None else view

    def reset(self) -> None:
        self._rows = {entity: [] for entity in Entity}
        self._filtered = {}
