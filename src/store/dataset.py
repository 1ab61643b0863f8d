"""Load entity rows from a JSON dataset file.

The dataset is expected to be a JSON object keyed by entity name (`clients`, `workers`, `tasks`),
each holding a list of row objects. Missing entities load as empty sheets.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from src.query.dsl import Entity
from src.query.schema import Row
from src.store.rows import RowStore

logger = logging.getLogger(__name__)


class DatasetError(ValueError):
    """Raised when the dataset file does not have the expected shape."""


def parse_dataset(payload: object) -> dict[Entity, list[Row]]:
    if not isinstance(payload, dict):
        raise DatasetError("dataset must be a JSON object keyed by entity")

    data: dict[Entity, list[Row]] = {}
    for entity in Entity:
        rows = payload.get(entity.value, [])
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            raise DatasetError(f"{entity.value} must be a list of objects")
        data[entity] = rows
    return data


def load_dataset(path: str | Path) -> RowStore:
    """Read `path` into a new `RowStore`."""

    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    data = parse_dataset(payload)
    logger.info(
        "dataset loaded path=%s %s",
        path,
        " ".join(f"{entity.value}={len(rows)}" for entity, rows in data.items()),
    )
    return RowStore(data)
