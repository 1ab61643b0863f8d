"""Compact per-field schema inferred from a sample of rows.

The schema (column names, a type guess and a few distinct sample values) is what the translators
and the repair pass see instead of the full data.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.query.dates import parse_date
from src.query.values import is_array_like, parse_bool, stringify, to_number

Row = Mapping[str, Any]
Sample = str | int | float | bool

DEFAULT_MAX_SAMPLES = 6
SCAN_LIMIT = 200


class FieldType(StrEnum):
    number = "number"
    string = "string"
    array = "array"
    boolean = "boolean"
    date = "date"
    unknown = "unknown"


class FieldSchema(BaseModel):
    """One column: name, inferred type and a small distinct sample set."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str
    type: FieldType = FieldType.unknown
    samples: list[Sample] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def validate_type(cls, value: Any) -> Any:
        """Read unrecognized type labels as `unknown` instead of rejecting the column."""

        if isinstance(value, str) and value not in FieldType.__members__:
            return FieldType.unknown
        return value


def _field_names(rows: Iterable[Row]) -> list[str]:
    names: dict[str, None] = {}
    for row in rows:
        for key in row:
            names.setdefault(key, None)
    return list(names)


def _classify(values: Sequence[Any]) -> FieldType:
    if not values:
        return FieldType.unknown
    # One list-like value is enough evidence; numeric/boolean need every value to agree.
    if any(is_array_like(v) for v in values):
        return FieldType.array
    if all(to_number(v) is not None for v in values):
        return FieldType.number
    if all(parse_bool(v) is not None for v in values):
        return FieldType.boolean
    if any(parse_date(v) is not None for v in values):
        return FieldType.date
    return FieldType.string


def _sample_value(value: Any, field_type: FieldType) -> Sample:
    if field_type == FieldType.array:
        return json.dumps(list(value), ensure_ascii=False) if isinstance(value, (list, tuple)) else str(value)
    if field_type == FieldType.number:
        number = to_number(value)
        assert number is not None
        return int(number) if number.is_integer() else number
    if field_type == FieldType.boolean:
        return bool(parse_bool(value))
    return stringify(value)


def infer_schema(rows: Sequence[Row], max_samples: int = DEFAULT_MAX_SAMPLES) -> list[FieldSchema]:
    """Infer a `FieldSchema` per column from the first rows of `rows`.

    Type priority: array > number > boolean > date > string; columns without any non-null value
    are `unknown`. Samples are deduplicated in first-seen order and capped at `max_samples`.
    """

    if not rows:
        return []

    scanned = rows[:SCAN_LIMIT]
    out: list[FieldSchema] = []
    for name in _field_names(scanned):
        values = [row.get(name) for row in scanned]
        values = [v for v in values if v is not None]
        field_type = _classify(values)

        samples: list[Sample] = []
        for value in values:
            if len(samples) >= max_samples:
                break
            sample = _sample_value(value, field_type)
            if sample not in samples:
                samples.append(sample)

        out.append(FieldSchema(name=name, type=field_type, samples=samples))
    return out


def column_names(schema: Iterable[FieldSchema]) -> list[str]:
    return [field.name for field in schema]
