"""Schema-aware repair of filter trees.

Filters coming from the model (and, to a lesser degree, from the translators) reference columns
loosely and carry values of the wrong type. The repair pass:
    - maps each leaf field onto a real column (exact, case-insensitive, fuzzy 3-gram, substring),
    - coerces values to the column's inferred type,
    - upgrades equality/contains on list-like columns to `includes`,
    - optionally softens strict string equality to `contains` (second-chance pass after zero hits).
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Sequence
from typing import Any

from src.query.dates import to_iso
from src.query.dsl import (
    BetweenNode,
    CmpNode,
    MatchNode,
    SetNode,
    is_composite,
)
from src.query.schema import FieldSchema, FieldType
from src.query.values import (
    as_number_if_numeric,
    looks_json_array,
    parse_bool,
    split_list,
    stringify,
    to_number,
)

FUZZY_THRESHOLD = 0.65
_SEPARATORS_RE = re.compile(r"[\s_\-]+")


def normalize_name(name: str) -> str:
    return _SEPARATORS_RE.sub("", name.lower())


def _ngrams(text: str, size: int = 3) -> list[str]:
    if len(text) <= size:
        return [text]
    return [text[i:i + size] for i in range(len(text) - size + 1)]


def similarity(left: str, right: str) -> float:
    """Jaccard similarity of character 3-grams."""

    if left == right:
        return 1.0
    if not left or not right:
        return 0.0
    a, b = set(_ngrams(left)), set(_ngrams(right))
    union = a | b
    return len(a & b) / len(union) if union else 0.0


def resolve_field(field: str, columns: Sequence[str]) -> str:
    """Map `field` onto a known column, or return it unchanged if nothing is close enough."""

    if field in columns:
        return field

    lowered = field.lower()
    for column in columns:
        if column.lower() == lowered:
            return column

    norm = normalize_name(field)
    best_column, best_score = None, -1.0
    for column in columns:
        score = similarity(norm, normalize_name(column))
        if score > best_score:
            best_column, best_score = column, score
    if best_column is not None and best_score >= FUZZY_THRESHOLD:
        return best_column

    if norm:
        for column in columns:
            if norm in normalize_name(column):
                return column
    return field


def _is_list_like(field: FieldSchema) -> bool:
    if field.type == FieldType.array:
        return True
    for sample in field.samples:
        text = stringify(sample).strip()
        if looks_json_array(text):
            return True
        if field.type == FieldType.string and "," in text:
            return True
    return False


def _coerce_array(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    text = stringify(value).strip()
    if not text:
        return []
    if looks_json_array(text):
        try:
            decoded = json.loads(text)
        except ValueError:
            decoded = None
        if isinstance(decoded, list):
            return decoded
    return [as_number_if_numeric(part) for part in split_list(text)]


def coerce_value(value: Any, field_type: FieldType) -> Any:
    """Coerce a filter operand to the inferred column type, keeping it as-is when it does not fit."""

    if field_type == FieldType.number:
        number = to_number(value)
        if number is None or isinstance(value, (int, float)):
            return value
        return as_number_if_numeric(stringify(value).strip())
    if field_type == FieldType.boolean:
        parsed = parse_bool(value)
        return value if parsed is None else parsed
    if field_type == FieldType.array:
        return _coerce_array(value)
    if field_type == FieldType.date:
        iso = to_iso(value)
        return value if iso is None else iso
    return value


def _unwrap_single(value: Any) -> Any:
    if isinstance(value, list) and len(value) == 1:
        return value[0]
    return value


class _Repairer:
    def __init__(self, schema: Sequence[FieldSchema], *, soften: bool) -> None:
        self.columns = [field.name for field in schema]
        self.types = {field.name: field.type for field in schema}
        self.list_like = {field.name: _is_list_like(field) for field in schema}
        self.soften = soften

    def walk(self, node: Any) -> Any:
        if is_composite(node):
            return node.model_copy(update={"children": [self.walk(c) for c in node.children]})
        return self.repair_leaf(node)

    def repair_leaf(self, node: Any) -> Any:
        field = resolve_field(node.field, self.columns)
        field_type = self.types.get(field, FieldType.unknown)
        is_list = self.list_like.get(field, False)

        def coerce(value: Any) -> Any:
            return coerce_value(value, field_type)

        update: dict[str, Any] = {"field": field}
        if isinstance(node, (CmpNode, MatchNode)):
            value = coerce(node.value)
            if field_type == FieldType.array:
                value = _unwrap_single(value)
            update["value"] = value
        elif isinstance(node, SetNode):
            update["values"] = [coerce(v) for v in node.values]
        elif isinstance(node, BetweenNode):
            update["from_"] = coerce(node.from_)
            update["to"] = coerce(node.to)
        fixed = node.model_copy(update=update)

        if is_list and (
            (isinstance(fixed, CmpNode) and fixed.cmp == "==")
            or (isinstance(fixed, MatchNode) and fixed.op == "contains")
        ):
            fixed = MatchNode(op="includes", field=field, value=fixed.value)

        if (
            self.soften
            and isinstance(fixed, CmpNode)
            and fixed.cmp == "=="
            and field_type in (FieldType.string, FieldType.unknown)
            and not is_list
        ):
            fixed = MatchNode(op="contains", field=field, value=stringify(fixed.value))

        return fixed


def repair_filter(node: Any, schema: Sequence[FieldSchema], *, soften: bool = False) -> Any:
    """Return a repaired copy of `node` (bottom-up over composite children)."""

    return _Repairer(schema, soften=soften).walk(node)


def prune_unknown_fields(node: Any, columns: Iterable[str]) -> Any | None:
    """Drop leaves on unknown columns; composites keep surviving children or vanish when empty."""

    known = set(columns)

    def prune(current: Any) -> Any | None:
        if is_composite(current):
            children = [c for c in (prune(child) for child in current.children) if c is not None]
            if not children:
                return None
            return current.model_copy(update={"children": children})
        return current if current.field in known else None

    return prune(node)


def references_known_field(node: Any, columns: Iterable[str]) -> bool:
    known = set(columns)

    def visit(current: Any) -> bool:
        if current is None:
            return False
        if is_composite(current):
            return any(visit(child) for child in current.children)
        return current.field in known

    return visit(node)
