"""Cell value normalization shared by schema inference, evaluation and repair.

Rows are loosely typed: the same column can hold native numbers, numeric-looking strings, native
lists, JSON-encoded arrays or comma/semicolon separated strings. These helpers reduce all of them
to a small set of comparable shapes.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

_LIST_SPLIT_RE = re.compile(r"[,;]+")


def to_number(value: Any) -> float | None:
    """Return `value` as a finite float, or `None` if it does not parse as one.

    Booleans and blank strings are not numbers.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def as_number_if_numeric(value: Any) -> Any:
    """Cast numeric-looking strings to `int`/`float`; return anything else unchanged."""

    if not isinstance(value, str):
        return value
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        pass
    number = to_number(text)
    return value if number is None else number


def stringify(value: Any) -> str:
    """Render a cell value as display text (`None` -> empty, lists comma-joined)."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(stringify(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def norm_str(value: Any) -> str:
    """Case-insensitive, trimmed comparison key."""

    return stringify(value).strip().lower()


def looks_json_array(text: str) -> bool:
    return text.startswith("[") and text.endswith("]")


def parse_json_array(value: Any) -> list[Any] | None:
    """Return the list encoded by a JSON-array string, or `None`."""

    if not isinstance(value, str):
        return None
    text = value.strip()
    if not looks_json_array(text):
        return None
    try:
        decoded = json.loads(text)
    except ValueError:
        return None
    return decoded if isinstance(decoded, list) else None


def split_list(text: str) -> list[str]:
    """Split a delimiter-separated string on commas/semicolons, dropping blanks."""

    return [part.strip() for part in _LIST_SPLIT_RE.split(text) if part.strip()]


def cell_to_tokens(value: Any) -> list[str]:
    """Tokenize a possibly multi-valued cell into normalized tokens."""

    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = list(value)
    else:
        items = parse_json_array(value)
        if items is None:
            return [t for t in (norm_str(p) for p in split_list(stringify(value))) if t]
    return [t for t in (norm_str(v) for v in items) if t]


def is_array_like(value: Any) -> bool:
    """Native list or JSON-array string. Plain comma strings are free text, not arrays."""

    if isinstance(value, (list, tuple)):
        return True
    return parse_json_array(value) is not None


def parse_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    text = stringify(value).strip().lower()
    if text == "true":
        return True
    if text == "false":
        return False
    return None
