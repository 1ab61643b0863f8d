"""Tolerant parsing of model output into the filter envelope.

Small models wrap JSON in markdown fences, add prose around it, leave keys unquoted or keep
trailing commas. Parsing locates the first balanced `{...}` object, applies light syntactic
repairs and only then runs a strict `json.loads`.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import ValidationError

from src.query.dsl import FilterEnvelope

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_KEY_RE = re.compile(r"""(?:"(\w+)"|'(\w+)'|\b(\w+))\s*:""")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def _quote_key(match: re.Match[str]) -> str:
    key = next(group for group in match.groups() if group is not None)
    return f'"{key}":'


def extract_first_json_object(text: str) -> str | None:
    """Return the first balanced brace-delimited substring, or `None`."""

    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    for idx in range(start, len(text)):
        ch = text[idx]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:idx + 1]
    return None


def parse_model_json(raw: Any) -> Any | None:
    """Decode model output into a Python object, or `None` if nothing usable is found."""

    if raw is None:
        return None
    if isinstance(raw, dict):
        return raw

    cleaned = _FENCE_RE.sub("", str(raw)).strip()
    candidate = extract_first_json_object(cleaned)
    if candidate is None:
        return None

    repaired = _KEY_RE.sub(_quote_key, candidate)
    repaired = _TRAILING_COMMA_RE.sub(r"\1", repaired)
    # Well-formed output is decoded untouched; the repairs can misfire inside string values.
    for text in (candidate, repaired):
        try:
            return json.loads(text)
        except ValueError:
            continue
    return None


def envelope_from_text(raw: Any) -> FilterEnvelope | None:
    """Parse and validate a filter envelope; `None` when the output is malformed."""

    obj = parse_model_json(raw)
    if not isinstance(obj, dict):
        return None
    try:
        return FilterEnvelope.model_validate(obj)
    except ValidationError:
        return None
