"""Keyword heuristics for the three entity sheets.

Two narrow matchers live here:
    - `client_heuristic`: instant preview shown while the authoritative pipeline runs,
    - `heuristic_filter`: last-resort tier when neither the translator nor the AI produced a filter.

Both return a single leaf on a column that exists in the schema, or `None`.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from src.query.dsl import CmpNode, Comparator, Entity, LeafNode, MatchNode
from src.query.schema import FieldSchema
from src.query.values import as_number_if_numeric

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_TASK_ID_RE = re.compile(r"\bT\d+\b", re.IGNORECASE)
_INCLUDE_VERB_RE = re.compile(r"\b(?:includes?|contains?)\b", re.IGNORECASE)
_EQUALS_VERB_RE = re.compile(r"=|\bequals\b|\bis\b", re.IGNORECASE)
_GROUP_RE = re.compile(r"\bgroup\b", re.IGNORECASE)
_PHRASE_END_RE = re.compile(r"[.,;]| and | or ", re.IGNORECASE)
_QUOTES = "\"'`"


def _extract_after(text: str, pattern: re.Pattern[str]) -> str | None:
    """Return the phrase following the first match of `pattern`, up to punctuation/and/or."""

    match = pattern.search(text)
    if not match:
        return None
    rest = text[match.end():].strip()
    phrase = _PHRASE_END_RE.split(rest, maxsplit=1)[0].strip().strip(_QUOTES).strip()
    return phrase or None


def _extract_number(text: str) -> int | float | None:
    match = _NUMBER_RE.search(text)
    if not match:
        return None
    return as_number_if_numeric(match.group(0))


def _pick_comparator(text: str) -> Comparator | None:
    lowered = text.lower()
    for symbol in (">=", "<=", "!="):
        if symbol in lowered:
            return symbol  # type: ignore[return-value]
    if ">" in lowered:
        return ">"
    if "<" in lowered:
        return "<"
    if "less than" in lowered:
        return "<"
    if "greater than" in lowered or "more than" in lowered:
        return ">"
    if _EQUALS_VERB_RE.search(lowered):
        return "=="
    return None


def _columns(schema: Sequence[FieldSchema]) -> set[str]:
    return {field.name for field in schema}


def _number_cmp(text: str, field: str) -> LeafNode | None:
    op = _pick_comparator(text)
    number = _extract_number(text)
    if op is None or number is None:
        return None
    return CmpNode(field=field, cmp=op, value=number)


def _group_equals(text: str, field: str, *, allow_bare: bool) -> LeafNode | None:
    value = _extract_after(text, _EQUALS_VERB_RE)
    if value is None and allow_bare:
        value = _extract_after(text, _GROUP_RE)
    if value is None:
        return None
    return CmpNode(field=field, cmp="==", value=value)


def _includes_after_verb(text: str, field: str) -> LeafNode | None:
    value = _extract_after(text, _INCLUDE_VERB_RE)
    if value is None:
        return None
    return MatchNode(op="includes", field=field, value=value)


def _includes_number(text: str, field: str) -> LeafNode | None:
    number = _extract_number(text)
    if number is None:
        return None
    return MatchNode(op="includes", field=field, value=number)


def _requested_task(text: str, field: str) -> LeafNode | None:
    match = _TASK_ID_RE.search(text)
    if not match:
        return None
    return MatchNode(op="contains", field=field, value=match.group(0))


def client_heuristic(entity: Entity, text: str, schema: Sequence[FieldSchema]) -> LeafNode | None:
    """Fast preview matcher; intentionally narrower than `heuristic_filter`."""

    has = _columns(schema)
    lowered = text.lower()
    candidates: list[LeafNode | None] = []

    if entity == Entity.workers:
        if "skill" in lowered and _INCLUDE_VERB_RE.search(lowered) and "Skills" in has:
            candidates.append(_includes_after_verb(text, "Skills"))
        if "group" in lowered and "WorkerGroup" in has:
            candidates.append(_group_equals(text, "WorkerGroup", allow_bare=True))
        if "slot" in lowered and "AvailableSlots" in has:
            candidates.append(_includes_number(text, "AvailableSlots"))
    elif entity == Entity.clients:
        if "priority" in lowered and "PriorityLevel" in has:
            candidates.append(_number_cmp(text, "PriorityLevel"))
        if "group" in lowered and "GroupTag" in has:
            candidates.append(_group_equals(text, "GroupTag", allow_bare=False))
        if "requested" in lowered and "RequestedTaskIDs" in has:
            candidates.append(_requested_task(text, "RequestedTaskIDs"))
    elif entity == Entity.tasks:
        if "duration" in lowered and "Duration" in has:
            candidates.append(_number_cmp(text, "Duration"))
        if "phase" in lowered and "PreferredPhases" in has:
            candidates.append(_includes_number(text, "PreferredPhases"))
        if "skill" in lowered and _INCLUDE_VERB_RE.search(lowered) and "RequiredSkills" in has:
            candidates.append(_includes_after_verb(text, "RequiredSkills"))

    return next((node for node in candidates if node is not None), None)


def heuristic_filter(entity: Entity, text: str, schema: Sequence[FieldSchema]) -> LeafNode | None:
    """Last-resort server-side matcher used when no other tier produced a filter."""

    has = _columns(schema)
    lowered = text.lower()
    candidates: list[LeafNode | None] = []

    if entity == Entity.workers:
        if re.search(r"skills?\s+(?:includes?|contains?)\s+", lowered) and "Skills" in has:
            candidates.append(_includes_after_verb(text, "Skills"))
        if "group" in lowered and "WorkerGroup" in has:
            candidates.append(_group_equals(text, "WorkerGroup", allow_bare=True))
        if "slot" in lowered and "AvailableSlots" in has:
            candidates.append(_includes_number(text, "AvailableSlots"))
        if "qual" in lowered and "QualificationLevel" in has:
            number = _extract_number(text)
            if number is not None:
                candidates.append(CmpNode(field="QualificationLevel", cmp=">", value=number))
    elif entity == Entity.clients:
        if "priority" in lowered and "PriorityLevel" in has:
            candidates.append(_number_cmp(text, "PriorityLevel"))
        if "group" in lowered and "GroupTag" in has:
            candidates.append(_group_equals(text, "GroupTag", allow_bare=True))
        if "requested" in lowered and "RequestedTaskIDs" in has:
            candidates.append(_requested_task(text, "RequestedTaskIDs"))
    elif entity == Entity.tasks:
        if "duration" in lowered and "Duration" in has:
            candidates.append(_number_cmp(text, "Duration"))
        if "phase" in lowered and "PreferredPhases" in has:
            candidates.append(_includes_number(text, "PreferredPhases"))
        if "skill" in lowered and "RequiredSkills" in has:
            candidates.append(_includes_after_verb(text, "RequiredSkills"))

    return next((node for node in candidates if node is not None), None)
