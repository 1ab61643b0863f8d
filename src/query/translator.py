"""Deterministic English -> filter translator.

This translator is pattern based and deliberately forgiving:
    - the query is split into clauses on "and", commas and semicolons,
    - each clause is matched against a fixed list of phrasings,
    - clauses that cannot be resolved to a column are dropped (partial understanding beats none),
    - recognized clauses are combined under `and`.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence

from src.query.dictionaries import (
    SYMBOLIC_COMPARATORS,
    is_list_field_name,
    normalize_field,
    resolve_header,
    worded_comparator,
)
from src.query.dsl import AndNode, BetweenNode, CmpNode, Entity, LeafNode, MatchNode
from src.query.values import as_number_if_numeric

_NUMBER = r"-?\d+(?:\.\d+)?"
_FIELD = r"(?P<field>[\w\s]+?)"
_VALUE = r'(?P<value>"?[\w\-. ]+"?|\d+)'

_INCLUDES_RE = re.compile(rf"{_FIELD}\s+(?:includes?|contains?)\s+{_VALUE}", re.IGNORECASE)
_EQUALS_RE = re.compile(rf"{_FIELD}\s+(?:must be|should be|is|equals|=)\s+{_VALUE}", re.IGNORECASE)
_SYMBOLIC_RE = re.compile(
    rf"{_FIELD}\s*(?P<cmp>>=|<=|==|!=|>|<|=)\s*(?P<value>{_NUMBER})", re.IGNORECASE
)
_WORDED_RE = re.compile(
    rf"{_FIELD}\s+(?P<cmp>not equal to|equal to|less than|more than|greater than|at least|at most|equals)"
    rf"\s+(?P<value>{_NUMBER})",
    re.IGNORECASE,
)
_BETWEEN_RE = re.compile(
    rf"{_FIELD}\s+between\s+(?P<low>{_NUMBER})\s+(?:and|to)\s+(?P<high>{_NUMBER})", re.IGNORECASE
)
_PHASE_RE = re.compile(r"phase\s+(?P<value>-?\d+)", re.IGNORECASE)
_SKILL_RE = re.compile(r'skills?\s+(?P<value>"?[\w\- ]+"?)', re.IGNORECASE)
_BARE_RE = re.compile(rf"{_FIELD}\s+{_VALUE}", re.IGNORECASE)

_FILLER_RE = re.compile(r"\b(?:where|with)\b", re.IGNORECASE)
_BETWEEN_AND_RE = re.compile(rf"\bbetween\s+({_NUMBER})\s+and\s+({_NUMBER})", re.IGNORECASE)
_CLAUSE_SPLIT_RE = re.compile(r"\s+and\s+|,|;", re.IGNORECASE)


def split_clauses(text: str) -> list[str]:
    """Split a query into clauses, keeping "between A and B" in one piece."""

    value = _FILLER_RE.sub(" ", text)
    value = _BETWEEN_AND_RE.sub(r"between \1 to \2", value)
    return [part.strip() for part in _CLAUSE_SPLIT_RE.split(value) if part.strip()]


def _clean_value(raw: str) -> object:
    return as_number_if_numeric(raw.strip().strip('"').strip())


def _prefer_field(candidate: str, fields: Sequence[str]) -> str:
    return resolve_header(candidate, list(fields)) or candidate


ClauseParser = Callable[[str, Entity, list[str]], LeafNode | None]


def _parse_includes(clause: str, entity: Entity, fields: list[str]) -> LeafNode | None:
    match = _INCLUDES_RE.fullmatch(clause)
    if not match:
        return None
    field = normalize_field(match.group("field"), entity, fields)
    if not field:
        return None
    return MatchNode(op="includes", field=field, value=_clean_value(match.group("value")))


def _parse_equals(clause: str, entity: Entity, fields: list[str]) -> LeafNode | None:
    match = _EQUALS_RE.fullmatch(clause)
    if not match:
        return None
    field = normalize_field(match.group("field"), entity, fields)
    if not field:
        return None
    return CmpNode(field=field, cmp="==", value=_clean_value(match.group("value")))


def _parse_symbolic(clause: str, entity: Entity, fields: list[str]) -> LeafNode | None:
    match = _SYMBOLIC_RE.fullmatch(clause)
    if not match:
        return None
    field = normalize_field(match.group("field"), entity, fields)
    if not field:
        return None
    return CmpNode(
        field=field,
        cmp=SYMBOLIC_COMPARATORS[match.group("cmp")],
        value=as_number_if_numeric(match.group("value")),
    )


def _parse_worded(clause: str, entity: Entity, fields: list[str]) -> LeafNode | None:
    match = _WORDED_RE.fullmatch(clause)
    if not match:
        return None
    field = normalize_field(match.group("field"), entity, fields)
    op = worded_comparator(match.group("cmp"))
    if not field or op is None:
        return None
    return CmpNode(field=field, cmp=op, value=as_number_if_numeric(match.group("value")))


def _parse_between(clause: str, entity: Entity, fields: list[str]) -> LeafNode | None:
    match = _BETWEEN_RE.fullmatch(clause)
    if not match:
        return None
    field = normalize_field(match.group("field"), entity, fields)
    if not field:
        return None
    return BetweenNode(
        field=field,
        from_=as_number_if_numeric(match.group("low")),
        to=as_number_if_numeric(match.group("high")),
    )


def _parse_phase(clause: str, entity: Entity, fields: list[str]) -> LeafNode | None:
    match = _PHASE_RE.fullmatch(clause)
    if not match:
        return None
    return MatchNode(
        op="includes",
        field=_prefer_field("PreferredPhases", fields),
        value=as_number_if_numeric(match.group("value")),
    )


def _parse_skill(clause: str, entity: Entity, fields: list[str]) -> LeafNode | None:
    match = _SKILL_RE.fullmatch(clause)
    if not match:
        return None
    fallback = "Skills" if entity == Entity.workers else "RequiredSkills"
    return MatchNode(
        op="includes",
        field=_prefer_field(fallback, fields),
        value=_clean_value(match.group("value")),
    )


def _parse_bare(clause: str, entity: Entity, fields: list[str]) -> LeafNode | None:
    match = _BARE_RE.fullmatch(clause)
    if not match:
        return None
    field = normalize_field(match.group("field"), entity, fields)
    if not field:
        return None
    value = _clean_value(match.group("value"))
    if is_list_field_name(field):
        return MatchNode(op="includes", field=field, value=value)
    return CmpNode(field=field, cmp="==", value=value)


_CLAUSE_PARSERS: tuple[ClauseParser, ...] = (
    _parse_includes,
    _parse_equals,
    _parse_symbolic,
    _parse_worded,
    _parse_between,
    _parse_phase,
    _parse_skill,
    _parse_bare,
)


def _parse_clause(clause: str, entity: Entity, fields: list[str]) -> LeafNode | None:
    for parser in _CLAUSE_PARSERS:
        node = parser(clause, entity, fields)
        if node is not None:
            return node
    return None


def nl_to_dsl(text: str, entity: Entity, fields: Sequence[str] = ()) -> AndNode | LeafNode | None:
    """Translate an English query into a filter node.

    Args:
        text: The user's query.
        entity: Active entity; selects the field synonym table.
        fields: Actual column headers of the active entity.

    Returns:
        A single leaf, an `and` of leaves, or `None` if no clause could be resolved.
    """

    value = (text or "").strip()
    if not value:
        return None

    headers = list(fields)
    children: list[LeafNode] = []
    for clause in split_clauses(value):
        node = _parse_clause(clause, Entity(entity), headers)
        if node is not None:
            children.append(node)

    if not children:
        return None
    if len(children) == 1:
        return children[0]
    return AndNode(children=children)
