"""English dictionaries for field names and comparator phrases.

These mappings are used by the deterministic translator and the heuristics and should remain small
and deterministic. Canonical column names follow the headers of the three entity sheets.
"""

from __future__ import annotations

import re

from src.query.dsl import Comparator, Entity

FIELD_SYNONYMS: dict[Entity, dict[str, str]] = {
    Entity.clients: {
        "priority": "PriorityLevel",
        "priority level": "PriorityLevel",
        "group": "GroupTag",
        "group tag": "GroupTag",
        "requested": "RequestedTaskIDs",
        "requested tasks": "RequestedTaskIDs",
        "name": "ClientName",
        "id": "ClientID",
        "attributes": "AttributesJSON",
    },
    Entity.workers: {
        "group": "WorkerGroup",
        "worker group": "WorkerGroup",
        "skills": "Skills",
        "skill": "Skills",
        "available slots": "AvailableSlots",
        "slot": "AvailableSlots",
        "max load per phase": "MaxLoadPerPhase",
        "qualification": "QualificationLevel",
        "name": "WorkerName",
        "id": "WorkerID",
    },
    Entity.tasks: {
        "duration": "Duration",
        "max concurrent": "MaxConcurrent",
        "concurrent": "MaxConcurrent",
        "preferred phases": "PreferredPhases",
        "phase": "PreferredPhases",
        "required skills": "RequiredSkills",
        "skills": "RequiredSkills",
        "category": "Category",
        "name": "TaskName",
        "id": "TaskID",
    },
}

# Columns whose cells are sets (skills, phases, slots, requested task ids).
LIST_FIELD_RE = re.compile(r"skills|preferredphases|availableslots|requestedtaskids", re.IGNORECASE)

# Longest phrases first so "not equal to" wins over "equal to".
WORDED_COMPARATORS: tuple[tuple[str, Comparator], ...] = (
    ("not equal to", "!="),
    ("greater than", ">"),
    ("more than", ">"),
    ("less than", "<"),
    ("at least", ">="),
    ("at most", "<="),
    ("equal to", "=="),
    ("equals", "=="),
)

SYMBOLIC_COMPARATORS: dict[str, Comparator] = {
    ">": ">",
    ">=": ">=",
    "<": "<",
    "<=": "<=",
    "==": "==",
    "!=": "!=",
    "=": "==",
}


def is_list_field_name(field: str) -> bool:
    return LIST_FIELD_RE.search(field) is not None


def worded_comparator(phrase: str) -> Comparator | None:
    value = phrase.strip().lower()
    for words, op in WORDED_COMPARATORS:
        if value == words:
            return op
    return None


def resolve_header(candidate: str, fields: list[str]) -> str | None:
    """Return the header matching `candidate` case-insensitively, if present."""

    lowered = candidate.lower()
    for field in fields:
        if field.lower() == lowered:
            return field
    return None


def normalize_field(raw: str, entity: Entity, fields: list[str]) -> str | None:
    """Map a user-typed field phrase to a column name.

    Resolution order: entity synonym table, exact case-insensitive header, whitespace-collapsed
    header, TitleCase guess. Synonyms resolve even when the header is absent from `fields`.
    """

    phrase = " ".join(raw.lower().split())
    if not phrase:
        return None

    synonym = FIELD_SYNONYMS[entity].get(phrase)
    if synonym:
        return resolve_header(synonym, fields) or synonym

    exact = resolve_header(phrase, fields)
    if exact:
        return exact

    collapsed = phrase.replace(" ", "")
    for field in fields:
        if "".join(field.lower().split()) == collapsed:
            return field

    guess = "".join(word[:1].upper() + word[1:] for word in phrase.split(" "))
    return guess if guess in fields else None
