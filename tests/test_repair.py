"""Tests for schema-aware filter repair and pruning."""

from __future__ import annotations

import pytest

from src.query.dsl import AndNode, BetweenNode, CmpNode, MatchNode, NotNode, OrNode, SetNode, filter_from_obj
from src.query.repair import (
    FUZZY_THRESHOLD,
    coerce_value,
    prune_unknown_fields,
    references_known_field,
    repair_filter,
    resolve_field,
    similarity,
)
from src.query.schema import FieldSchema, FieldType, infer_schema

CLIENT_COLUMNS = ["ClientID", "ClientName", "PriorityLevel", "RequestedTaskIDs", "GroupTag", "AttributesJSON"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("PriorityLevel", "PriorityLevel"),
        ("prioritylevel", "PriorityLevel"),
        ("priority level", "PriorityLevel"),
        ("priority_level", "PriorityLevel"),
        ("Priority", "PriorityLevel"),
        ("Budget", "Budget"),
    ],
)
def test_resolve_field(raw, expected) -> None:
    assert resolve_field(raw, CLIENT_COLUMNS) == expected


def test_spaced_name_resolves_against_single_column_schema() -> None:
    schema = [FieldSchema(name="PriorityLevel", type=FieldType.number, samples=[1, 5])]
    node = CmpNode(field="priority level", cmp=">=", value="3")

    assert repair_filter(node, schema) == CmpNode(field="PriorityLevel", cmp=">=", value=3)


def test_similarity_bounds() -> None:
    assert similarity("abc", "abc") == 1.0
    assert similarity("", "abc") == 0.0
    assert similarity("budget", "prioritylevel") < FUZZY_THRESHOLD


@pytest.mark.parametrize(
    ("value", "field_type", "expected"),
    [
        ("3", FieldType.number, 3),
        ("2.5", FieldType.number, 2.5),
        ("high", FieldType.number, "high"),
        ("TRUE", FieldType.boolean, True),
        ("maybe", FieldType.boolean, "maybe"),
        ("coding, sql", FieldType.array, ["coding", "sql"]),
        ("[1, 2]", FieldType.array, [1, 2]),
        ("2025-03-01T00:00:00", FieldType.date, "2025-03-01"),
        ("x", FieldType.string, "x"),
    ],
)
def test_coerce_value(value, field_type, expected) -> None:
    assert coerce_value(value, field_type) == expected


def test_equality_on_array_field_becomes_includes(task_rows) -> None:
    schema = infer_schema(task_rows)
    node = CmpNode(field="preferred phases", cmp="==", value="3")

    assert repair_filter(node, schema) == MatchNode(op="includes", field="PreferredPhases", value=3)


def test_contains_on_comma_string_field_becomes_includes(client_rows) -> None:
    schema = infer_schema(client_rows)
    node = MatchNode(op="contains", field="RequestedTaskIDs", value="T2")

    assert repair_filter(node, schema) == MatchNode(op="includes", field="RequestedTaskIDs", value="T2")


def test_numeric_strings_are_coerced_on_number_fields(client_rows) -> None:
    schema = infer_schema(client_rows)
    node = filter_from_obj({"op": "between", "field": "priority", "from": "2", "to": "4"})

    assert repair_filter(node, schema) == BetweenNode(field="PriorityLevel", from_=2, to=4)


def test_set_values_are_coerced(client_rows) -> None:
    schema = infer_schema(client_rows)
    node = SetNode(op="in", field="PriorityLevel", values=["5", 2])

    assert repair_filter(node, schema) == SetNode(op="in", field="PriorityLevel", values=[5, 2])


def test_repair_walks_composites(task_rows) -> None:
    schema = infer_schema(task_rows)
    node = AndNode(children=[
        CmpNode(field="duration", cmp=">", value="2"),
        NotNode(children=[CmpNode(field="category", cmp="==", value="QA")]),
    ])

    assert repair_filter(node, schema) == AndNode(children=[
        CmpNode(field="Duration", cmp=">", value=2),
        NotNode(children=[CmpNode(field="Category", cmp="==", value="QA")]),
    ])


def test_soften_turns_string_equality_into_contains(client_rows) -> None:
    schema = infer_schema(client_rows)
    node = CmpNode(field="ClientName", cmp="==", value="acme")

    assert repair_filter(node, schema) == node
    assert repair_filter(node, schema, soften=True) == MatchNode(op="contains", field="ClientName", value="acme")


def test_soften_leaves_numeric_equality_alone(client_rows) -> None:
    schema = infer_schema(client_rows)
    node = CmpNode(field="PriorityLevel", cmp="==", value=5)

    assert repair_filter(node, schema, soften=True) == node


def test_unknown_field_is_left_for_pruning() -> None:
    schema = [FieldSchema(name="PriorityLevel", type=FieldType.number, samples=[1])]
    node = CmpNode(field="Budget", cmp=">", value="10")

    repaired = repair_filter(node, schema)
    assert repaired.field == "Budget"
    assert prune_unknown_fields(repaired, ["PriorityLevel"]) is None


def test_prune_keeps_surviving_children_and_drops_empty_composites() -> None:
    node = OrNode(children=[
        CmpNode(field="Budget", cmp=">", value=1),
        AndNode(children=[CmpNode(field="Mood", cmp="==", value="x")]),
        CmpNode(field="PriorityLevel", cmp=">", value=3),
    ])

    assert prune_unknown_fields(node, CLIENT_COLUMNS) == OrNode(children=[
        CmpNode(field="PriorityLevel", cmp=">", value=3),
    ])


def test_references_known_field_is_recursive() -> None:
    node = AndNode(children=[
        CmpNode(field="Budget", cmp=">", value=1),
        NotNode(children=[CmpNode(field="GroupTag", cmp="==", value="x")]),
    ])

    assert references_known_field(node, CLIENT_COLUMNS)
    assert not references_known_field(node, ["Other"])
    assert not references_known_field(None, CLIENT_COLUMNS)


def test_oversized_integer_operand_is_left_untouched() -> None:
    assert coerce_value(10**400, FieldType.number) == 10**400
