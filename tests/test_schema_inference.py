"""Tests for per-field type and sample inference."""

from __future__ import annotations

from src.query.schema import FieldSchema, FieldType, infer_schema


def _by_name(schema: list[FieldSchema]) -> dict[str, FieldSchema]:
    return {field.name: field for field in schema}


def test_empty_rows_give_empty_schema() -> None:
    assert infer_schema([]) == []


def test_task_sheet_types(task_rows) -> None:
    schema = _by_name(infer_schema(task_rows))

    assert schema["Duration"].type == FieldType.number
    assert schema["MaxConcurrent"].type == FieldType.number
    assert schema["PreferredPhases"].type == FieldType.array
    assert schema["RequiredSkills"].type == FieldType.array
    assert schema["Category"].type == FieldType.string


def test_fields_keep_first_seen_order(task_rows) -> None:
    names = [field.name for field in infer_schema(task_rows)]
    assert names[:3] == ["TaskID", "TaskName", "Category"]


def test_single_json_array_value_marks_column_as_array() -> None:
    rows = [{"Tags": "alpha"}, {"Tags": "beta"}, {"Tags": '["x", "y"]'}]
    assert infer_schema(rows)[0].type == FieldType.array


def test_comma_string_is_not_array_like() -> None:
    rows = [{"Notes": "late, needs review"}, {"Notes": "fine"}]
    assert infer_schema(rows)[0].type == FieldType.string


def test_numeric_requires_every_value() -> None:
    rows = [{"Score": "1"}, {"Score": 2.5}, {"Score": "n/a"}]
    assert infer_schema(rows)[0].type != FieldType.number

    rows = [{"Score": "1"}, {"Score": 2.5}, {"Score": " 3 "}]
    assert infer_schema(rows)[0].type == FieldType.number


def test_boolean_column() -> None:
    rows = [{"Active": True}, {"Active": "false"}, {"Active": "TRUE"}]
    field = infer_schema(rows)[0]
    assert field.type == FieldType.boolean
    assert field.samples == [True, False]


def test_native_booleans_are_not_numbers() -> None:
    rows = [{"Flag": True}, {"Flag": False}]
    assert infer_schema(rows)[0].type == FieldType.boolean


def test_date_column_from_any_value() -> None:
    rows = [{"Due": "2025-03-01"}, {"Due": "someday"}]
    assert infer_schema(rows)[0].type == FieldType.date


def test_all_null_column_is_unknown() -> None:
    rows = [{"Empty": None}, {"Empty": None}]
    assert infer_schema(rows)[0].type == FieldType.unknown


def test_samples_are_deduplicated_and_capped() -> None:
    rows = [{"Duration": v} for v in (1, "1", 2, 3, 4, 5, 6, 7)]
    field = infer_schema(rows, max_samples=4)[0]

    assert field.samples == [1, 2, 3, 4]
    assert len(field.samples) <= 4


def test_array_samples_are_json_encoded() -> None:
    rows = [{"Skills": ["coding", "ml"]}, {"Skills": "design"}]
    field = infer_schema(rows)[0]
    assert field.samples == ['["coding", "ml"]', "design"]


def test_unknown_type_label_reads_as_unknown() -> None:
    field = FieldSchema.model_validate({"name": "X", "type": "float64", "samples": [1]})
    assert field.type == FieldType.unknown


def test_integers_beyond_float_range_are_not_numbers() -> None:
    rows = [{"Budget": 10**400}, {"Budget": 5}]
    assert infer_schema(rows)[0].type == FieldType.string
