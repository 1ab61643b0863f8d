from __future__ import annotations

import json
from pathlib import Path

import pytest

from src.query.dsl import Entity
from src.store.dataset import DatasetError, load_dataset, parse_dataset
from src.store.rows import RowStore


def test_load_dataset(tmp_path: Path, task_rows, client_rows) -> None:
    path = tmp_path / "dataset.json"
    path.write_text(json.dumps({"tasks": task_rows, "clients": client_rows}), encoding="utf-8")

    store = load_dataset(path)

    assert store.rows(Entity.tasks) == task_rows
    assert store.rows(Entity.clients) == client_rows
    assert store.rows(Entity.workers) == []


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"tasks": {"TaskID": "T1"}},
        {"workers": [["W1"]]},
    ],
)
def test_parse_dataset_rejects_bad_shapes(payload) -> None:
    with pytest.raises(DatasetError):
        parse_dataset(payload)


def test_replacing_rows_drops_filtered_view(task_rows) -> None:
    store = RowStore({Entity.tasks: task_rows})
    store.set_filtered(Entity.tasks, task_rows[:1])
    assert store.visible(Entity.tasks) == task_rows[:1]

    store.set_rows(Entity.tasks, task_rows[1:])

    assert store.filtered(Entity.tasks) is None
    assert store.visible(Entity.tasks) == task_rows[1:]

    store.reset()
    assert store.rows(Entity.tasks) == []
