"""Pytest configuration.

The repository uses a flat `src/` layout without an installed package. This conftest ensures tests
can import from the `src.*` namespace when running `pytest` locally, and provides small entity
sheets plus a scripted text-generation backend shared by the pipeline tests.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

# Ensure `import src...` works when running pytest without installing the package.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from src.llm.client import LLMUnavailableError, Preflight  # noqa: E402


class FakeGenerator:
    """Scripted backend: returns (or raises) the queued responses in order."""

    def __init__(
            self,
            responses: list[Any] | None = None,
            *,
            preflight_ok: bool = True,
            on_generate: Callable[[], None] | None = None,
    ) -> None:
        self.responses = list(responses or [])
        self.preflight_ok = preflight_ok
        self.on_generate = on_generate
        self.prompts: list[str] = []
        self.preflight_calls = 0

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def preflight(self) -> Preflight:
        self.preflight_calls += 1
        if not self.preflight_ok:
            return Preflight(ok=False, error="connection refused")
        return Preflight(ok=True, models=["qwen2.5:0.5b-instruct"])

    def generate(self, system: str, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.on_generate is not None:
            self.on_generate()
        if not self.responses:
            raise LLMUnavailableError("no scripted response")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def fake_generator_cls() -> type[FakeGenerator]:
    return FakeGenerator


@pytest.fixture
def task_rows() -> list[dict[str, Any]]:
    return [
        {"TaskID": "T1", "TaskName": "Data import", "Category": "ETL", "Duration": 1,
         "PreferredPhases": "[1,2]", "RequiredSkills": "coding,sql", "MaxConcurrent": 2},
        {"TaskID": "T2", "TaskName": "Report design", "Category": "Analytics", "Duration": 2,
         "PreferredPhases": [2, 3], "RequiredSkills": ["design"], "MaxConcurrent": 1},
        {"TaskID": "T3", "TaskName": "API build", "Category": "Engineering", "Duration": 3,
         "PreferredPhases": "3;4", "RequiredSkills": "coding", "MaxConcurrent": 3},
        {"TaskID": "T4", "TaskName": "QA sweep", "Category": "QA", "Duration": "4",
         "PreferredPhases": "[3, 5]", "RequiredSkills": "testing, coding", "MaxConcurrent": 1},
    ]


@pytest.fixture
def worker_rows() -> list[dict[str, Any]]:
    return [
        {"WorkerID": "W1", "WorkerName": "Ada", "Skills": "coding,ml", "AvailableSlots": "[1,3]",
         "MaxLoadPerPhase": 2, "WorkerGroup": "GroupA", "QualificationLevel": 4},
        {"WorkerID": "W2", "WorkerName": "Lin", "Skills": ["design", "ui"], "AvailableSlots": [2],
         "MaxLoadPerPhase": 1, "WorkerGroup": "GroupB", "QualificationLevel": 2},
        {"WorkerID": "W3", "WorkerName": "Sam", "Skills": "testing", "AvailableSlots": "[1]",
         "MaxLoadPerPhase": 3, "WorkerGroup": "GroupA", "QualificationLevel": 5},
    ]


@pytest.fixture
def client_rows() -> list[dict[str, Any]]:
    return [
        {"ClientID": "C1", "ClientName": "Acme Corp", "PriorityLevel": 5,
         "RequestedTaskIDs": "T1,T2", "GroupTag": "Enterprise", "AttributesJSON": '{"region":"eu"}'},
        {"ClientID": "C2", "ClientName": "Globex", "PriorityLevel": 2,
         "RequestedTaskIDs": "T3", "GroupTag": "SMB", "AttributesJSON": "{}"},
        {"ClientID": "C3", "ClientName": "Initech", "PriorityLevel": "4",
         "RequestedTaskIDs": "T2,T4", "GroupTag": "Enterprise", "AttributesJSON": ""},
    ]
