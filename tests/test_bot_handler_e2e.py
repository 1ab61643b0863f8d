"""Tests for the aiogram message handler reply contract.

Every incoming message results in exactly one reply, except a search that a newer search from the
same chat superseded. Internal errors surface as a short hint, never as a traceback.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from src.app import App
from src.bot.handlers import HELP_TEXT, SNAG_TEXT, format_result, handle_message
from src.pipeline.cache import FilterCache
from src.pipeline.orchestrator import FilterPipeline
from src.query.dsl import Entity
from src.store.rows import RowStore


class _FakeMessage:
    def __init__(self, text: str | None, chat_id: int = 1) -> None:
        self.text = text
        self.caption = None
        self.chat = SimpleNamespace(id=chat_id)
        self.answers: list[str] = []

    async def answer(self, text: str) -> None:
        """Record the outgoing bot reply (aiogram's `Message.answer` substitute)."""
        self.answers.append(text)


class _FakeHealthClient:
    def health(self) -> dict[str, Any]:
        return {"ok": True, "model": "qwen2.5:0.5b-instruct", "has_model": True}


def _make_app(task_rows, *, llm: Any = None) -> App:
    return App(
        settings=SimpleNamespace(result_preview_rows=1, schema_max_samples=4),  # type: ignore[arg-type]
        store=RowStore({Entity.tasks: task_rows}),
        pipeline=FilterPipeline(),
        cache=FilterCache(),
        llm=llm,
    )


async def _send(app: App, text: str | None, chat_id: int = 1) -> list[str]:
    message = _FakeMessage(text, chat_id)
    await handle_message(message, app)  # type: ignore[arg-type]
    return message.answers


@pytest.mark.asyncio
async def test_empty_text_and_start_reply_with_help(task_rows) -> None:
    app = _make_app(task_rows)

    assert await _send(app, None) == [HELP_TEXT]
    assert await _send(app, "/start") == [HELP_TEXT]


@pytest.mark.asyncio
async def test_search_reply_lists_count_source_and_preview(task_rows) -> None:
    app = _make_app(task_rows)

    answers = await _send(app, "duration > 2")

    assert len(answers) == 1
    lines = answers[0].splitlines()
    assert lines[0] == "tasks: 2 matches (deterministic)"
    assert lines[1].startswith("TaskID=T3;")
    assert lines[2] == "… and 1 more"
    assert app.store.filtered(Entity.tasks) is not None


@pytest.mark.asyncio
async def test_use_and_clear_commands(task_rows) -> None:
    app = _make_app(task_rows)

    assert await _send(app, "/use workers") == ["Now searching workers (0 rows)."]
    assert app.entity_for(1) == Entity.workers
    assert app.entity_for(2) == Entity.tasks
    assert await _send(app, "/use planets") == ["Usage: /use clients|workers|tasks"]

    await _send(app, "/use tasks")
    await _send(app, "duration > 2")
    assert await _send(app, "/clear") == ["Cleared the tasks filter."]
    assert app.store.filtered(Entity.tasks) is None


@pytest.mark.asyncio
async def test_input_errors_and_unresolvable_queries_get_hints(task_rows) -> None:
    app = _make_app(task_rows)

    await _send(app, "/use workers")
    assert await _send(app, "skills include coding") == ["Load some data first."]

    await _send(app, "/use tasks")
    assert await _send(app, "long running jobs") == [
        "I couldn't shape a filter from that. Try something simpler."
    ]


@pytest.mark.asyncio
async def test_health_command(task_rows) -> None:
    assert await _send(_make_app(task_rows), "/health") == ["AI tier is disabled."]
    assert await _send(_make_app(task_rows, llm=_FakeHealthClient()), "/health") == [
        "AI backend ok (model=qwen2.5:0.5b-instruct, installed=True)"
    ]


@pytest.mark.asyncio
async def test_internal_error_replies_with_snag(task_rows, monkeypatch: pytest.MonkeyPatch) -> None:
    app = _make_app(task_rows)

    async def _boom(*_args: Any, **_kwargs: Any) -> None:
        raise RuntimeError("db on fire")

    monkeypatch.setattr(app.session_for(1), "search", _boom)

    assert await _send(app, "duration > 2") == [SNAG_TEXT]


def test_format_result_marks_relaxed_searches(task_rows) -> None:
    text = format_result(Entity.tasks, task_rows[:1], "ai", limit=0, softened=True)
    assert text == "tasks: 1 match (ai, relaxed)"
