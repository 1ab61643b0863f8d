"""aiogram message handlers.

Contract: every incoming message gets at most one reply. Commands select the entity sheet,
clear the filtered view or probe the AI backend; any other text is run as a search. On unsupported
input or internal error the user gets a short hint and the details go to the log. A search that
was superseded by a newer one from the same chat gets no reply of its own.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from time import monotonic

from aiogram.types import Message

from src.app import App
from src.pipeline.orchestrator import QueryInputError, UnresolvableQueryError
from src.query.dsl import Entity
from src.query.schema import Row
from src.query.values import stringify

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Ask in plain English about the active sheet, e.g. \"skills include coding\" or "
    "\"duration > 2 and phase 3\".\n"
    "/use clients|workers|tasks - switch sheet\n"
    "/clear - show all rows again\n"
    "/health - check the AI backend"
)
SNAG_TEXT = "Hm, I hit a snag. Try rephrasing the query."
MAX_CELL_CHARS = 40


def _is_command_text(text: str) -> bool:
    return text.lstrip().startswith("/")


def _plural(count: int) -> str:
    return f"{count} match" if count == 1 else f"{count} matches"


def _format_row(row: Row) -> str:
    parts = []
    for key, value in row.items():
        text = stringify(value)
        if len(text) > MAX_CELL_CHARS:
            text = text[:MAX_CELL_CHARS - 1] + "…"
        parts.append(f"{key}={text}")
    return "; ".join(parts)


def format_result(entity: Entity, rows: Sequence[Row], source: str, *, limit: int, softened: bool = False) -> str:
    """Render a search result: match count, provenance and the first `limit` rows."""

    header = f"{entity.value}: {_plural(len(rows))} ({source}"
    header += ", relaxed)" if softened else ")"
    lines = [header]
    lines.extend(_format_row(row) for row in rows[:max(limit, 0)])
    if len(rows) > limit > 0:
        lines.append(f"… and {len(rows) - limit} more")
    return "\n".join(lines)


async def _handle_command(text: str, chat_id: int, app: App) -> str:
    command, _, arg = text.strip().partition(" ")
    command = command.split("@", 1)[0].lower()
    arg = arg.strip().lower()

    if command in {"/start", "/help"}:
        return HELP_TEXT

    if command == "/use":
        try:
            entity = Entity(arg)
        except ValueError:
            return "Usage: /use clients|workers|tasks"
        app.entities[chat_id] = entity
        return f"Now searching {entity.value} ({len(app.store.rows(entity))} rows)."

    if command == "/clear":
        entity = app.entity_for(chat_id)
        app.session_for(chat_id).clear(entity)
        return f"Cleared the {entity.value} filter."

    if command == "/health":
        if app.llm is None:
            return "AI tier is disabled."
        report = await asyncio.to_thread(app.llm.health)
        status = "ok" if report["ok"] else "unavailable"
        return f"AI backend {status} (model={report['model']}, installed={report['has_model']})"

    return HELP_TEXT


async def handle_message(message: Message, app: App) -> None:
    """Handle any incoming Telegram message (one reply, none if superseded)."""

    started = monotonic()
    reply = SNAG_TEXT

    # noinspection PyBroadException
    try:
        raw_text = (message.text or message.caption or "")
        chat_id = message.chat.id
        if not raw_text.strip():
            reply = HELP_TEXT
        elif _is_command_text(raw_text):
            reply = await _handle_command(raw_text, chat_id, app)
        else:
            entity = app.entity_for(chat_id)
            outcome = await app.session_for(chat_id).search(entity, raw_text)
            if outcome is None:
                # A newer query from the same chat answers instead.
                return
            reply = format_result(
                entity,
                outcome.rows,
                outcome.source,
                limit=app.settings.result_preview_rows,
                softened=outcome.softened,
            )

            latency_ms = int((monotonic() - started) * 1000)
            logger.info(
                "handled entity=%s source=%s matches=%d latency_ms=%d",
                entity,
                outcome.source,
                outcome.count,
                latency_ms,
            )
    except QueryInputError as exc:
        reply = str(exc)
    except UnresolvableQueryError as exc:
        latency_ms = int((monotonic() - started) * 1000)
        logger.info("unsupported reason=%s latency_ms=%d", exc.reason, latency_ms)
        reply = "I couldn't shape a filter from that. Try something simpler."
    except Exception:
        # Handler boundary: any internal error must still result in a reply, without leaking details.
        logger.exception("handler failed")

    await message.answer(reply)
