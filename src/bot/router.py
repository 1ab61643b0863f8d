"""Bot router composition."""

from __future__ import annotations

from aiogram import Router

from src.bot.handlers import handle_message

# Commands and free-text queries share one handler; it dispatches on the leading "/".
router = Router(name="search")
router.message.register(handle_message)
