"""Bot process entrypoint."""

from __future__ import annotations

import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.types import BotCommand

from src.app import App, create_app
from src.bot.router import router
from src.config.logging import configure_logging
from src.config.settings import load_settings
from src.query.dsl import Entity

logger = logging.getLogger(__name__)

BOT_COMMANDS = [
    BotCommand(command="help", description="How to ask"),
    BotCommand(command="use", description="Switch sheet: clients, workers or tasks"),
    BotCommand(command="clear", description="Show all rows again"),
    BotCommand(command="health", description="Check the AI backend"),
]


def startup_summary(app: App) -> str:
    """One log line describing the loaded sheets and the AI tier."""

    counts = " ".join(f"{entity.value}={len(app.store.rows(entity))}" for entity in Entity)
    if app.llm is None:
        return f"starting {counts} ai=disabled"
    return f"starting {counts} ai=enabled model={app.llm.config.model} base_url={app.llm.config.base_url}"


async def _warm_up(app: App) -> None:
    if app.llm is None:
        return
    report = await asyncio.to_thread(app.llm.health)
    logger.info(
        "ai warm-up ok=%s has_model=%s generate_ok=%s error=%s",
        report["ok"],
        report["has_model"],
        report["generate_ok"],
        report.get("error"),
    )


async def main() -> None:
    """Run the Telegram bot polling loop."""

    settings = load_settings()
    configure_logging()

    app = create_app(settings)
    logger.info(startup_summary(app))
    # The first generation loads the model; do it before users are waiting on it.
    await _warm_up(app)

    bot = Bot(token=settings.telegram_bot_token, default=DefaultBotProperties(parse_mode=None))
    dp = Dispatcher()
    dp.include_router(router)

    try:
        await bot.set_my_commands(BOT_COMMANDS)
        await dp.start_polling(bot, app=app)
    finally:
        logger.info("shutting down")
        await bot.session.close()


if __name__ == "__main__":
    asyncio.run(main())
