# readquest/main.py
import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from readquest.config import Settings
from readquest.database import Database
from readquest.handlers.router import router as handlers_router
from readquest.services.auth import AuthService
from readquest.services.notify import TelegramNotifier
from readquest.utils.dt import TimeProvider
from readquest.utils.middleware import DbSessionMiddleware

QUIET_LOGGERS = ("sqlalchemy", "sqlalchemy.engine", "sqlalchemy.pool", "sqlalchemy.orm", "aiosqlite", "aiogram.event")


def setup_logging(is_dev: bool) -> None:
    """
    App loggers at INFO (DEBUG in dev). Driver and ORM loggers only report
    WARNING and above so reward resolutions stay readable.
    """
    logging.basicConfig(
        level=logging.DEBUG if is_dev else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def build_dispatcher(settings: Settings, db: Database, bot: Bot) -> Dispatcher:
    dp = Dispatcher()

    # handler kwargs
    dp.workflow_data["settings"] = settings
    dp.workflow_data["db"] = db
    dp.workflow_data["notifier"] = TelegramNotifier(bot)

    dp.update.middleware(
        DbSessionMiddleware(
            db,
            auth=AuthService(settings.root_admin_ids),
            clock=TimeProvider(settings.timezone),
        )
    )
    dp.include_router(handlers_router)
    return dp


async def main() -> None:
    settings = Settings.load()
    setup_logging(settings.is_dev)
    log = logging.getLogger("readquest")

    db = Database(settings.database_url)
    await db.init_models()
    log.info("Database ready (%s), chest period=%s", settings.database_url.split("://", 1)[0], settings.chest_period)

    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = build_dispatcher(settings, db, bot)

    try:
        await dp.start_polling(bot)
    except (asyncio.CancelledError, KeyboardInterrupt):
        log.info("Shutting down")
    finally:
        await _shutdown(db, bot, log)


async def _shutdown(db: Database, bot: Bot, log: logging.Logger) -> None:
    try:
        await db.close()
    except Exception:
        log.exception("Failed to close DB")

    try:
        await bot.session.close()
    except Exception:
        log.exception("Failed to close bot session")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
