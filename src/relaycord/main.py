"""
Relaycord
=========

A Discord bot that links channels of independent servers into shared global
chat channels and lets users post as proxy members detected from their
message text.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Directory holding ``config/``, ``data/``, ``logs/`` and ``.env``.

    ``RELAYCORD_HOME`` wins when set. A frozen build uses the directory of the
    executable; a source checkout uses the repository root.
    """
    if env_home := os.getenv("RELAYCORD_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from dotenv import load_dotenv

from relaycord.configuration.app_configuration import app_config
from relaycord.database.database import get_db
from relaycord.listener import relay_listener
from relaycord.messaging.messenger import WebhookMessenger
from relaycord.services.core import RelaycordCore
from relaycord.store.store import SQLiteStore
from relaycord.util.logger import get_logger, handle_exception

logger = get_logger("main")


def load_environment() -> str:
    """Read ``.env`` and return ``DISCORD_BOT_TOKEN``; exits with status 1 when it is missing."""
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN", "").strip()
    if not token:
        logger.critical("[MAIN] DISCORD_BOT_TOKEN is not set (looked in the environment and %s)", BASE_DIR / ".env")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Guild messages with their content, members for pronoun roles, webhooks for relaying."""
    intents = discord.Intents.default()
    intents.guilds = True
    intents.messages = True
    intents.message_content = True
    intents.members = True
    intents.webhooks = True
    return intents


def create_bot() -> discord.Bot:
    return discord.Bot(intents=build_intents())


def build_core(bot: discord.Bot) -> RelaycordCore:
    """Wire the registries to the SQLite store and webhook messengers of ``bot``."""
    store = SQLiteStore(get_db().connection_manager)
    return RelaycordCore(
        store,
        WebhookMessenger(bot, app_config.global_chat_webhook_name),
        proxy_messenger=WebhookMessenger(bot, app_config.proxy_webhook_name),
    )


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Connect and run until the bot is closed or the task is cancelled."""
    logger.info("[MAIN] Connecting to Discord")
    try:
        await bot.start(token)
    except discord.LoginFailure:
        logger.critical("[MAIN] Discord rejected the bot token")
        raise
    except asyncio.CancelledError:
        logger.info("[MAIN] Connection task cancelled")


async def shutdown_runtime(bot: discord.Bot | None = None) -> None:
    """Close the Discord connection, then the database."""
    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
        except Exception as exc:
            logger.exception("[MAIN] Error while closing the Discord client: %s", exc)

    await get_db().shutdown()
    logger.info("[MAIN] Shutdown complete")


async def async_main() -> int:
    """Open the database, load the registries, register the listener and run the bot."""
    token = load_environment()

    if not await get_db().initialize():
        logger.critical("[MAIN] Database unavailable at %s", app_config.database_path)
        return 1

    bot = create_bot()
    core = build_core(bot)
    try:
        await core.load()
    except Exception as exc:
        logger.critical("[MAIN] Could not load stored state: %s", exc)
        await shutdown_runtime(bot)
        return 1

    relay_listener.setup(bot, core)

    exit_code = 0
    try:
        await start_bot(bot, token)
    except Exception as exc:
        logger.critical("[MAIN] Bot stopped with an error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot)

    return exit_code


def main() -> int:
    """Console entry point; returns the process exit code."""
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("[MAIN] Interrupted, exiting")
        return 0
    except SystemExit as exit_exc:
        return exit_exc.code if isinstance(exit_exc.code, int) else 1
    except Exception as exc:
        logger.critical("[MAIN] Unexpected error: %s", exc)
        return 1


if __name__ == "__main__":
    sys.excepthook = handle_exception
    sys.exit(main())
