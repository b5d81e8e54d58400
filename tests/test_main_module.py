import os
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from relaycord import main


@pytest.fixture(autouse=True)
def _restore_env(monkeypatch):
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)


def test_resolve_base_dir_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("RELAYCORD_HOME", str(tmp_path))

    resolved = main.resolve_base_dir()

    assert resolved == tmp_path.resolve()


def test_resolve_base_dir_compiled(tmp_path, monkeypatch):
    monkeypatch.delenv("RELAYCORD_HOME", raising=False)
    monkeypatch.setattr(sys, "frozen", True, raising=False)
    monkeypatch.setattr(sys, "argv", [str(tmp_path / "relaycord.exe")])

    resolved = main.resolve_base_dir()

    assert resolved == (tmp_path / "relaycord.exe").resolve().parent


def test_resolve_base_dir_source(monkeypatch):
    monkeypatch.delenv("RELAYCORD_HOME", raising=False)
    monkeypatch.setattr(sys, "frozen", False, raising=False)
    monkeypatch.setattr(sys, "compiled", False, raising=False)

    resolved = main.resolve_base_dir()

    assert resolved == main.Path(main.__file__).resolve().parents[2]


def test_load_environment_requires_token(monkeypatch):
    monkeypatch.setattr(main, "load_dotenv", lambda **_: None)
    monkeypatch.delenv("DISCORD_BOT_TOKEN", raising=False)

    with pytest.raises(SystemExit):
        main.load_environment()


def test_load_environment_returns_token(monkeypatch):
    monkeypatch.setattr(main, "load_dotenv", lambda **_: None)
    monkeypatch.setenv("DISCORD_BOT_TOKEN", "abc")

    assert main.load_environment() == "abc"


def test_build_intents_reads_message_content():
    intents = main.build_intents()
    assert intents.message_content
    assert intents.webhooks
    assert intents.members


@pytest.mark.asyncio
async def test_shutdown_runtime_closes_bot_and_database(monkeypatch):
    db = SimpleNamespace(shutdown=AsyncMock())
    monkeypatch.setattr(main, "get_db", lambda: db)
    bot = MagicMock()
    bot.is_closed.return_value = False
    bot.close = AsyncMock()

    await main.shutdown_runtime(bot)

    bot.close.assert_awaited_once()
    db.shutdown.assert_awaited_once()


@pytest.mark.asyncio
async def test_async_main_stops_when_database_fails(monkeypatch):
    monkeypatch.setattr(main, "load_environment", lambda: "token")
    monkeypatch.setattr(main, "get_db", lambda: SimpleNamespace(initialize=AsyncMock(return_value=False)))
    create_bot = MagicMock()
    monkeypatch.setattr(main, "create_bot", create_bot)

    assert await main.async_main() == 1
    create_bot.assert_not_called()


@pytest.mark.asyncio
async def test_async_main_loads_core_and_registers_listener(monkeypatch):
    monkeypatch.setattr(main, "load_environment", lambda: "token")
    db = SimpleNamespace(initialize=AsyncMock(return_value=True), shutdown=AsyncMock())
    monkeypatch.setattr(main, "get_db", lambda: db)
    bot = MagicMock()
    bot.is_closed.return_value = True
    monkeypatch.setattr(main, "create_bot", lambda: bot)
    core = SimpleNamespace(load=AsyncMock())
    monkeypatch.setattr(main, "build_core", lambda _bot: core)
    setup = MagicMock()
    monkeypatch.setattr(main.relay_listener, "setup", setup)
    start = AsyncMock()
    monkeypatch.setattr(main, "start_bot", start)

    assert await main.async_main() == 0

    core.load.assert_awaited_once()
    setup.assert_called_once_with(bot, core)
    start.assert_awaited_once_with(bot, "token")
    db.shutdown.assert_awaited_once()


def test_main_returns_async_exit_code(monkeypatch):
    monkeypatch.setattr(main, "async_main", AsyncMock(return_value=3))
    assert main.main() == 3


def test_main_reports_unexpected_errors(monkeypatch):
    monkeypatch.setattr(main, "async_main", AsyncMock(side_effect=RuntimeError("boom")))
    assert main.main() == 1


@pytest.mark.asyncio
async def test_start_bot_reraises_login_failure():
    bot = MagicMock()
    bot.start = AsyncMock(side_effect=main.discord.LoginFailure("bad token"))

    with pytest.raises(main.discord.LoginFailure):
        await main.start_bot(bot, "token")


@pytest.mark.asyncio
async def test_async_main_reports_load_failure(monkeypatch):
    monkeypatch.setattr(main, "load_environment", lambda: "token")
    db = SimpleNamespace(initialize=AsyncMock(return_value=True), shutdown=AsyncMock())
    monkeypatch.setattr(main, "get_db", lambda: db)
    bot = MagicMock()
    bot.is_closed.return_value = False
    bot.close = AsyncMock()
    monkeypatch.setattr(main, "create_bot", lambda: bot)
    monkeypatch.setattr(main, "build_core", lambda _bot: SimpleNamespace(load=AsyncMock(side_effect=RuntimeError("store down"))))

    assert await main.async_main() == 1
    bot.close.assert_awaited_once()
    db.shutdown.assert_awaited_once()
