from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from warden import main as warden_main
from warden.errors import CatalogCorruptedError


def test_build_intents_enables_members_and_message_content():
    intents = warden_main.build_intents()

    assert intents.members is True
    assert intents.message_content is True
    assert intents.guilds is True


def test_resolve_base_dir_honours_env(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("WARDEN_HOME", str(tmp_path))

    assert warden_main.resolve_base_dir() == tmp_path.resolve()


def test_load_environment_without_token_exits(monkeypatch, tmp_path: Path):
    monkeypatch.delenv("DISCORD_BOT_TOKEN", raising=False)

    with pytest.raises(SystemExit):
        warden_main.load_environment(tmp_path)


def test_load_environment_reads_dotenv(monkeypatch, tmp_path: Path):
    monkeypatch.delenv("DISCORD_BOT_TOKEN", raising=False)
    (tmp_path / ".env").write_text("DISCORD_BOT_TOKEN=abc123\n", encoding="utf-8")

    assert warden_main.load_environment(tmp_path) == "abc123"
    monkeypatch.delenv("DISCORD_BOT_TOKEN", raising=False)


@pytest.mark.asyncio
async def test_build_runtime_refuses_corrupted_catalog(tmp_path: Path):
    document = tmp_path / "commands.json"
    document.write_text("not json", encoding="utf-8")
    config = SimpleNamespace(database_path=tmp_path / "warden.db", custom_commands_path=document)

    with pytest.raises(CatalogCorruptedError):
        await warden_main.build_runtime(config)

    assert document.read_text(encoding="utf-8") == "not json"


@pytest.mark.asyncio
async def test_async_main_returns_error_code_for_corrupted_catalog(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(warden_main, "resolve_base_dir", lambda: tmp_path)
    monkeypatch.setattr(warden_main, "load_environment", lambda base_dir: "token")
    monkeypatch.setattr(warden_main, "build_runtime", AsyncMock(side_effect=CatalogCorruptedError("bad")))
    monkeypatch.chdir(tmp_path)

    assert await warden_main.async_main() == 1


@pytest.mark.asyncio
async def test_async_main_reads_config_from_base_dir_not_cwd(monkeypatch, tmp_path: Path):
    base_dir = tmp_path / "home"
    (base_dir / "config").mkdir(parents=True)
    (base_dir / "config" / "app_config.yml").write_text("custom_commands:\n  prefix: \"?\"\n", encoding="utf-8")
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    build_runtime = AsyncMock(side_effect=CatalogCorruptedError("bad"))
    monkeypatch.setattr(warden_main, "resolve_base_dir", lambda: base_dir)
    monkeypatch.setattr(warden_main, "load_environment", lambda base_dir: "token")
    monkeypatch.setattr(warden_main, "build_runtime", build_runtime)
    monkeypatch.chdir(elsewhere)

    assert await warden_main.async_main() == 1

    config = build_runtime.await_args.args[0]
    assert config.config_path == base_dir / "config" / "app_config.yml"
    assert config.command_prefix == "?"


@pytest.mark.asyncio
async def test_shutdown_runtime_stops_everything():
    bot = MagicMock()
    bot.is_closed.return_value = False
    bot.close = AsyncMock()
    runtime = SimpleNamespace(
        scheduler=SimpleNamespace(shutdown=AsyncMock()),
        catalog=SimpleNamespace(loaded=True, save=AsyncMock()),
        bot=bot,
        connection=SimpleNamespace(close=AsyncMock()),
    )

    await warden_main.shutdown_runtime(runtime)

    runtime.scheduler.shutdown.assert_awaited_once()
    runtime.catalog.save.assert_awaited_once()
    bot.close.assert_awaited_once()
    runtime.connection.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_shutdown_runtime_closes_database_when_scheduler_fails():
    bot = MagicMock()
    bot.is_closed.return_value = True
    runtime = SimpleNamespace(
        scheduler=SimpleNamespace(shutdown=AsyncMock(side_effect=RuntimeError("boom"))),
        catalog=SimpleNamespace(loaded=False, save=AsyncMock()),
        bot=bot,
        connection=SimpleNamespace(close=AsyncMock()),
    )

    await warden_main.shutdown_runtime(runtime)

    runtime.catalog.save.assert_not_awaited()
    runtime.connection.close.assert_awaited_once()
