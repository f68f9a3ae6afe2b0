"""
Warden Moderation Bot
=====================

Entry point and composition root. Builds the configuration, the SQLite
connection, one sanction store per kind, the sanction scheduler, the feature
registry and the custom command catalog, then hands them to the cogs and
runs the bot until it is stopped.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. WARDEN_HOME environment variable, if set.
    2. If running frozen (PyInstaller, Nuitka), the executable's directory.
    3. Otherwise the repository root, two levels above this package.
    """
    if env_home := os.getenv("WARDEN_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


import asyncio
from dataclasses import dataclass
from typing import Dict

import discord
from dotenv import load_dotenv

from warden.configuration.app_configuration import CONFIG_RELATIVE_PATH, AppConfig
from warden.custom_commands.catalog import CustomCommandCatalog
from warden.custom_commands.registry import build_default_registry
from warden.database.db_connection import ConnectionManager
from warden.datatypes.sanction_datatypes import SanctionKind
from warden.directory.guild_directory import DiscordGuildDirectory
from warden.errors import CatalogCorruptedError
from warden.repositories.sanction_repo import SanctionStore
from warden.scheduler.sanction_scheduler import SanctionExpiryScheduler
from warden.storage.json_document_store import JsonDocumentStore
from warden.util.logger import get_logger, handle_exception

logger = get_logger("main")


@dataclass
class Runtime:
    """Everything the composition root builds, owned for the process lifetime."""

    config: AppConfig
    connection: ConnectionManager
    scheduler: SanctionExpiryScheduler
    catalog: CustomCommandCatalog
    bot: discord.Bot


def load_environment(base_dir: Path) -> str:
    """Load ``.env`` and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=base_dir / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Intents for member joins, guild state and reading custom command invocations."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.members = True
    return intents


def load_cogs(runtime: Runtime, directory: DiscordGuildDirectory) -> None:
    """Register every cog with its dependencies."""
    from warden.bot.cogs import custom_command_cmds, events_listener, sanction_cmds

    sweep_intervals = {kind: runtime.config.sweep_interval(kind) for kind in SanctionKind}

    events_listener.setup(runtime.bot, runtime.scheduler, sweep_intervals)
    sanction_cmds.setup(runtime.bot, runtime.scheduler, directory)
    custom_command_cmds.setup(runtime.bot, runtime.catalog, runtime.config.command_prefix)

    logger.info("All cogs loaded successfully.")


async def build_runtime(config: AppConfig) -> Runtime:
    """
    Open storage and wire the scheduler, catalog and bot together.

    Raises
    ------
    CatalogCorruptedError
        The custom command document exists but cannot be parsed.
    """
    connection = ConnectionManager()
    await connection.open(config.database_path)

    try:
        registry = build_default_registry()
        catalog = CustomCommandCatalog(JsonDocumentStore(config.custom_commands_path), registry)
        await catalog.load()

        bot = discord.Bot(intents=build_intents())
        directory = DiscordGuildDirectory(bot, mute_role_name=config.mute_role_name)
        stores: Dict[SanctionKind, SanctionStore] = {
            kind: SanctionStore(connection, kind) for kind in SanctionKind
        }
        scheduler = SanctionExpiryScheduler(
            directory,
            stores,
            max_concurrent_revocations=config.max_concurrent_revocations,
        )
    except BaseException:
        await connection.close()
        raise

    runtime = Runtime(config=config, connection=connection, scheduler=scheduler, catalog=catalog, bot=bot)
    load_cogs(runtime, directory)
    return runtime


async def shutdown_runtime(runtime: Runtime) -> None:
    """Stop the sweeps, persist the catalog, close the bot and the database."""
    try:
        await runtime.scheduler.shutdown()
    except Exception as exc:
        logger.exception("Error during sanction scheduler shutdown: %s", exc)

    if runtime.catalog.loaded:
        try:
            await runtime.catalog.save()
        except Exception as exc:
            logger.exception("Error saving custom commands during shutdown: %s", exc)

    if not runtime.bot.is_closed():
        await runtime.bot.close()

    await runtime.connection.close()
    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap storage and the bot, run until stopped, and return an exit code."""
    base_dir = resolve_base_dir()
    os.chdir(base_dir)
    token = load_environment(base_dir)
    config = AppConfig(base_dir / CONFIG_RELATIVE_PATH)

    try:
        runtime = await build_runtime(config)
    except CatalogCorruptedError as exc:
        logger.critical("Custom command catalog is corrupted, refusing to start: %s", exc)
        return 1
    except Exception as exc:
        logger.critical("Failed to initialize Warden: %s", exc)
        return 1

    exit_code = 0
    try:
        logger.info("Attempting to connect to Discord…")
        await runtime.bot.start(token)
    except asyncio.CancelledError:
        logger.info("Bot start cancelled; proceeding to shutdown")
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(runtime)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    sys.excepthook = handle_exception
    logger.info("Starting Warden…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
