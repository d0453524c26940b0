"""
VoiceWarden
===========

A Discord bot that keeps control of temporary voice channels run by an
external voice bot: it tracks who owns which channel, enforces bans, permits,
role requirements and vote bans, and relays remote commands from channel
owners and configured operators.
"""

import os
import sys
from pathlib import Path

def resolve_base_dir() -> Path:
    """Determine the base directory of the project.
    Resolution order:
    1. VOICEWARDEN_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("VOICEWARDEN_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]

BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from dotenv import load_dotenv

from voicewarden.configuration.app_configuration import CONFIG_PATH, AppConfig
from voicewarden.core.app_context import AppContext, create_context
from voicewarden.database.db_connection import DB_PATH
from voicewarden.database.key_value_store import KeyValueStore
from voicewarden.modules import build_default_modules
from voicewarden.state.state_manager import StateManager
from voicewarden.ui.console import ConsoleControl, close_bot_instance, console_session
from voicewarden.util.logger import get_logger, handle_exception


logger = get_logger("main")

RESTART_EXIT_CODE = 42


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Intents for voice state tracking, member roles and reading the voice bot's replies."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.members = True
    intents.voice_states = True
    return intents


def create_bot() -> discord.Bot:
    """Instantiate the Discord bot; cogs are loaded once the context exists."""
    return discord.Bot(intents=build_intents())


def load_cogs(discord_bot_instance: discord.Bot, context: AppContext) -> None:
    """Register all operational cogs with the provided Discord bot instance."""
    from voicewarden.bot.cogs import voice_listener

    voice_listener.setup(discord_bot_instance, context)

    logger.info("All cogs loaded successfully.")


async def build_runtime(bot: discord.Bot) -> tuple[AppContext, KeyValueStore]:
    """Open the database and wire the application context around the bot."""
    from voicewarden.bot.discord_host import DiscordHost

    store = KeyValueStore()
    await store.initialize(DB_PATH)

    settings = AppConfig(CONFIG_PATH)
    context = create_context(settings, DiscordHost(bot), state=StateManager(store))
    for module in build_default_modules():
        context.registry.register(module)

    load_cogs(bot, context)
    return context, store


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Start the Discord bot and handle lifecycle logging around the connection."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(
    bot: discord.Bot | None = None,
    context: AppContext | None = None,
    store: KeyValueStore | None = None,
) -> None:
    """Stop modules, drain background work, flush state and close the bot."""
    if context is not None:
        try:
            context.registry.stop()
        except Exception as exc:
            logger.exception("Error while stopping modules: %s", exc)

        await context.queue.shutdown()
        await context.scheduler.shutdown()

        try:
            await context.state.shutdown()
        except Exception as exc:
            logger.exception("Error during state shutdown: %s", exc)

        await context.notifier.shutdown()

    if store is not None:
        await store.close()

    await close_bot_instance(bot, log_close=True)

    logger.info("Shutdown complete.")


async def run_bot_session(
    bot: discord.Bot,
    token: str,
    control: ConsoleControl,
    store: KeyValueStore | None = None,
) -> int:
    """Run the bot alongside the console, returning an exit code."""
    control.set_bot(bot)
    exit_code = 0

    try:
        async with console_session(control):
            try:
                await start_bot(bot, token)
            except asyncio.CancelledError:
                logger.info("Bot start cancelled; proceeding to shutdown")
            except Exception as exc:
                logger.critical("Discord bot runtime error: %s", exc)
                exit_code = 1
    finally:
        control.set_bot(None)
        await shutdown_runtime(bot, control.context, store)

    return exit_code


async def async_main() -> int:
    """Bootstrap the bot, console and modules, returning an exit code."""
    token = load_environment()

    try:
        bot = create_bot()
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        return 1

    try:
        logger.info("Initializing database and application context...")
        context, store = await build_runtime(bot)
    except Exception as exc:
        logger.critical("Failed to initialize runtime: %s", exc)
        await close_bot_instance(bot)
        return 1

    control = ConsoleControl(context)
    exit_code = await run_bot_session(bot, token, control, store)

    if control.is_restart_requested():
        logger.info("Restart requested, returning exit code %d to trigger restart", RESTART_EXIT_CODE)
        return RESTART_EXIT_CODE

    return exit_code


def main() -> int:
    """Entrypoint that orchestrates the async runtime and returns the process code.

    Returns 42 to trigger a restart.
    """
    logger.info("Starting VoiceWarden…")
    try:
        exit_code = asyncio.run(async_main())

        if exit_code == RESTART_EXIT_CODE:
            logger.info("Restart requested; replacing current process with new instance.")
            # execv keeps stdin/stdout/stderr so the console survives the restart
            os.execv(sys.executable, [sys.executable] + sys.argv)
            return 0  # pragma: no cover

        return exit_code
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        if code is None:
            return 1
        try:
            return int(code)
        except (ValueError, TypeError):
            logger.warning("SystemExit.code is not an int (%r); defaulting to 1", code)
            return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.excepthook = handle_exception
    print(f"Exited with code: {main()}")
