"""Interactive console utilities for managing the live VoiceWarden bot."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
import inspect
import os

import discord
from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.shortcuts import PromptSession

from voicewarden.core.app_context import AppContext
from voicewarden.datatypes.command_datatypes import MenuItem
from voicewarden.util.logger import get_logger

# Box drawing helpers for aligned console output
BOX_WIDTH = 45

def box_line(char: str) -> str:
    return char * BOX_WIDTH

def box_title(title: str) -> list[str]:
    inner_width = BOX_WIDTH - 2
    pad_left = (inner_width - len(title)) // 2
    pad_right = inner_width - len(title) - pad_left
    return [
        f"╔{'═' * inner_width}╗",
        f"║{' ' * pad_left}{title}{' ' * pad_right}║",
        f"╚{'═' * inner_width}╝"
    ]

logger = get_logger("console")

# Type alias for command handler functions
CommandHandler = Callable[["ConsoleControl", list[str]], Awaitable[None]]

MENU_SCOPES = ("toolbox", "guild", "channel", "user")


@dataclass
class Command:
    """Definition of a console command."""
    name: str
    handler: CommandHandler
    aliases: list[str]
    description: str
    usage: str = ""

    def matches(self, input_cmd: str) -> bool:
        """Check if input matches this command or any alias."""
        return input_cmd == self.name or input_cmd in self.aliases


def console_print(message: str, style: str = "") -> None:
    """Render text via prompt_toolkit without breaking the active prompt."""
    formatted: FormattedText | str
    if style:
        formatted = FormattedText([(style, message)])
    else:
        formatted = message
    print_formatted_text(formatted)


class ConsoleControl:
    """Manage console-driven lifecycle controls for the running Discord bot."""

    def __init__(self, context: AppContext | None = None) -> None:
        self.shutdown_event = asyncio.Event()
        self.restart_event = asyncio.Event()
        self._bot: discord.Bot | None = None
        self.context = context

    def set_bot(self, bot: discord.Bot | None) -> None:
        self._bot = bot

    @property
    def bot(self) -> discord.Bot | None:  # pragma: no cover - trivial getter
        return self._bot

    def request_shutdown(self) -> None:
        self.shutdown_event.set()

    def request_restart(self) -> None:
        self.restart_event.set()

    def stop(self) -> None:
        self.shutdown_event.set()

    def is_shutdown_requested(self) -> bool:
        return self.shutdown_event.is_set()

    def is_restart_requested(self) -> bool:
        return self.restart_event.is_set()


async def close_bot_instance(bot: discord.Bot | None, *, log_close: bool = False) -> None:
    """Close the Discord bot instance if it is active."""
    if bot is None or bot.is_closed():
        return

    try:
        await bot.close()
        if log_close:
            logger.info("Discord bot connection closed.")
    except Exception as exc:  # pragma: no cover
        logger.exception("Error while closing Discord bot: %s", exc)


async def _request_lifecycle_action(control: ConsoleControl, *, restart: bool) -> None:
    """Trigger shutdown or restart from the console, closing the bot safely."""
    if restart:
        control.request_restart()
    control.request_shutdown()
    await close_bot_instance(control.bot)


def _require_context(control: ConsoleControl) -> AppContext | None:
    if control.context is None:
        console_print("Application context not initialized.", "ansiyellow")
    return control.context


# ==================== Command Handlers ====================

async def cmd_help(control: ConsoleControl, args: list[str]) -> None:
    """Display available commands and their descriptions."""
    for line in box_title("Console Commands Reference"):
        console_print(line, "ansigreen")

    for cmd in COMMANDS:
        aliases_str = f" (aliases: {', '.join(cmd.aliases)})" if cmd.aliases else ""
        console_print(f"\n  {cmd.name}{aliases_str}", "ansicyan")
        console_print(f"    {cmd.description}")
        if cmd.usage:
            console_print(f"    Usage: {cmd.usage}", "ansibrightblack")

    console_print("")


async def cmd_status(control: ConsoleControl, args: list[str]) -> None:
    """Display bot connection, queue and module status."""
    for line in box_title("Bot Status"):
        console_print(line, "ansiblue")

    if control.bot:
        bot_status = "🟢 Connected" if not control.bot.is_closed() else "🔴 Disconnected"
        console_print(f"  Bot:        {bot_status}")
        console_print(f"  Guilds:     {len(control.bot.guilds)}")
        console_print(f"  Latency:    {control.bot.latency * 1000:.0f}ms")
    else:
        console_print("  Bot:        🔴 Not initialized")

    context = control.context
    if context is not None:
        settings = context.settings
        queue_state = "enabled" if settings.queue_enabled else "paused"
        console_print(f"  Queue:      {len(context.queue)} pending ({queue_state})")
        console_print(f"  Modules:    {len(context.registry.modules)} ({'running' if context.registry.is_initialized else 'stopped'})")
        console_print(f"  Owned:      {len(context.state.get_all_active_ownerships())} tracked channel(s)")
        console_print(f"  My channel: {context.host.my_voice_channel_id() or 'none'}")
        console_print(f"  Debug:      {'on' if settings.debug_enabled else 'off'}")

    console_print("")


async def cmd_queue(control: ConsoleControl, args: list[str]) -> None:
    """Inspect or control the outbound action queue."""
    context = _require_context(control)
    if context is None:
        return

    action = args[0].lower() if args else "list"
    queue = context.queue
    if action == "list":
        items = queue.pending()
        if not items:
            console_print("Queue is empty.", "ansigreen")
            return
        for line in box_title(f"Pending Actions ({len(items)})"):
            console_print(line, "ansiblue")
        for item in items:
            marker = "⚡" if item.priority else "•"
            console_print(f"  {marker} {item.command}  (channel {item.channel_id}, {item.item_id})")
        console_print("")
    elif action == "pause":
        context.settings.set("queue_enabled", False)
        console_print("Queue paused; items will accumulate.", "ansiyellow")
    elif action == "resume":
        context.settings.set("queue_enabled", True)
        queue.resume()
        console_print("Queue resumed.", "ansigreen")
    elif action == "clear":
        dropped = queue.clear()
        console_print(f"Dropped {dropped} pending item(s).", "ansiyellow")
    else:
        console_print("Usage: queue [list|pause|resume|clear]", "ansired")


async def cmd_owners(control: ConsoleControl, args: list[str]) -> None:
    """List tracked channel ownerships."""
    context = _require_context(control)
    if context is None:
        return

    ownerships = context.state.get_all_active_ownerships()
    if not ownerships:
        console_print("No channel ownerships tracked.", "ansiyellow")
        return

    for line in box_title(f"Channel Owners ({len(ownerships)})"):
        console_print(line, "ansiblue")
    for channel_id, ownership in ownerships.items():
        channel = context.host.get_channel(channel_id)
        name = channel.name if channel else channel_id
        mine = " (you)" if ownership.is_owner(context.me) else ""
        console_print(
            f"  • {name}: creator={ownership.creator_id or '-'} claimant={ownership.claimant_id or '-'}{mine}"
        )
    console_print("")


def collect_menu_items(context: AppContext, scope: str, target: str | None) -> list[MenuItem]:
    registry = context.registry
    if scope == "toolbox":
        return registry.collect_toolbox_items(target or context.host.my_voice_channel_id())
    if scope == "guild":
        return registry.collect_guild_items(target or context.settings.guild_id)
    if scope == "channel":
        channel_id = target or context.host.my_voice_channel_id()
        channel = context.host.get_channel(channel_id) if channel_id else None
        return registry.collect_channel_items(channel) if channel is not None else []
    if scope == "user" and target:
        return registry.collect_user_items(target, context.host.my_voice_channel_id())
    return []


def _describe_item(item: MenuItem) -> str:
    if item.checked is not None:
        prefix = "[x]" if item.checked else "[ ]"
    else:
        prefix = "   " if item.disabled or item.action is None else " > "
    return f"  {prefix} {item.label}  ({item.item_id})"


async def cmd_menu(control: ConsoleControl, args: list[str]) -> None:
    """List or run the menu items modules contribute."""
    context = _require_context(control)
    if context is None:
        return

    run = bool(args) and args[0].lower() == "run"
    rest = args[1:] if run else args
    if run:
        if len(rest) < 2:
            console_print("Usage: menu run <scope> [target] <item_id>", "ansired")
            return
        item_id = rest[-1]
        rest = rest[:-1]

    scope = rest[0].lower() if rest else "toolbox"
    target = rest[1] if len(rest) > 1 else None
    if scope not in MENU_SCOPES:
        console_print(f"Unknown menu scope '{scope}'. Use one of: {', '.join(MENU_SCOPES)}", "ansired")
        return

    items = collect_menu_items(context, scope, target)
    if not run:
        if not items:
            console_print("No menu items.", "ansiyellow")
            return
        for line in box_title(f"{scope.title()} Menu"):
            console_print(line, "ansiblue")
        for item in items:
            console_print(_describe_item(item), "ansibrightblack" if item.disabled else "")
        console_print("")
        return

    item = next((candidate for candidate in items if candidate.item_id == item_id), None)
    if item is None or item.action is None or item.disabled:
        console_print(f"No runnable menu item '{item_id}' in {scope} menu.", "ansired")
        return

    result = item.action()
    if inspect.isawaitable(result):
        result = await result
    console_print(f"Ran '{item.label}'" + (f" -> {result}" if result is not None else ""), "ansigreen")


async def cmd_debug(control: ConsoleControl, args: list[str]) -> None:
    """Toggle local debug output."""
    context = _require_context(control)
    if context is None:
        return
    enabled = context.settings.toggle("enable_debug")
    console_print(f"Debug output {'enabled' if enabled else 'disabled'}.", "ansigreen")


async def cmd_reload(control: ConsoleControl, args: list[str]) -> None:
    """Reload settings from the configuration file."""
    context = _require_context(control)
    if context is None:
        return
    context.settings.reload()
    context.queue.resume()
    console_print("Configuration reloaded.", "ansigreen")


async def cmd_resetstate(control: ConsoleControl, args: list[str]) -> None:
    """Drop every tracked ownership and member configuration."""
    context = _require_context(control)
    if context is None:
        return
    context.state.reset_state()
    console_print("State reset.", "ansiyellow")


async def cmd_clear(control: ConsoleControl, args: list[str]) -> None:
    """Clear the console screen."""
    os.system('cls' if os.name == 'nt' else 'clear')
    console_print("Console cleared.", "ansigreen")


async def cmd_restart(control: ConsoleControl, args: list[str]) -> None:
    """Request a full bot restart."""
    console_print("Restart requested. Bot will shut down and restart...", "ansiyellow")
    await _request_lifecycle_action(control, restart=True)


async def cmd_shutdown(control: ConsoleControl, args: list[str]) -> None:
    """Request graceful bot shutdown."""
    console_print("Shutdown requested.", "ansiyellow")
    await _request_lifecycle_action(control, restart=False)


# ==================== Command Registry ====================

COMMANDS: list[Command] = [
    Command(
        name="help",
        handler=cmd_help,
        aliases=["h", "?"],
        description="Show this help message with all available commands",
    ),
    Command(
        name="status",
        handler=cmd_status,
        aliases=["stat", "info"],
        description="Display bot connection, queue and module status",
    ),
    Command(
        name="queue",
        handler=cmd_queue,
        aliases=["q"],
        description="List, pause, resume or clear the outbound action queue",
        usage="queue [list|pause|resume|clear]",
    ),
    Command(
        name="owners",
        handler=cmd_owners,
        aliases=["o"],
        description="List tracked channel ownerships",
    ),
    Command(
        name="menu",
        handler=cmd_menu,
        aliases=["m"],
        description="List or run module menu items",
        usage="menu [toolbox|guild|channel|user] [target] | menu run <scope> [target] <item_id>",
    ),
    Command(
        name="debug",
        handler=cmd_debug,
        aliases=["dbg"],
        description="Toggle local debug output",
    ),
    Command(
        name="reload",
        handler=cmd_reload,
        aliases=["rl"],
        description="Reload settings from config/app_config.yml",
    ),
    Command(
        name="resetstate",
        handler=cmd_resetstate,
        aliases=["reset"],
        description="Forget every tracked ownership and member configuration",
    ),
    Command(
        name="clear",
        handler=cmd_clear,
        aliases=["cls"],
        description="Clear the console screen",
    ),
    Command(
        name="restart",
        handler=cmd_restart,
        aliases=["reboot"],
        description="Fully restart the entire bot (useful during development)",
    ),
    Command(
        name="shutdown",
        handler=cmd_shutdown,
        aliases=["stop", "quit", "exit"],
        description="Gracefully shut down the bot",
    ),
]


# ==================== Command Dispatcher ====================

async def handle_console_command(command: str, control: ConsoleControl) -> None:
    """Interpret and execute a single console command line."""
    if not command.strip():
        return

    parts = command.strip().split()
    cmd_name = parts[0].lower()
    args = parts[1:]

    for cmd in COMMANDS:
        if cmd.matches(cmd_name):
            try:
                await cmd.handler(control, args)
            except Exception as exc:
                logger.exception("Error executing command '%s': %s", cmd_name, exc)
                console_print(f"Error executing command: {exc}", "ansired")
            return

    console_print(f"Unknown command '{cmd_name}'. Type 'help' for available commands.", "ansired")


async def run_console(control: ConsoleControl) -> None:
    """Run the interactive developer console until shutdown is requested."""
    session = PromptSession("> ")

    for line in box_title("VoiceWarden Interactive Console"):
        console_print(line, "ansigreen")
    console_print("Type 'help' for available commands or 'exit' to quit.\n", "ansibrightblack")

    with patch_stdout():
        while not control.is_shutdown_requested():
            try:
                line = await session.prompt_async()
                if line.strip():
                    await handle_console_command(line, control)
            except (EOFError, KeyboardInterrupt):
                console_print("\nShutdown requested by user.", "ansiyellow")
                control.request_shutdown()
                break
            except Exception as exc:  # pragma: no cover
                logger.exception("Error in console input loop: %s", exc)
                console_print(f"Error: {exc}", "ansired")


@asynccontextmanager
async def console_session(control: ConsoleControl) -> AsyncIterator[ConsoleControl]:
    """Run the console alongside the bot, cleaning up automatically."""
    console_task = asyncio.create_task(run_console(control))
    try:
        yield control
    finally:
        control.stop()
        console_task.cancel()
        try:
            await console_task
        except asyncio.CancelledError:
            pass
