"""
Module lifecycle, dependency ordering and the typed event bus.

Modules subclass ``Module`` and override only the hooks they need; every hook
has a no-op default so dispatch can iterate the full module list without
probing for optional methods. The registry resolves a dependency order once,
in ``init``, and uses that order for every later hook dispatch and menu query.

Failures never cross module boundaries: an exception raised by one module's
hook or one listener is logged and delivery continues with the rest.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable, Iterable

from voicewarden.classification.bot_response import classify
from voicewarden.datatypes.command_datatypes import ExternalCommand, MenuItem
from voicewarden.datatypes.event_datatypes import (
    BotResponseType,
    ClassifiedResponse,
    CoreEvent,
    ModuleInitialized,
)
from voicewarden.datatypes.message_datatypes import ChannelRecord, ChatMessage, VoiceStateChange
from voicewarden.util.logger import get_logger

if TYPE_CHECKING:
    from voicewarden.core.app_context import AppContext

logger = get_logger("module_registry")

Listener = Callable[[Any], None]


class Module:
    """Base class for registry modules.

    Attributes:
        name: Unique module name used for dependency wiring.
        description: Human-readable summary.
        required_dependencies: Names that must be initialized before this module.
        optional_dependencies: Names initialized first when present.
    """

    name: str = ""
    description: str = ""
    required_dependencies: tuple[str, ...] = ()
    optional_dependencies: tuple[str, ...] = ()

    def __init__(self) -> None:
        self._context: AppContext | None = None

    @property
    def context(self) -> AppContext:
        if self._context is None:
            raise RuntimeError(f"{self.name} used before init()")
        return self._context

    @property
    def is_initialized(self) -> bool:
        return self._context is not None

    # -------------------- Lifecycle --------------------

    def init(self, context: AppContext) -> None:
        self._context = context

    def stop(self) -> None:
        pass

    # -------------------- Event hooks --------------------

    def on_voice_state_update(self, change: VoiceStateChange) -> None:
        pass

    def on_message_create(self, message: ChatMessage) -> None:
        pass

    def on_custom_event(self, event: CoreEvent, payload: Any) -> None:
        pass

    # -------------------- Menu hooks --------------------

    def get_user_menu_items(self, user_id: str, channel_id: str | None = None) -> list[MenuItem | None]:
        return []

    def get_channel_menu_items(self, channel: ChannelRecord) -> list[MenuItem | None]:
        return []

    def get_guild_menu_items(self, guild_id: str) -> list[MenuItem | None]:
        return []

    def get_toolbox_menu_items(self, channel_id: str | None = None) -> list[MenuItem | None]:
        return []

    # -------------------- Remote commands --------------------

    def get_external_commands(self) -> list[ExternalCommand]:
        return []


def resolve_load_order(modules: Iterable[Module]) -> list[Module]:
    """Order modules so that every dependency precedes its dependents.

    Depth-first search over required and optional dependency edges. Re-entering
    a node that is still being visited means a cycle: it is logged and treated
    as already resolved, so the result always contains every module exactly
    once. Dependencies naming an unregistered module are skipped.
    """
    module_list = list(modules)
    by_name = {module.name: module for module in module_list}
    ordered: list[Module] = []
    visited: set[str] = set()
    visiting: set[str] = set()

    def visit(module: Module) -> None:
        if module.name in visited:
            return
        if module.name in visiting:
            logger.warning("[MODULE REGISTRY] Circular dependency detected involving %s", module.name)
            return

        visiting.add(module.name)
        for dependency in (*module.required_dependencies, *module.optional_dependencies):
            dependency_module = by_name.get(dependency)
            if dependency_module is None:
                if dependency in module.required_dependencies:
                    logger.warning(
                        "[MODULE REGISTRY] %s requires missing module %s; continuing without it",
                        module.name, dependency,
                    )
                continue
            visit(dependency_module)
        visiting.discard(module.name)

        visited.add(module.name)
        ordered.append(module)

    for module in module_list:
        visit(module)

    return ordered


class ModuleRegistry:
    """Dependency-ordered plugin loader, event bus and menu/command aggregator."""

    def __init__(self) -> None:
        self._modules: list[Module] = []
        self._listeners: dict[CoreEvent, list[Listener]] = defaultdict(list)
        self._initialized = False
        self.context: AppContext | None = None

    @property
    def modules(self) -> tuple[Module, ...]:
        return tuple(self._modules)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # ==================== Lifecycle ====================

    def register(self, module: Module) -> bool:
        """Add a module; duplicate names and registration after ``init`` are ignored."""
        if self._initialized:
            logger.warning("[MODULE REGISTRY] Cannot register %s after init", module.name)
            return False
        if any(existing.name == module.name for existing in self._modules):
            logger.warning("[MODULE REGISTRY] Module %s is already registered", module.name)
            return False
        self._modules.append(module)
        return True

    def get_module(self, name: str) -> Module | None:
        """Read-only lookup of a registered module by name."""
        for module in self._modules:
            if module.name == name:
                return module
        return None

    def init(self, context: AppContext) -> None:
        """Resolve the load order and initialize every module in it."""
        if self._initialized:
            logger.warning("[MODULE REGISTRY] init() called twice; ignoring")
            return

        self.context = context
        self._modules = resolve_load_order(self._modules)
        self._initialized = True
        logger.info("[MODULE REGISTRY] Load order: %s", ", ".join(m.name for m in self._modules))

        for module in self._modules:
            try:
                module.init(context)
            except Exception:
                logger.exception("[MODULE REGISTRY] Failed to initialize %s", module.name)
                continue
            self.dispatch(CoreEvent.MODULE_INIT, ModuleInitialized(module_name=module.name))

    def stop(self) -> None:
        """Stop every module, then clear listeners and modules so the registry can be reused."""
        for module in self._modules:
            try:
                module.stop()
            except Exception:
                logger.exception("[MODULE REGISTRY] Error while stopping %s", module.name)

        self._listeners.clear()
        self._modules.clear()
        self._initialized = False
        self.context = None

    # ==================== Event bus ====================

    def on(self, event: CoreEvent, listener: Listener) -> Callable[[], None]:
        """Subscribe to an event; returns a callable that unsubscribes."""
        self._listeners[event].append(listener)
        return lambda: self.off(event, listener)

    def off(self, event: CoreEvent, listener: Listener) -> None:
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def dispatch(self, event: CoreEvent, payload: Any) -> None:
        """Deliver to direct listeners, then to every module's ``on_custom_event``."""
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(payload)
            except Exception:
                logger.exception("[MODULE REGISTRY] Listener for %s failed", event)

        for module in list(self._modules):
            try:
                module.on_custom_event(event, payload)
            except Exception:
                logger.exception("[MODULE REGISTRY] %s failed handling %s", module.name, event)

    def dispatch_voice_state_update(self, change: VoiceStateChange) -> None:
        for module in list(self._modules):
            try:
                module.on_voice_state_update(change)
            except Exception:
                logger.exception("[MODULE REGISTRY] %s failed handling a voice state update", module.name)

    def dispatch_message_create(self, message: ChatMessage) -> ClassifiedResponse | None:
        """Run module message hooks, then classify replies from the external bot.

        Returns the classification when the message came from the configured
        external bot, None otherwise. UNKNOWN classifications are not broadcast.
        """
        for module in list(self._modules):
            try:
                module.on_message_create(message)
            except Exception:
                logger.exception("[MODULE REGISTRY] %s failed handling a message", module.name)

        if self.context is None:
            return None
        bot_id = self.context.settings.bot_id
        if not bot_id or message.author_id != bot_id:
            return None

        classified = classify(message, bot_id)
        if classified.type is not BotResponseType.UNKNOWN:
            logger.debug(
                "[MODULE REGISTRY] Reply %s classified as %s (initiator=%s, target=%s)",
                message.message_id, classified.type, classified.initiator_id, classified.target_id,
            )
            self.dispatch(CoreEvent.BOT_REPLY_RECEIVED, classified)
        return classified

    # ==================== Menus and commands ====================

    def _collect(self, hook: Callable[[Module], list[MenuItem | None]]) -> list[MenuItem]:
        items: list[MenuItem] = []
        for module in self._modules:
            try:
                contributed = hook(module) or []
            except Exception:
                logger.exception("[MODULE REGISTRY] %s failed building menu items", module.name)
                continue
            items.extend(item for item in contributed if item is not None)
        return items

    def collect_user_items(self, user_id: str, channel_id: str | None = None) -> list[MenuItem]:
        return self._collect(lambda m: m.get_user_menu_items(user_id, channel_id))

    def collect_channel_items(self, channel: ChannelRecord) -> list[MenuItem]:
        return self._collect(lambda m: m.get_channel_menu_items(channel))

    def collect_guild_items(self, guild_id: str) -> list[MenuItem]:
        return self._collect(lambda m: m.get_guild_menu_items(guild_id))

    def collect_toolbox_items(self, channel_id: str | None = None) -> list[MenuItem]:
        return self._collect(lambda m: m.get_toolbox_menu_items(channel_id))

    def collect_external_commands(self) -> list[ExternalCommand]:
        commands: list[ExternalCommand] = []
        for module in self._modules:
            try:
                commands.extend(module.get_external_commands())
            except Exception:
                logger.exception("[MODULE REGISTRY] %s failed listing external commands", module.name)
        return commands
