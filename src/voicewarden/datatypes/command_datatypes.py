"""
Declarations for remote (chat text) commands and console menu items.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from voicewarden.datatypes.message_datatypes import ChatMessage


class OptionType(Enum):
    """Argument types understood by the external command router."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    USER = "user"
    CHANNEL = "channel"
    ROLE = "role"
    MENTIONABLE = "mentionable"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class CommandOption:
    name: str
    type: OptionType = OptionType.STRING
    required: bool = False
    description: str = ""


CommandArgs = dict[str, Any]
CommandExecutor = Callable[[CommandArgs, ChatMessage, str], "bool | None | Awaitable[bool | None]"]
PermissionCheck = Callable[[ChatMessage], bool]


@dataclass(slots=True)
class ExternalCommand:
    """A command a module exposes to remote chat control.

    Attributes:
        name: Command name; may contain spaces ("kick banned").
        execute: Called with the parsed arguments, the triggering message and
            the channel the command acts on. May be a coroutine function.
        description: Human-readable summary.
        options: Positional arguments in order.
        aliases: Additional names matched like ``name``.
        check_permission: Authorization predicate; None means anyone.
    """
    name: str
    execute: CommandExecutor
    description: str = ""
    options: list[CommandOption] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)
    check_permission: PermissionCheck | None = None

    @property
    def names(self) -> list[str]:
        return [self.name, *self.aliases]


@dataclass(slots=True)
class MenuItem:
    """An entry a module contributes to a context or toolbox menu.

    Attributes:
        item_id: Stable identifier used to run the item from the console.
        label: Text shown to the operator.
        action: Callback run when the item is chosen; None for display-only items.
        checked: Toggle state for checkbox items, None otherwise.
        disabled: Whether the item is informational only.
    """
    item_id: str
    label: str
    action: Callable[[], Any] | None = None
    checked: bool | None = None
    disabled: bool = False
