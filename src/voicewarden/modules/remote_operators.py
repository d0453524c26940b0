"""
Remote control commands for channel owners and configured operators.

``info`` and ``claim`` are open to anyone the router lets through; every
other command requires the sender to own the channel the message was posted
in, or to be listed in ``remote_operator_list`` while
``remote_operators_enabled`` is on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from voicewarden.core.command_router import is_valid_number
from voicewarden.core.module_registry import Module
from voicewarden.datatypes.command_datatypes import (
    CommandArgs,
    CommandOption,
    ExternalCommand,
    MenuItem,
    OptionType,
)
from voicewarden.datatypes.message_datatypes import ChatMessage
from voicewarden.util.lists import get_newline_list
from voicewarden.util.logger import get_logger

if TYPE_CHECKING:
    from voicewarden.core.app_context import AppContext
    from voicewarden.modules.bans import BansModule
    from voicewarden.modules.blacklist import BlacklistModule
    from voicewarden.modules.ownership import OwnershipActions, OwnershipModule
    from voicewarden.modules.whitelist import WhitelistModule

logger = get_logger("remote_operators")

ChannelAction = Callable[[str], Any]
UserAction = Callable[[str, ChatMessage, str], Any]


class RemoteOperatorsModule(Module):
    name = "RemoteOperatorsModule"
    description = "Allows authorized users to control the voice channel remotely."
    required_dependencies = ("OwnershipModule", "BansModule", "WhitelistModule", "BlacklistModule")

    def __init__(self) -> None:
        super().__init__()
        self._ownership: OwnershipModule | None = None
        self._bans: BansModule | None = None
        self._whitelist: WhitelistModule | None = None
        self._blacklist: BlacklistModule | None = None

    def init(self, context: AppContext) -> None:
        super().init(context)
        self._ownership = context.module("OwnershipModule")  # type: ignore[assignment]
        self._bans = context.module("BansModule")  # type: ignore[assignment]
        self._whitelist = context.module("WhitelistModule")  # type: ignore[assignment]
        self._blacklist = context.module("BlacklistModule")  # type: ignore[assignment]
        logger.info("[REMOTE OPERATORS] Initializing with %d operator(s)", len(self.operators()))

    # ==================== Permission ====================

    def operators(self) -> list[str]:
        return get_newline_list(self.context.settings.get("remote_operator_list"))

    def is_operator(self, user_id: str) -> bool:
        return user_id in self.operators()

    def check_permission(self, message: ChatMessage) -> bool:
        context = self.context
        if context.state.is_owner(message.author_id, message.channel_id):
            return True
        return bool(context.settings.get("remote_operators_enabled", True)) and self.is_operator(message.author_id)

    # ==================== Command factories ====================

    @property
    def actions(self) -> OwnershipActions | None:
        return self._ownership.actions if self._ownership is not None else None

    def _channel_command(self, name: str, description: str, action: ChannelAction, restricted: bool = True) -> ExternalCommand:
        def execute(args: CommandArgs, message: ChatMessage, channel_id: str) -> bool:
            action(channel_id)
            return True

        return ExternalCommand(
            name=name,
            description=description,
            execute=execute,
            check_permission=self.check_permission if restricted else None,
        )

    def _user_command(self, name: str, description: str, action: UserAction) -> ExternalCommand:
        def execute(args: CommandArgs, message: ChatMessage, channel_id: str) -> bool:
            target = args.get("target")
            if not target:
                return False
            action(target, message, channel_id)
            return True

        return ExternalCommand(
            name=name,
            description=description,
            options=[CommandOption("target", OptionType.USER, required=True, description=f"User to {name}")],
            execute=execute,
            check_permission=self.check_permission,
        )

    def _execute_name(self, args: CommandArgs, message: ChatMessage, channel_id: str) -> bool:
        name = args.get("target")
        if not name or self.actions is None:
            return False
        self.actions.rename_channel(channel_id, name)
        return True

    def _execute_size(self, args: CommandArgs, message: ChatMessage, channel_id: str) -> bool:
        size = args.get("target")
        if not is_valid_number(size) or self.actions is None:
            self.context.notifier.send_local("⚠️ Size must be a number", message.channel_id)
            return False
        self.actions.set_channel_size(channel_id, int(size))
        return True

    def get_external_commands(self) -> list[ExternalCommand]:
        actions = self.actions
        bans = self._bans
        whitelist = self._whitelist
        blacklist = self._blacklist
        if actions is None or bans is None or whitelist is None or blacklist is None:
            return []

        return [
            self._channel_command("info", "Request channel info remotely", actions.sync_info, restricted=False),
            self._channel_command("claim", "Claim the current channel", actions.claim_channel, restricted=False),
            self._channel_command("lock", "Lock channel remotely", actions.lock_channel),
            self._channel_command("unlock", "Unlock channel remotely", actions.unlock_channel),
            self._channel_command("reset", "Reset channel remotely", actions.reset_channel),
            ExternalCommand(
                name="name",
                description="Rename channel remotely",
                options=[CommandOption("target", OptionType.STRING, required=True, description="New name")],
                execute=self._execute_name,
                check_permission=self.check_permission,
            ),
            ExternalCommand(
                name="size",
                description="Set channel size remotely",
                options=[CommandOption("target", OptionType.INTEGER, required=True, description="Limit")],
                execute=self._execute_size,
                check_permission=self.check_permission,
            ),
            self._channel_command("kick banned", "Kick all banned users remotely", actions.kick_banned_users),
            self._user_command("kick", "Kick user remotely", lambda uid, msg, cid: actions.kick_users(cid, [uid])),
            self._user_command(
                "ban",
                "Ban user remotely",
                lambda uid, msg, cid: bans.enforce_ban_policy(
                    uid, cid, kick_first=True, reason=f"Remote action by {msg.author_name or msg.author_id}"
                ),
            ),
            self._user_command("unban", "Unban user remotely", lambda uid, msg, cid: bans.unban_users([uid], cid)),
            self._user_command("permit", "Permit user remotely", lambda uid, msg, cid: whitelist.permit_users([uid], cid)),
            self._user_command("unpermit", "Unpermit user remotely", lambda uid, msg, cid: whitelist.unpermit_users([uid], cid)),
            self._user_command("whitelist", "Whitelist user remotely", lambda uid, msg, cid: whitelist.whitelist_users([uid], cid)),
            self._user_command("unwhitelist", "Unwhitelist user remotely", lambda uid, msg, cid: whitelist.unwhitelist_users([uid], cid)),
            self._user_command("blacklist", "Blacklist user remotely", lambda uid, msg, cid: blacklist.blacklist_users([uid], cid)),
            self._user_command("unblacklist", "Unblacklist user remotely", lambda uid, msg, cid: blacklist.unblacklist_users([uid], cid)),
        ]

    # ==================== Menus ====================

    def get_toolbox_menu_items(self, channel_id: str | None = None) -> list[MenuItem | None]:
        settings = self.context.settings
        return [
            MenuItem(
                item_id="remote-operators-toggle",
                label="Enable remote operators",
                checked=bool(settings.get("remote_operators_enabled", True)),
                action=lambda: settings.toggle("remote_operators_enabled"),
            )
        ]
