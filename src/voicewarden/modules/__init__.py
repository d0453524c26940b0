"""
Policy modules plugged into the module registry.

Each module is independent and cooperates with the others only through the
event bus, the action queue and explicit dependency lookups made in ``init``.
"""

from __future__ import annotations

from voicewarden.core.module_registry import Module


def build_default_modules() -> list[Module]:
    """Instantiate every bundled module in a fresh, unregistered state."""
    from voicewarden.modules.auto_claim import AutoClaimModule
    from voicewarden.modules.bans import BansModule
    from voicewarden.modules.blacklist import BlacklistModule
    from voicewarden.modules.channel_name_rotation import ChannelNameRotationModule
    from voicewarden.modules.command_cleanup import CommandCleanupModule
    from voicewarden.modules.ownership import OwnershipModule
    from voicewarden.modules.remote_operators import RemoteOperatorsModule
    from voicewarden.modules.role_enforcement import RoleEnforcementModule
    from voicewarden.modules.vote_banning import VoteBanningModule
    from voicewarden.modules.whitelist import WhitelistModule

    return [
        OwnershipModule(),
        ChannelNameRotationModule(),
        BlacklistModule(),
        WhitelistModule(),
        BansModule(),
        RoleEnforcementModule(),
        AutoClaimModule(),
        VoteBanningModule(),
        RemoteOperatorsModule(),
        CommandCleanupModule(),
    ]
