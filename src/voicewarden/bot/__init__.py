"""
Discord integration for VoiceWarden.

This package adapts py-cord objects and events to the host-agnostic core:

- **discord_host**: ``HostClient`` implementation over a ``discord.Bot``
- **message_adapter**: Conversion of ``discord.Message`` into ``ChatMessage``
- **cogs**: Event listeners feeding the registry and the command router
"""
