"""Placeholder substitution for command and notification templates.

Supported placeholders:

- ``{me}``: mention of the local actor
- ``{channel}`` / ``{channel_id}`` / ``{channel_name}``
- ``{guild_id}`` / ``{guild_name}``
- ``{user}`` / ``{user_id}`` / ``{user_name}``
- ``{user_id_new}``: the replacing user in rotation messages
- ``{size}``, ``{reason}``, ``{name}``, ``{action}``

Placeholders without a value are left untouched so that a misconfigured
template is visible in the sent text rather than silently blanked.
"""

from __future__ import annotations

from typing import Any


def format_command(
    template: str,
    channel_id: str,
    *,
    me_id: str | None = None,
    user_id: str | None = None,
    user_name: str | None = None,
    new_user_id: str | None = None,
    size: Any = None,
    reason: str | None = None,
    name: str | None = None,
    action: str | None = None,
    channel_name: str | None = None,
    guild_id: str | None = None,
    guild_name: str | None = None,
) -> str:
    result = template or ""

    result = result.replace("{me}", f"<@{me_id or ''}>")
    result = result.replace("{channel}", f"<#{channel_id}>")
    result = result.replace("{channel_id}", channel_id)

    replacements: list[tuple[str, Any]] = [
        ("{user_id_new}", new_user_id),
        ("{user_name}", user_name),
        ("{user_id}", user_id),
        ("{user}", f"<@{user_id}>" if user_id else None),
        ("{size}", size),
        ("{reason}", reason),
        ("{name}", name),
        ("{action}", action),
        ("{channel_name}", channel_name),
        ("{guild_id}", guild_id),
        ("{guild_name}", guild_name),
    ]
    for placeholder, value in replacements:
        if value is not None and value != "":
            result = result.replace(placeholder, str(value))

    return result
