"""
Argument normalization applied before an operation handler runs.

Providers refer to the origin server and channel with loose aliases
("current server", "this channel", empty strings). These are rewritten to
concrete identifiers taken from the inbound message.
"""

import re
from typing import Any, Optional

SERVER_ALIAS_PATTERN = re.compile(r"^(current|this|here)(\s+(server|guild))?$", re.IGNORECASE)
CHANNEL_ALIASES = frozenset({"", "this channel", "current channel"})

# Operations that act on the origin channel even when no channel is given.
CHANNEL_DEFAULTING_OPERATIONS = frozenset({"clearDiscordMessages", "purgeChannel"})


def _is_server_alias(value: Any) -> bool:
    if value is None:
        return True
    if not isinstance(value, str):
        return False
    stripped = value.strip()
    return stripped == "" or bool(SERVER_ALIAS_PATTERN.match(stripped))


def _is_channel_alias(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and value.strip().lower() in CHANNEL_ALIASES


def normalize_args(
    name: str,
    args: Any,
    guild_id: Optional[str],
    channel_id: Optional[str],
) -> dict:
    """Return a normalized copy of ``args``; the input is never mutated."""
    normalized = dict(args) if isinstance(args, dict) else {}

    server = normalized.get("server")
    if _is_server_alias(server):
        if guild_id:
            normalized["server"] = guild_id
        else:
            normalized.pop("server", None)
    elif isinstance(server, str):
        normalized["server"] = server.strip()

    if channel_id:
        if "channel" in normalized:
            if _is_channel_alias(normalized["channel"]):
                normalized["channel"] = channel_id
        elif name in CHANNEL_DEFAULTING_OPERATIONS:
            normalized["channel"] = channel_id

    return normalized
