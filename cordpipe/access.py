"""
Guild Access Filter for cordpipe.

Decides from the raw event arguments whether the guild an occurrence came
from may be processed at all.

Semantics:
- No allow-list configured = every guild is allowed
- With an allow-list configured, occurrences without a guild scope (DMs,
  ready, ...) are not in it and are rejected
- A deny-listed guild is always rejected, whatever the allow-list says
"""

import logging
from typing import Any, Iterable, Optional, Sequence, Set

import discord

logger = logging.getLogger(__name__)


def _as_guild_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return None


def get_guild_id(occurrence: Sequence[Any]) -> Optional[int]:
    """
    Find the originating guild id in the raw event arguments.

    Checks each argument in order for a discord.Guild, an object carrying a
    `guild` (messages, members, interactions), or a `guild_id` attribute.

    Returns:
        The guild id, or None if the occurrence has no guild scope
    """
    for arg in occurrence:
        if isinstance(arg, discord.Guild):
            return arg.id

        guild = getattr(arg, "guild", None)
        if guild is not None:
            guild_id = _as_guild_id(getattr(guild, "id", None))
            if guild_id is not None:
                return guild_id

        guild_id = _as_guild_id(getattr(arg, "guild_id", None))
        if guild_id is not None:
            return guild_id

    return None


class AccessService:
    """Guild allow-list / deny-list check."""

    def __init__(
        self,
        allow_guilds: Optional[Iterable[int]] = None,
        deny_guilds: Optional[Iterable[int]] = None,
    ):
        self.allow_guilds: Set[int] = set(allow_guilds or ())
        self.deny_guilds: Set[int] = set(deny_guilds or ())

    def is_allow_guild(self, occurrence: Sequence[Any]) -> bool:
        if not self.allow_guilds:
            return True
        guild_id = get_guild_id(occurrence)
        return guild_id is not None and guild_id in self.allow_guilds

    def is_deny_guild(self, occurrence: Sequence[Any]) -> bool:
        if not self.deny_guilds:
            return False
        guild_id = get_guild_id(occurrence)
        return guild_id is not None and guild_id in self.deny_guilds

    def is_allowed(self, occurrence: Sequence[Any]) -> bool:
        """
        Combined access decision.

        Both checks always run; the result is
        (allowed or no allow-list) and not denied.
        """
        allowed = self.is_allow_guild(occurrence)
        denied = self.is_deny_guild(occurrence)
        if not allowed or denied:
            logger.debug(
                f"Guild {get_guild_id(occurrence)} filtered "
                f"(allowed: {allowed}, denied: {denied})"
            )
        return allowed and not denied
