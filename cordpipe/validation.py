"""
Validation Recovery - Turns a ValidationFailure into a user-facing reply.

Resolution order:
1. A custom error-message factory, if one is configured
2. The default embed listing every violated constraint
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import discord

from cordpipe.errors import ValidationFailure

logger = logging.getLogger(__name__)

ERROR_COLOR = 0xE74C3C
MAX_EMBED_FIELDS = 25
MAX_FIELD_VALUE = 1024


@dataclass
class ReplyPayload:
    """Outbound reply content (text and/or embed)."""
    content: Optional[str] = None
    embed: Optional[discord.Embed] = None

    def as_kwargs(self) -> dict:
        kwargs = {}
        if self.content is not None:
            kwargs["content"] = self.content
        if self.embed is not None:
            kwargs["embed"] = self.embed
        return kwargs


ErrorMessageFactory = Callable[[ValidationFailure, Optional[str]], ReplyPayload]


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


class ValidationProvider:
    """Builds reply payloads for validation failures."""

    def __init__(self, error_message: Optional[ErrorMessageFactory] = None):
        self._error_message = error_message

    def set_error_message(self, factory: Optional[ErrorMessageFactory]) -> None:
        """
        Install (or clear with None) a custom error-message factory.

        The factory must return a ReplyPayload; its output is always used
        and the default embed is only built when no factory is installed.
        """
        self._error_message = factory

    def get_error_message(
        self,
        failure: ValidationFailure,
        content: Optional[str],
    ) -> Optional[ReplyPayload]:
        """
        Custom payload, or None when no factory is configured.

        Raises:
            TypeError: If the configured factory returns anything other
                than a ReplyPayload
        """
        if self._error_message is None:
            return None
        payload = self._error_message(failure, content)
        if not isinstance(payload, ReplyPayload):
            raise TypeError(
                f"Error message factory returned {type(payload).__name__}; expected ReplyPayload"
            )
        return payload

    def get_default_error_message(
        self,
        failure: ValidationFailure,
        content: Optional[str],
    ) -> ReplyPayload:
        """
        Render every violation as an embed field.

        Args:
            failure: The validation failure raised by the pipe chain
            content: The original message content

        Returns:
            ReplyPayload with an error embed
        """
        embed = discord.Embed(
            title="Invalid input",
            description=_truncate(f"`{content}`", 4096) if content else None,
            color=ERROR_COLOR,
        )
        for violation in failure.violations[:MAX_EMBED_FIELDS]:
            value = violation.message or f"violates {violation.rule}"
            embed.add_field(
                name=_truncate(f"{violation.field} ({violation.rule})", 256),
                value=_truncate(value, MAX_FIELD_VALUE),
                inline=False,
            )
        return ReplyPayload(embed=embed)

    def recover(self, failure: ValidationFailure, content: Optional[str]) -> ReplyPayload:
        """Custom error message first, default embed otherwise."""
        payload = self.get_error_message(failure, content)
        if payload is None:
            payload = self.get_default_error_message(failure, content)
        return payload


async def send_reply(message: Any, payload: ReplyPayload) -> Any:
    """Send a payload back on the message it answers."""
    result = message.reply(**payload.as_kwargs())
    if inspect.isawaitable(result):
        result = await result
    return result
