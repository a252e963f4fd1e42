"""
Dispatch guards for cordpipe.

Guards are veto-capable predicates run after middleware and before any
content processing. They receive the full ExecutionContext so they can
inspect both the static binding and the live occurrence.

This module provides:
- Guard base class and GuardResolver
- Author guards (MessageFromUserGuard, AdminGuard)
- Location guards (ChannelGuard)
- Content guards (CommandPrefixGuard)

Usage:
    from cordpipe.guards import AdminGuard
    from cordpipe.binding import on_event, use_guards

    class Moderation:
        @on_event("message")
        @use_guards(AdminGuard({1234}))
        async def purge(self, message):
            ...
"""

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Set, Union

from cordpipe.binding import ExecutionContext
from cordpipe.errors import GuardRejected

logger = logging.getLogger(__name__)


def _first_arg(context: ExecutionContext) -> Any:
    return context.occurrence[0] if context.occurrence else None


def _author_of(arg: Any) -> Any:
    """Message author or interaction user."""
    author = getattr(arg, "author", None)
    if author is None:
        author = getattr(arg, "user", None)
    return author


# ============================================================================
# Base Guard
# ============================================================================

class Guard(ABC):
    """
    Abstract base class for guards.

    Subclasses implement `can_activate`, which may be a coroutine function.
    Return False or raise to stop dispatch silently. GuardRejected is the
    explicit veto; any other error raised by a guard is treated the same way.
    """

    def __init__(self, name: str = None):
        self.name = name or self.__class__.__name__

    @abstractmethod
    def can_activate(self, context: ExecutionContext) -> bool:
        """
        Determine if dispatch may continue.

        Args:
            context: Binding, event name and raw occurrence

        Returns:
            True to continue, False to stop
        """
        pass

    def __repr__(self) -> str:
        return f"<{self.name}>"


class GuardResolver:
    """Runs global guards, then the binding's guards, stopping at the first veto."""

    def __init__(self, global_guards: Optional[Iterable[Guard]] = None):
        self.global_guards: List[Guard] = list(global_guards or ())

    def add(self, guard: Guard) -> "GuardResolver":
        self.global_guards.append(guard)
        return self

    async def apply_guard(self, context: ExecutionContext) -> bool:
        """
        Apply every guard in order.

        Returns:
            False at the first guard that returns a falsy value or raises
            (GuardRejected or any other error); True otherwise, including
            when there are no guards
        """
        for guard in [*self.global_guards, *context.binding.guards]:
            try:
                result = guard.can_activate(context)
                if inspect.isawaitable(result):
                    result = await result
            except GuardRejected as e:
                logger.debug(f"{guard!r} rejected {context.binding.qualified_name}: {e}")
                return False
            except Exception as e:
                logger.debug(
                    f"{guard!r} failed for {context.binding.qualified_name}, treating as veto: {e!r}"
                )
                return False
            if not result:
                logger.debug(f"{guard!r} denied {context.binding.qualified_name} on '{context.event}'")
                return False
        return True


# ============================================================================
# Author Guards
# ============================================================================

class MessageFromUserGuard(Guard):
    """Only lets through occurrences authored by humans (not bots or webhooks)."""

    def can_activate(self, context: ExecutionContext) -> bool:
        author = _author_of(_first_arg(context))
        if author is None:
            return True
        return not getattr(author, "bot", False)


class AdminGuard(Guard):
    """
    Only allows occurrences from admin users.

    Admin IDs default to CORDPIPE_ADMIN_IDS from the dispatch config.
    """

    def __init__(self, admin_ids: Set[int] = None):
        """
        Initialize admin guard.

        Args:
            admin_ids: Set of admin user IDs. If None, loads from config.
        """
        super().__init__("AdminGuard")
        if admin_ids is None:
            from cordpipe.config import get_config
            admin_ids = get_config().admin_ids
        self._admin_ids = set(admin_ids)

    @property
    def admin_ids(self) -> Set[int]:
        return self._admin_ids

    def add_admin(self, user_id: int) -> None:
        self._admin_ids.add(user_id)

    def remove_admin(self, user_id: int) -> None:
        self._admin_ids.discard(user_id)

    def can_activate(self, context: ExecutionContext) -> bool:
        author = _author_of(_first_arg(context))
        if author is None:
            return False
        return getattr(author, "id", None) in self._admin_ids


# ============================================================================
# Location Guards
# ============================================================================

class ChannelGuard(Guard):
    """Only allows occurrences from specific channel IDs."""

    def __init__(self, channel_ids: Union[int, Set[int], List[int]]):
        super().__init__("ChannelGuard")
        if isinstance(channel_ids, int):
            self._channel_ids = {channel_ids}
        else:
            self._channel_ids = set(channel_ids)

    @property
    def channel_ids(self) -> Set[int]:
        return self._channel_ids

    def can_activate(self, context: ExecutionContext) -> bool:
        first = _first_arg(context)
        channel = getattr(first, "channel", None)
        channel_id = getattr(channel, "id", None)
        if channel_id is None:
            channel_id = getattr(first, "channel_id", None)
        return channel_id in self._channel_ids


# ============================================================================
# Content Guards
# ============================================================================

class CommandPrefixGuard(Guard):
    """Only allows messages whose content starts with a command, e.g. '/greet'."""

    def __init__(self, command: str, prefix: str = "/", case_sensitive: bool = False):
        super().__init__("CommandPrefixGuard")
        self.prefix = prefix
        self.case_sensitive = case_sensitive
        self.command = command if case_sensitive else command.lower()

    def can_activate(self, context: ExecutionContext) -> bool:
        content = getattr(_first_arg(context), "content", None)
        if not content:
            return False
        parts = content.strip().split(None, 1)
        if not parts or not parts[0].startswith(self.prefix):
            return False
        # Handle @botname suffix (e.g., /greet@CordBot)
        word = parts[0][len(self.prefix):].split("@")[0]
        if not self.case_sensitive:
            word = word.lower()
        return word == self.command
