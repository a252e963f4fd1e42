"""
Event Sources - Where occurrences come from.

This module provides:
- EventSource interface (subscribe / subscribe_once)
- LocalEventSource, an in-process emitter
- DiscordEventSource, backed by discord.py bot listeners

Callbacks are coroutine functions receiving the raw occurrence as
positional arguments. Each delivery runs in its own task, so occurrences
interleave on the event loop without running in parallel.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Dict, List

from discord.ext import commands

logger = logging.getLogger(__name__)

Callback = Callable[..., Coroutine[Any, Any, Any]]


class EventSource(ABC):
    """Subscription interface consumed by the dispatch core."""

    @abstractmethod
    def subscribe(self, event: str, callback: Callback) -> None:
        """Deliver every occurrence of `event` to `callback`."""
        pass

    @abstractmethod
    def subscribe_once(self, event: str, callback: Callback) -> None:
        """Deliver only the first occurrence of `event` to `callback`."""
        pass


# ============================================================================
# In-process source
# ============================================================================

@dataclass
class _Subscription:
    callback: Callback
    once: bool = False


class LocalEventSource(EventSource):
    """
    In-process event emitter.

    Usage:
        source = LocalEventSource()
        source.subscribe("message", on_message)
        await asyncio.gather(*source.emit("message", message))
    """

    def __init__(self):
        self._subscriptions: Dict[str, List[_Subscription]] = defaultdict(list)

    def subscribe(self, event: str, callback: Callback) -> None:
        self._subscriptions[event].append(_Subscription(callback))

    def subscribe_once(self, event: str, callback: Callback) -> None:
        self._subscriptions[event].append(_Subscription(callback, once=True))

    def listener_count(self, event: str) -> int:
        return len(self._subscriptions.get(event, ()))

    def emit(self, event: str, *args: Any) -> List[asyncio.Task]:
        """
        Schedule one task per subscriber of `event`.

        Once-subscriptions are removed before their task is scheduled, so a
        later emission can never reach them.

        Returns:
            The scheduled tasks, in subscription order
        """
        subscriptions = self._subscriptions.get(event)
        if not subscriptions:
            return []

        delivered = list(subscriptions)
        self._subscriptions[event] = [s for s in subscriptions if not s.once]

        return [
            asyncio.ensure_future(subscription.callback(*args))
            for subscription in delivered
        ]


# ============================================================================
# Discord source
# ============================================================================

class DiscordEventSource(EventSource):
    """
    Routes discord.py gateway events to subscriptions.

    Event names are discord.py's without the `on_` prefix
    ("message", "ready", "interaction", "member_join", ...).
    """

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @staticmethod
    def listener_name(event: str) -> str:
        return event if event.startswith("on_") else f"on_{event}"

    def subscribe(self, event: str, callback: Callback) -> None:
        name = self.listener_name(event)

        async def listener(*args):
            await callback(*args)

        self.bot.add_listener(listener, name)
        logger.debug(f"Subscribed listener to {name}")

    def subscribe_once(self, event: str, callback: Callback) -> None:
        name = self.listener_name(event)

        async def listener(*args):
            # A second dispatch can be scheduled before removal takes effect
            if listener.fired:
                return
            listener.fired = True
            self.bot.remove_listener(listener, name)
            await callback(*args)

        listener.fired = False
        self.bot.add_listener(listener, name)
        logger.debug(f"Subscribed once-listener to {name}")
