"""
Event Middleware - Side-effect stages run before guards.

This module provides middleware infrastructure:
- Middleware base class with per-event allow/deny filters
- MiddlewareResolver that runs middleware sequentially per event
- LoggingMiddleware for occurrence logging
- EventCounterMiddleware for sliding-window event rates

Middleware cannot cancel dispatch. Errors raised by middleware are not
caught here and abort the occurrence.
"""

import inspect
import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)


# ============================================================================
# Base Middleware
# ============================================================================

class Middleware(ABC):
    """
    Base middleware class.

    Attributes:
        allow_events: If non-empty, only these events reach the middleware
        deny_events: Events that never reach the middleware
    """

    allow_events: frozenset = frozenset()
    deny_events: frozenset = frozenset()

    def applies_to(self, event: str) -> bool:
        """Whether this middleware runs for the given event."""
        if self.allow_events and event not in self.allow_events:
            return False
        return event not in self.deny_events

    @abstractmethod
    def use(self, event: str, context: Sequence[Any]) -> Any:
        """
        Run the middleware for one occurrence.

        Args:
            event: Event name
            context: Raw occurrence arguments

        May be a coroutine function. Return values are ignored.
        """
        pass


class FunctionMiddleware(Middleware):
    """Adapts a plain `(event, context)` callable to the Middleware interface."""

    def __init__(
        self,
        func: Callable,
        allow_events: Optional[Iterable[str]] = None,
        deny_events: Optional[Iterable[str]] = None,
    ):
        self.func = func
        self.allow_events = frozenset(allow_events or ())
        self.deny_events = frozenset(deny_events or ())

    def use(self, event: str, context: Sequence[Any]) -> Any:
        return self.func(event, context)

    def __repr__(self) -> str:
        return f"FunctionMiddleware({getattr(self.func, '__name__', self.func)!r})"


# ============================================================================
# Middleware Resolver
# ============================================================================

class MiddlewareResolver:
    """
    Ordered list of middleware, run in registration order for every event
    they apply to.
    """

    def __init__(self, middlewares: Optional[Iterable[Middleware]] = None):
        self.middlewares: List[Middleware] = []
        for middleware in middlewares or ():
            self.add(middleware)

    def add(self, middleware: Any) -> "MiddlewareResolver":
        """
        Add middleware to the chain.

        Args:
            middleware: A Middleware, or a plain `(event, context)` callable

        Returns:
            Self for chaining
        """
        if not isinstance(middleware, Middleware):
            if not callable(middleware):
                raise TypeError(f"Middleware must be callable, got {type(middleware).__name__}")
            middleware = FunctionMiddleware(middleware)
        self.middlewares.append(middleware)
        logger.debug(f"Registered middleware: {middleware!r}")
        return self

    async def apply_middleware(self, event: str, context: Sequence[Any]) -> None:
        """Run every applicable middleware, each awaited before the next."""
        for middleware in self.middlewares:
            if not middleware.applies_to(event):
                continue
            result = middleware.use(event, context)
            if inspect.isawaitable(result):
                await result


# ============================================================================
# Logging Middleware
# ============================================================================

class LoggingMiddleware(Middleware):
    """Logs one line per occurrence with the author and guild when present."""

    def __init__(
        self,
        level: int = logging.INFO,
        allow_events: Optional[Iterable[str]] = None,
        deny_events: Optional[Iterable[str]] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.level = level
        self.allow_events = frozenset(allow_events or ())
        self.deny_events = frozenset(deny_events or ())
        self._log = log or logger

    def use(self, event: str, context: Sequence[Any]) -> None:
        first = context[0] if context else None
        author = getattr(first, "author", None) or getattr(first, "user", None)
        guild = getattr(first, "guild", None)
        self._log.log(
            self.level,
            f"Event '{event}' from user {getattr(author, 'id', 'unknown')} "
            f"in guild {getattr(guild, 'id', 'none')}",
        )


# ============================================================================
# Event Counter Middleware
# ============================================================================

@dataclass
class CounterEntry:
    """Timestamps of recent occurrences for a single key."""
    timestamps: List[float] = field(default_factory=list)
    total: int = 0


class EventCounterMiddleware(Middleware):
    """
    Counts occurrences per key in a sliding window.

    Never vetoes; counters are for reporting and for guards that want
    to read them.
    """

    def __init__(
        self,
        window_seconds: float = 60.0,
        key_func: Optional[Callable[[str, Sequence[Any]], str]] = None,
        allow_events: Optional[Iterable[str]] = None,
        deny_events: Optional[Iterable[str]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the counter.

        Args:
            window_seconds: Sliding window length in seconds
            key_func: Function `(event, context) -> key`; default is the event name
            allow_events: Events to count (empty = all)
            deny_events: Events never counted
            clock: Time source
        """
        self.window_seconds = window_seconds
        self.key_func = key_func or (lambda event, context: event)
        self.allow_events = frozenset(allow_events or ())
        self.deny_events = frozenset(deny_events or ())
        self._clock = clock
        self._counters: Dict[str, CounterEntry] = defaultdict(CounterEntry)

    def use(self, event: str, context: Sequence[Any]) -> None:
        key = self.key_func(event, context)
        now = self._clock()
        entry = self._counters[key]
        cutoff = now - self.window_seconds
        entry.timestamps = [t for t in entry.timestamps if t > cutoff]
        entry.timestamps.append(now)
        entry.total += 1

    def get_rate(self, key: str) -> int:
        """Occurrences of `key` inside the current window."""
        entry = self._counters.get(key)
        if entry is None:
            return 0
        cutoff = self._clock() - self.window_seconds
        return sum(1 for t in entry.timestamps if t > cutoff)

    def get_total(self, key: str) -> int:
        """Occurrences of `key` since creation."""
        entry = self._counters.get(key)
        return entry.total if entry else 0
