"""Tests for the event middleware chain."""
import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from cordpipe.middleware import (
    EventCounterMiddleware,
    FunctionMiddleware,
    LoggingMiddleware,
    Middleware,
    MiddlewareResolver,
)


class RecordingMiddleware(Middleware):
    def __init__(self, name, log, allow_events=(), deny_events=()):
        self.name = name
        self.log = log
        self.allow_events = frozenset(allow_events)
        self.deny_events = frozenset(deny_events)

    async def use(self, event, context):
        self.log.append(f"{self.name}:start")
        await asyncio.sleep(0)
        self.log.append(f"{self.name}:end")


class TestMiddlewareResolver:
    """Tests for ordering and fail-fast behaviour."""

    @pytest.mark.asyncio
    async def test_runs_sequentially_in_registration_order(self):
        log = []
        resolver = MiddlewareResolver([RecordingMiddleware("a", log), RecordingMiddleware("b", log)])

        await resolver.apply_middleware("message", ())

        assert log == ["a:start", "a:end", "b:start", "b:end"]

    @pytest.mark.asyncio
    async def test_accepts_plain_callables(self):
        calls = []
        resolver = MiddlewareResolver().add(lambda event, context: calls.append((event, context)))

        await resolver.apply_middleware("ready", ("x",))

        assert calls == [("ready", ("x",))]

    def test_rejects_non_callables(self):
        with pytest.raises(TypeError):
            MiddlewareResolver().add(42)

    @pytest.mark.asyncio
    async def test_event_filters(self):
        log = []
        resolver = MiddlewareResolver([
            RecordingMiddleware("only_msg", log, allow_events={"message"}),
            RecordingMiddleware("not_ready", log, deny_events={"ready"}),
        ])

        await resolver.apply_middleware("ready", ())
        assert log == []

        await resolver.apply_middleware("message", ())
        assert log == ["only_msg:start", "only_msg:end", "not_ready:start", "not_ready:end"]

    @pytest.mark.asyncio
    async def test_error_propagates_and_stops_chain(self):
        after = MagicMock()

        def broken(event, context):
            raise RuntimeError("metrics backend down")

        resolver = MiddlewareResolver().add(broken).add(FunctionMiddleware(after))

        with pytest.raises(RuntimeError, match="metrics backend down"):
            await resolver.apply_middleware("message", ())
        after.assert_not_called()


class TestLoggingMiddleware:
    """Tests for occurrence logging."""

    def test_logs_author_and_guild(self, message_factory, caplog):
        middleware = LoggingMiddleware()
        with caplog.at_level(logging.INFO, logger="cordpipe.middleware"):
            middleware.use("message", (message_factory(guild_id=9, author_id=3),))

        assert "Event 'message' from user 3 in guild 9" in caplog.text

    def test_handles_empty_occurrence(self, caplog):
        with caplog.at_level(logging.INFO, logger="cordpipe.middleware"):
            LoggingMiddleware().use("ready", ())
        assert "from user unknown in guild none" in caplog.text


class TestEventCounterMiddleware:
    """Tests for sliding-window counters."""

    def test_counts_within_window(self):
        now = [100.0]
        counter = EventCounterMiddleware(window_seconds=10, clock=lambda: now[0])

        counter.use("message", ())
        counter.use("message", ())
        now[0] = 105.0
        counter.use("message", ())

        assert counter.get_rate("message") == 3

        now[0] = 111.0
        assert counter.get_rate("message") == 1
        assert counter.get_total("message") == 3

    def test_custom_key(self, message_factory):
        counter = EventCounterMiddleware(key_func=lambda event, context: str(context[0].author.id))

        counter.use("message", (message_factory(author_id=1),))
        counter.use("message", (message_factory(author_id=2),))
        counter.use("message", (message_factory(author_id=1),))

        assert counter.get_rate("1") == 2
        assert counter.get_rate("2") == 1
        assert counter.get_rate("3") == 0
