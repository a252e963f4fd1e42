"""Tests for the local and discord.py-backed event sources."""
import asyncio
from unittest.mock import MagicMock

import pytest

from cordpipe.sources import DiscordEventSource, LocalEventSource


class TestLocalEventSource:
    @pytest.mark.asyncio
    async def test_delivers_to_every_subscriber_in_order(self):
        source = LocalEventSource()
        seen = []

        async def first(*args):
            seen.append(("first", args))

        async def second(*args):
            seen.append(("second", args))

        source.subscribe("message", first)
        source.subscribe("message", second)

        await asyncio.gather(*source.emit("message", "a", "b"))

        assert seen == [("first", ("a", "b")), ("second", ("a", "b"))]

    @pytest.mark.asyncio
    async def test_once_is_removed_at_first_emit(self):
        source = LocalEventSource()
        seen = []

        async def callback(*args):
            seen.append(args)

        source.subscribe_once("ready", callback)
        first = source.emit("ready", 1)
        second = source.emit("ready", 2)
        await asyncio.gather(*first, *second)

        assert seen == [(1,)]
        assert second == []

    def test_emit_without_subscribers(self):
        assert LocalEventSource().emit("nothing") == []


class TestDiscordEventSource:
    def test_listener_name(self):
        assert DiscordEventSource.listener_name("message") == "on_message"
        assert DiscordEventSource.listener_name("on_ready") == "on_ready"

    @pytest.mark.asyncio
    async def test_subscribe_adds_listener(self):
        bot = MagicMock()
        seen = []

        async def callback(*args):
            seen.append(args)

        DiscordEventSource(bot).subscribe("message", callback)

        listener, name = bot.add_listener.call_args.args
        assert name == "on_message"
        await listener("m1")
        await listener("m2")
        assert seen == [("m1",), ("m2",)]

    @pytest.mark.asyncio
    async def test_subscribe_once_removes_itself(self):
        bot = MagicMock()
        seen = []

        async def callback(*args):
            seen.append(args)

        DiscordEventSource(bot).subscribe_once("ready", callback)

        listener, name = bot.add_listener.call_args.args
        await asyncio.gather(listener(), listener())

        assert seen == [()]
        bot.remove_listener.assert_called_once_with(listener, "on_ready")
