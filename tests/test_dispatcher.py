"""
Dispatcher Tests

Tests for wiring configuration, global stages and registration.
"""
import asyncio
from typing import Annotated

import pytest

from cordpipe.binding import on_event, once_event
from cordpipe.commands import DiscordCommand
from cordpipe.config import DispatchConfig
from cordpipe.dispatcher import Dispatcher
from cordpipe.errors import ValidationFailure, Violation
from cordpipe.guards import Guard
from cordpipe.middleware import EventCounterMiddleware
from cordpipe.params import Content
from cordpipe.pipes import FunctionPipe, Pipe
from cordpipe.validation import ReplyPayload


def make_config(**overrides):
    values = dict(
        bot_token="",
        allow_guilds=set(),
        deny_guilds=set(),
        admin_ids=set(),
        ignore_bot_messages=True,
        log_level="INFO",
    )
    values.update(overrides)
    return DispatchConfig(**values)


class EchoBot:
    def __init__(self):
        self.seen = []

    @on_event("message")
    async def echo(self, content: Annotated[str, Content()]):
        self.seen.append(content)

    @once_event("ready")
    async def ready(self):
        self.seen.append("ready")

    def helper(self):
        return "not a handler"

    @on_event("message")
    async def _private(self, message):
        self.seen.append("private")


async def emit(source, event, *args):
    return await asyncio.gather(*source.emit(event, *args))


class TestRegistration:
    def test_register_binds_decorated_public_methods(self, source):
        dispatcher = Dispatcher(source, config=make_config())

        bindings = dispatcher.register(EchoBot())

        assert sorted((b.method_name, b.once) for b in bindings) == [("echo", False), ("ready", True)]
        assert source.listener_count("message") == 1
        assert source.listener_count("ready") == 1

    def test_register_all(self, source):
        dispatcher = Dispatcher(source, config=make_config())
        assert len(dispatcher.register_all([EchoBot(), EchoBot()])) == 4

    @pytest.mark.asyncio
    async def test_command_decorator(self, source, interaction_factory):
        dispatcher = Dispatcher(source, config=make_config())

        @dispatcher.command("ping")
        class Ping(DiscordCommand):
            def handler(self, interaction, execution_context):
                return "pong"

        interaction = interaction_factory(command_name="ping")
        await emit(source, "interaction", interaction)

        interaction.response.send_message.assert_awaited_once_with(content="pong")


class TestConfiguredStages:
    @pytest.mark.asyncio
    async def test_bot_messages_ignored_by_default(self, source, message_factory):
        bot = EchoBot()
        Dispatcher(source, config=make_config()).register(bot)

        await emit(source, "message", message_factory(content="from bot", bot=True))
        await emit(source, "message", message_factory(content="from human"))

        assert bot.seen == ["from human"]

    @pytest.mark.asyncio
    async def test_bot_messages_allowed_when_configured(self, source, message_factory):
        bot = EchoBot()
        Dispatcher(source, config=make_config(ignore_bot_messages=False)).register(bot)

        await emit(source, "message", message_factory(content="from bot", bot=True))

        assert bot.seen == ["from bot"]

    @pytest.mark.asyncio
    async def test_guild_lists(self, source, message_factory):
        bot = EchoBot()
        Dispatcher(source, config=make_config(allow_guilds={1, 2}, deny_guilds={2})).register(bot)

        await emit(source, "message", message_factory(content="one", guild_id=1))
        await emit(source, "message", message_factory(content="two", guild_id=2))
        await emit(source, "message", message_factory(content="three", guild_id=3))

        assert bot.seen == ["one"]

    @pytest.mark.asyncio
    async def test_global_middleware_guard_and_pipe(self, source, message_factory):
        class QuietHours(Guard):
            def can_activate(self, context):
                return "quiet" not in (context.occurrence[0].content or "")

        counter = EventCounterMiddleware()
        bot = EchoBot()
        dispatcher = (
            Dispatcher(source, config=make_config())
            .use_middleware(counter)
            .add_global_guard(QuietHours())
            .add_global_pipe(FunctionPipe(str.strip))
        )
        dispatcher.register(bot)

        await emit(source, "message", message_factory(content="  hi  "))
        await emit(source, "message", message_factory(content="quiet please"))

        assert bot.seen == ["hi"]
        assert counter.get_total("message") == 2

    @pytest.mark.asyncio
    async def test_custom_error_message(self, source, message_factory):
        class Reject(Pipe):
            def transform(self, value, metadata):
                raise ValidationFailure([Violation("content", "maxLength")], content=metadata.content)

        bot = EchoBot()
        dispatcher = Dispatcher(source, config=make_config()).add_global_pipe(Reject())
        dispatcher.set_error_message(lambda failure, content: ReplyPayload(content=f"rejected: {content}"))
        dispatcher.register(bot)
        message = message_factory(content="way too long")

        await emit(source, "message", message)

        assert bot.seen == []
        message.reply.assert_awaited_once_with(content="rejected: way too long")
