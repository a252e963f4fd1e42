"""
cordpipe Test Configuration

Shared pytest fixtures: fake Discord messages/interactions, a local event
source and a pipeline whose handler invoker is mocked.
"""

import os
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

# Add project root to path FIRST
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from cordpipe.access import AccessService
from cordpipe.binding import HandlerBinding
from cordpipe.handlers import HandlerInvoker
from cordpipe.params import ParamSpec
from cordpipe.resolvers import EventPipeline
from cordpipe.sources import LocalEventSource


def build_message(content="/greet world", guild_id=111, author_id=42, bot=False, channel_id=900):
    """Create a mock discord.Message with an awaitable reply()."""
    message = MagicMock()
    message.content = content
    message.guild = SimpleNamespace(id=guild_id) if guild_id is not None else None
    message.author = SimpleNamespace(id=author_id, bot=bot)
    message.channel = SimpleNamespace(id=channel_id)
    message.reply = AsyncMock()
    return message


def build_interaction(command_name="ping", guild_id=111, user_id=42, done=False):
    """Create a mock discord.Interaction."""
    interaction = MagicMock()
    interaction.command = SimpleNamespace(name=command_name)
    interaction.guild = SimpleNamespace(id=guild_id) if guild_id is not None else None
    # discord.Interaction exposes `user`, not `author`
    interaction.author = None
    interaction.user = SimpleNamespace(id=user_id, bot=False)
    interaction.response.is_done = MagicMock(return_value=done)
    interaction.response.send_message = AsyncMock()
    interaction.followup.send = AsyncMock()
    return interaction


def build_binding(instance=None, method_name="handle", event="message", handler=None, guards=(), pipes=(), once=False):
    """Create a HandlerBinding, reading params from `handler` when given."""
    return HandlerBinding(
        instance=instance if instance is not None else MagicMock(),
        method_name=method_name,
        event=event,
        param_spec=ParamSpec.from_handler(handler) if handler is not None else ParamSpec(),
        guards=tuple(guards),
        pipes=tuple(pipes),
        once=once,
    )


@pytest.fixture
def message_factory():
    return build_message


@pytest.fixture
def interaction_factory():
    return build_interaction


@pytest.fixture
def binding_factory():
    return build_binding


@pytest.fixture
def source():
    return LocalEventSource()


@pytest.fixture
def mock_invoker():
    """Handler invoker whose call_handler is an AsyncMock."""
    invoker = MagicMock(spec=HandlerInvoker)
    invoker.call_handler = AsyncMock()
    return invoker


@pytest.fixture
def pipeline(mock_invoker):
    return EventPipeline(invoker=mock_invoker)


@pytest.fixture
def deny_pipeline(mock_invoker):
    """Pipeline whose access filter denies guild 666."""
    return EventPipeline(access=AccessService(deny_guilds={666}), invoker=mock_invoker)
