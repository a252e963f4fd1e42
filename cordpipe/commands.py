"""
Slash Commands - Interaction handlers on top of the dispatch pipeline.

A slash command is implemented as a DiscordCommand. Its handler receives the
interaction and a CommandExecutionContext; whatever it returns (a string or a
ReplyPayload) is sent back as the interaction response.

Usage:
    class Ping(DiscordCommand):
        async def handler(self, interaction, execution_context):
            return "pong"

    dispatcher.register_command("ping", Ping())
"""

import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Annotated, Any, Optional, Tuple, Union

import discord

from cordpipe.binding import ExecutionContext, HandlerBinding, MetadataProvider
from cordpipe.guards import Guard
from cordpipe.params import Context, EventArg, ParamSpec
from cordpipe.validation import ReplyPayload

logger = logging.getLogger(__name__)

INTERACTION_EVENT = "interaction"

CommandResult = Union[str, ReplyPayload, None]


@dataclass(frozen=True)
class CommandExecutionContext:
    """What a command handler knows about its invocation."""
    command_name: str
    event: str
    occurrence: Tuple[Any, ...]


class DiscordCommand(ABC):
    """Slash command contract. `handler` may be a coroutine function."""

    @abstractmethod
    def handler(
        self,
        interaction: discord.Interaction,
        execution_context: CommandExecutionContext,
    ) -> CommandResult:
        pass


def get_command_name(interaction: Any) -> Optional[str]:
    """Invoked command name from a resolved command or the raw interaction data."""
    command = getattr(interaction, "command", None)
    name = getattr(command, "name", None)
    if isinstance(name, str):
        return name
    data = getattr(interaction, "data", None)
    if isinstance(data, dict):
        return data.get("name")
    return None


class CommandNameGuard(Guard):
    """Only lets through interactions invoking the given command."""

    def __init__(self, command_name: str):
        super().__init__("CommandNameGuard")
        self.command_name = command_name

    def can_activate(self, context: ExecutionContext) -> bool:
        if not context.occurrence:
            return False
        return get_command_name(context.occurrence[0]) == self.command_name


async def send_command_result(interaction: Any, result: CommandResult) -> None:
    """Send a handler result as the interaction response (or a followup)."""
    if result is None:
        return
    payload = result if isinstance(result, ReplyPayload) else ReplyPayload(content=str(result))

    if interaction.response.is_done():
        sent = interaction.followup.send(**payload.as_kwargs())
    else:
        sent = interaction.response.send_message(**payload.as_kwargs())
    if inspect.isawaitable(sent):
        await sent


class CommandHandlerAdapter:
    """Adapts a DiscordCommand to an `interaction` event handler method."""

    def __init__(self, command_name: str, command: DiscordCommand):
        self.command_name = command_name
        self.command = command

    async def dispatch(
        self,
        interaction: Annotated[discord.Interaction, EventArg(0)],
        occurrence: Annotated[tuple, Context()],
    ) -> CommandResult:
        execution_context = CommandExecutionContext(
            command_name=self.command_name,
            event=INTERACTION_EVENT,
            occurrence=occurrence,
        )
        result = self.command.handler(interaction, execution_context)
        if inspect.isawaitable(result):
            result = await result
        await send_command_result(interaction, result)
        return result

    def __repr__(self) -> str:
        return f"<CommandHandlerAdapter /{self.command_name}>"


def bind_command(
    command_name: str,
    command: DiscordCommand,
    metadata_provider: Optional[MetadataProvider] = None,
) -> HandlerBinding:
    """
    Build the binding for a slash command.

    Guards declared on the command class with @use_guards run after the
    command name check.
    """
    provider = metadata_provider or MetadataProvider()
    adapter = CommandHandlerAdapter(command_name, command)
    return HandlerBinding(
        instance=adapter,
        method_name="dispatch",
        event=INTERACTION_EVENT,
        param_spec=ParamSpec.from_handler(CommandHandlerAdapter.dispatch),
        guards=(CommandNameGuard(command_name), *provider.get_guards(command, "handler")),
        pipes=(),
        once=False,
    )
