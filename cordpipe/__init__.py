"""
cordpipe - Declarative event dispatch for Discord bots.

Handler methods declare the event they listen to; every occurrence runs
through access filtering, middleware, guards, content pipes (with
validation recovery) and parameter resolution before the handler is called.

Usage:
    from typing import Annotated
    from cordpipe import Content, Dispatcher, FunctionPipe, on_event, use_pipes

    class Greeter:
        @on_event("message")
        @use_pipes(FunctionPipe(str.upper))
        async def shout(self, content: Annotated[str, Content()]):
            ...
"""

from cordpipe.access import AccessService, get_guild_id
from cordpipe.binding import (
    EventMetadata,
    ExecutionContext,
    HandlerBinding,
    MetadataProvider,
    build_binding,
    on_event,
    once_event,
    use_guards,
    use_pipes,
)
from cordpipe.commands import CommandExecutionContext, CommandNameGuard, DiscordCommand, bind_command
from cordpipe.config import DispatchConfig, get_config, reload_config
from cordpipe.dispatcher import Dispatcher
from cordpipe.errors import BindingError, DispatchError, GuardRejected, ValidationFailure, Violation
from cordpipe.guards import AdminGuard, ChannelGuard, CommandPrefixGuard, Guard, GuardResolver, MessageFromUserGuard
from cordpipe.handlers import HandlerInvoker
from cordpipe.middleware import EventCounterMiddleware, LoggingMiddleware, Middleware, MiddlewareResolver
from cordpipe.params import Content, Context, EventArg, ParamResolver, ParamSpec
from cordpipe.pipes import (
    UNCHANGED,
    FunctionPipe,
    Pipe,
    PipeResolver,
    Replaced,
    TransformPipe,
    ValidationPipe,
    arg_num,
    arg_range,
)
from cordpipe.resolvers import DispatchOutcome, EventPipeline, OnceEventResolver, OnEventResolver
from cordpipe.sources import DiscordEventSource, EventSource, LocalEventSource
from cordpipe.validation import ReplyPayload, ValidationProvider

__version__ = "0.1.0"

__all__ = [
    "AccessService",
    "AdminGuard",
    "BindingError",
    "ChannelGuard",
    "CommandExecutionContext",
    "CommandNameGuard",
    "CommandPrefixGuard",
    "Content",
    "Context",
    "DiscordCommand",
    "DiscordEventSource",
    "DispatchConfig",
    "DispatchError",
    "DispatchOutcome",
    "Dispatcher",
    "EventArg",
    "EventCounterMiddleware",
    "EventMetadata",
    "EventPipeline",
    "EventSource",
    "ExecutionContext",
    "FunctionPipe",
    "Guard",
    "GuardRejected",
    "GuardResolver",
    "HandlerBinding",
    "HandlerInvoker",
    "LocalEventSource",
    "LoggingMiddleware",
    "MessageFromUserGuard",
    "MetadataProvider",
    "Middleware",
    "MiddlewareResolver",
    "OnEventResolver",
    "OnceEventResolver",
    "ParamResolver",
    "ParamSpec",
    "Pipe",
    "PipeResolver",
    "Replaced",
    "ReplyPayload",
    "TransformPipe",
    "UNCHANGED",
    "ValidationFailure",
    "ValidationPipe",
    "ValidationProvider",
    "Violation",
    "arg_num",
    "arg_range",
    "bind_command",
    "build_binding",
    "get_config",
    "get_guild_id",
    "on_event",
    "once_event",
    "reload_config",
    "use_guards",
    "use_pipes",
]
