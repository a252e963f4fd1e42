"""
Dispatcher - Wires configuration, pipeline stages and resolvers together.

Usage:
    from discord.ext import commands
    from cordpipe import Dispatcher, DiscordEventSource

    bot = commands.Bot(command_prefix="!", intents=intents)
    dispatcher = Dispatcher(DiscordEventSource(bot))
    dispatcher.register(Greeter())
    bot.run(dispatcher.config.bot_token)
"""

import inspect
import logging
from typing import Any, Callable, Iterable, List, Optional

from cordpipe.access import AccessService
from cordpipe.binding import HandlerBinding, MetadataProvider
from cordpipe.commands import DiscordCommand, bind_command
from cordpipe.config import DispatchConfig, get_config
from cordpipe.guards import Guard, GuardResolver, MessageFromUserGuard
from cordpipe.handlers import HandlerInvoker
from cordpipe.middleware import MiddlewareResolver
from cordpipe.params import ParamResolver
from cordpipe.pipes import Pipe, PipeResolver
from cordpipe.resolvers import EventPipeline, MethodResolver, OnceEventResolver, OnEventResolver
from cordpipe.sources import EventSource
from cordpipe.validation import ErrorMessageFactory, ValidationProvider

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Owns one instance of every pipeline stage and both resolvers.

    Features:
    - Access filter built from the configured guild allow/deny lists
    - Global middleware, guards and pipes
    - Custom validation error messages
    - Handler and slash command registration
    """

    def __init__(
        self,
        source: EventSource,
        config: Optional[DispatchConfig] = None,
        invoker: Optional[HandlerInvoker] = None,
        metadata_provider: Optional[MetadataProvider] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            source: Event source handlers subscribe to
            config: Dispatch configuration (default: global config)
            invoker: Handler invocation collaborator
            metadata_provider: Decorator metadata reader
        """
        self.source = source
        self.config = config or get_config()
        self.metadata_provider = metadata_provider or MetadataProvider()

        global_guards: List[Guard] = []
        if self.config.ignore_bot_messages:
            global_guards.append(MessageFromUserGuard())

        self.pipeline = EventPipeline(
            access=AccessService(self.config.allow_guilds, self.config.deny_guilds),
            middleware=MiddlewareResolver(),
            guards=GuardResolver(global_guards),
            pipes=PipeResolver(),
            params=ParamResolver(),
            validation=ValidationProvider(),
            invoker=invoker or HandlerInvoker(),
        )
        self.resolvers: List[MethodResolver] = [
            OnEventResolver(source, self.pipeline, self.metadata_provider),
            OnceEventResolver(source, self.pipeline, self.metadata_provider),
        ]

    # ------------------------------------------------------------------
    # Global stages
    # ------------------------------------------------------------------

    def use_middleware(self, middleware: Any) -> "Dispatcher":
        self.pipeline.middleware.add(middleware)
        return self

    def add_global_guard(self, guard: Guard) -> "Dispatcher":
        self.pipeline.guards.add(guard)
        return self

    def add_global_pipe(self, pipe: Pipe) -> "Dispatcher":
        self.pipeline.pipes.add(pipe)
        return self

    def set_error_message(self, factory: Optional[ErrorMessageFactory]) -> "Dispatcher":
        self.pipeline.validation.set_error_message(factory)
        return self

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, instance: Any) -> List[HandlerBinding]:
        """
        Bind every decorated public method of an instance.

        Returns:
            The bindings created, in method name order
        """
        bindings = []
        for method_name, _ in inspect.getmembers(type(instance), callable):
            if method_name.startswith("_"):
                continue
            for resolver in self.resolvers:
                binding = resolver.resolve(instance, method_name)
                if binding is not None:
                    bindings.append(binding)
        return bindings

    def register_all(self, instances: Iterable[Any]) -> List[HandlerBinding]:
        bindings = []
        for instance in instances:
            bindings.extend(self.register(instance))
        return bindings

    def register_command(self, name: str, command: DiscordCommand) -> HandlerBinding:
        """Bind a slash command to the `interaction` event."""
        binding = bind_command(name, command, self.metadata_provider)
        self.resolvers[0].bind(binding)
        return binding

    def command(self, name: str) -> Callable:
        """
        Decorator to register a DiscordCommand class under a name.

        Usage:
            @dispatcher.command("ping")
            class Ping(DiscordCommand):
                def handler(self, interaction, execution_context):
                    return "pong"
        """
        def decorator(command_class):
            self.register_command(name, command_class())
            return command_class
        return decorator
