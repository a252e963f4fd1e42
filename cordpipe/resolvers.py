"""
Event Resolvers - The dispatch core.

This module binds handler methods to an event source and runs every
occurrence through the pipeline, in a fixed order:

    access filter -> middleware -> guards -> pipes (+ validation recovery,
    message events only) -> params -> handler

Two resolver variants share the same pipeline:
- OnEventResolver: stays subscribed for every occurrence
- OnceEventResolver: the source delivers the first occurrence only; if that
  delivery is filtered, the handler never runs and nothing re-subscribes
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from cordpipe.access import AccessService
from cordpipe.binding import ExecutionContext, HandlerBinding, MetadataProvider, build_binding
from cordpipe.errors import ValidationFailure
from cordpipe.guards import GuardResolver
from cordpipe.handlers import HandlerInvoker
from cordpipe.middleware import MiddlewareResolver
from cordpipe.params import ParamResolver
from cordpipe.pipes import PipeResolver, Replaced
from cordpipe.sources import EventSource
from cordpipe.validation import ValidationProvider, send_reply

logger = logging.getLogger(__name__)

MESSAGE_EVENT = "message"


class DispatchOutcome(Enum):
    """How a single occurrence ended."""
    FILTERED = "filtered"    # access filter rejected the guild
    GUARDED = "guarded"      # a guard vetoed
    RECOVERED = "recovered"  # validation failure answered with a reply
    HANDLED = "handled"      # handler was called


class SubscriptionState(Enum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBED = "subscribed"
    FIRED = "fired"


@dataclass
class Subscription:
    """A binding's subscription and where it is in its lifecycle."""
    binding: HandlerBinding
    state: SubscriptionState = SubscriptionState.UNSUBSCRIBED
    deliveries: int = 0


# ============================================================================
# Pipeline
# ============================================================================

class EventPipeline:
    """Runs one occurrence through every stage, then calls the handler."""

    def __init__(
        self,
        access: Optional[AccessService] = None,
        middleware: Optional[MiddlewareResolver] = None,
        guards: Optional[GuardResolver] = None,
        pipes: Optional[PipeResolver] = None,
        params: Optional[ParamResolver] = None,
        validation: Optional[ValidationProvider] = None,
        invoker: Optional[HandlerInvoker] = None,
    ):
        self.access = access or AccessService()
        self.middleware = middleware or MiddlewareResolver()
        self.guards = guards or GuardResolver()
        self.pipes = pipes or PipeResolver()
        self.params = params or ParamResolver()
        self.validation = validation or ValidationProvider()
        self.invoker = invoker or HandlerInvoker()

    async def run(self, binding: HandlerBinding, *occurrence: Any) -> DispatchOutcome:
        """
        Dispatch one occurrence to a binding.

        Args:
            binding: The handler binding
            *occurrence: Raw event arguments, as emitted by the source

        Returns:
            DispatchOutcome describing where dispatch stopped

        Raises:
            Anything raised by middleware, pipes (other than
            ValidationFailure), param resolution or the handler itself
        """
        if not self.access.is_allowed(occurrence):
            return DispatchOutcome.FILTERED

        event = binding.event
        await self.middleware.apply_middleware(event, occurrence)

        context = ExecutionContext(binding=binding, event=event, occurrence=occurrence)
        if not await self.guards.apply_guard(context):
            return DispatchOutcome.GUARDED

        content = None
        if event == MESSAGE_EVENT and occurrence:
            message = occurrence[0]
            raw_content = getattr(message, "content", None)
            metatype = self.params.get_content_type(binding)
            try:
                piped = await self.pipes.apply_pipe(context, raw_content, metatype)
            except ValidationFailure as failure:
                payload = self.validation.recover(failure, raw_content)
                await send_reply(message, payload)
                logger.debug(
                    f"Validation failed for {binding.qualified_name} "
                    f"({len(failure.violations)} violations), replied"
                )
                return DispatchOutcome.RECOVERED
            content = piped.value if isinstance(piped, Replaced) else raw_content

        args = self.params.apply_param(binding, occurrence, content)
        handler_args = args if args is not None else occurrence
        await self.invoker.call_handler(binding.instance, binding.method_name, handler_args)
        return DispatchOutcome.HANDLED


# ============================================================================
# Resolvers
# ============================================================================

class MethodResolver(ABC):
    """Binds decorated handler methods to an event source."""

    once: bool = False

    def __init__(
        self,
        source: EventSource,
        pipeline: EventPipeline,
        metadata_provider: Optional[MetadataProvider] = None,
    ):
        self.source = source
        self.pipeline = pipeline
        self.metadata_provider = metadata_provider or MetadataProvider()
        self.subscriptions: List[Subscription] = []

    def resolve(self, instance: Any, method_name: str) -> Optional[HandlerBinding]:
        """
        Bind one method if it carries this resolver's event metadata.

        Returns:
            The binding, or None if the method is not bound to this resolver
        """
        metadata = self.metadata_provider.get_event_metadata(instance, method_name, once=self.once)
        if metadata is None:
            return None

        binding = build_binding(instance, method_name, metadata, self.metadata_provider)
        self.bind(binding)
        return binding

    def bind(self, binding: HandlerBinding) -> Subscription:
        """Subscribe an already built binding."""
        subscription = Subscription(binding=binding)
        self._subscribe(subscription)
        subscription.state = SubscriptionState.SUBSCRIBED
        self.subscriptions.append(subscription)
        logger.info(
            f"Bound {binding.qualified_name} to '{binding.event}' "
            f"({'once' if self.once else 'every occurrence'})"
        )
        return subscription

    @abstractmethod
    def _subscribe(self, subscription: Subscription) -> None:
        pass


class OnEventResolver(MethodResolver):
    """Runs the pipeline for every occurrence of the event."""

    once = False

    def _subscribe(self, subscription: Subscription) -> None:
        binding = subscription.binding

        async def on_fire(*occurrence):
            subscription.deliveries += 1
            return await self.pipeline.run(binding, *occurrence)

        self.source.subscribe(binding.event, on_fire)


class OnceEventResolver(MethodResolver):
    """
    Runs the pipeline for the first occurrence only.

    The single delivery is consumed even when the access filter or a guard
    stops it; the resolver never subscribes again.
    """

    once = True

    def _subscribe(self, subscription: Subscription) -> None:
        binding = subscription.binding

        async def on_fire(*occurrence):
            subscription.state = SubscriptionState.FIRED
            subscription.deliveries += 1
            return await self.pipeline.run(binding, *occurrence)

        self.source.subscribe_once(binding.event, on_fire)
