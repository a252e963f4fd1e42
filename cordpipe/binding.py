"""
Handler Binding - Decorators, metadata lookup and binding records.

This module provides:
- @on_event / @once_event decorators that mark handler methods
- @use_guards / @use_pipes for class or method level chain membership
- MetadataProvider that reads the decorator metadata back
- HandlerBinding, the immutable record every dispatch stage reads
- ExecutionContext, built fresh for every occurrence

Usage:
    class Greeter:
        @on_event("message")
        @use_pipes(FunctionPipe(str.upper))
        async def greet(self, content: Annotated[str, Content()]):
            ...
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from cordpipe.errors import BindingError
from cordpipe.params import ParamSpec

logger = logging.getLogger(__name__)

EVENT_METADATA_ATTR = "__cordpipe_event__"
GUARDS_ATTR = "__cordpipe_guards__"
PIPES_ATTR = "__cordpipe_pipes__"


# ============================================================================
# Metadata
# ============================================================================

@dataclass(frozen=True)
class EventMetadata:
    """Event subscription requested by a handler method."""
    event: str
    once: bool = False


def on_event(event: str):
    """
    Decorator to bind a method to every occurrence of an event.

    Usage:
        @on_event("message")
        async def on_message(self, message):
            ...
    """
    def decorator(func: Callable):
        setattr(func, EVENT_METADATA_ATTR, EventMetadata(event=event, once=False))
        return func
    return decorator


def once_event(event: str):
    """Decorator to bind a method to the first occurrence of an event only."""
    def decorator(func: Callable):
        setattr(func, EVENT_METADATA_ATTR, EventMetadata(event=event, once=True))
        return func
    return decorator


def _append_to(target: Any, attr: str, items: tuple) -> Any:
    # Read from __dict__ so subclasses and methods never share a parent's list
    existing = tuple(vars(target).get(attr, ()))
    setattr(target, attr, existing + tuple(items))
    return target


def use_guards(*guards):
    """Attach guards to a class (all handlers) or to a single method."""
    def decorator(target):
        return _append_to(target, GUARDS_ATTR, guards)
    return decorator


def use_pipes(*pipes):
    """Attach pipes to a class (all handlers) or to a single method."""
    def decorator(target):
        return _append_to(target, PIPES_ATTR, pipes)
    return decorator


class MetadataProvider:
    """Reads decorator metadata from handler owners."""

    def _get_method(self, instance: Any, method_name: str) -> Optional[Callable]:
        method = getattr(type(instance), method_name, None)
        return method if callable(method) else None

    def get_event_metadata(
        self,
        instance: Any,
        method_name: str,
        once: bool = False,
    ) -> Optional[EventMetadata]:
        """
        Get the event metadata of a handler method.

        Args:
            instance: Handler owner instance
            method_name: Method name on the owner
            once: Which variant the caller resolves

        Returns:
            EventMetadata if the method is bound to this variant, None otherwise
        """
        method = self._get_method(instance, method_name)
        if method is None:
            return None
        metadata = getattr(method, EVENT_METADATA_ATTR, None)
        if metadata is None or metadata.once != once:
            return None
        return metadata

    def get_guards(self, instance: Any, method_name: str) -> tuple:
        """Class-level guards followed by method-level guards."""
        return self._collect(instance, method_name, GUARDS_ATTR)

    def get_pipes(self, instance: Any, method_name: str) -> tuple:
        """Class-level pipes followed by method-level pipes."""
        return self._collect(instance, method_name, PIPES_ATTR)

    def _collect(self, instance: Any, method_name: str, attr: str) -> tuple:
        items = []
        for klass in reversed(type(instance).__mro__):
            items.extend(vars(klass).get(attr, ()))
        method = self._get_method(instance, method_name)
        if method is not None:
            items.extend(getattr(method, attr, ()))
        return tuple(items)


# ============================================================================
# Binding Records
# ============================================================================

@dataclass(frozen=True)
class HandlerBinding:
    """
    Static association between a handler method and the event it listens for.

    Attributes:
        instance: Handler owner (shared, not owned by the binding)
        method_name: Name of the handler method on the owner
        event: Event name (e.g. "message", "ready")
        param_spec: Parameter metadata read from the handler signature
        guards: Guards configured for this handler (class then method)
        pipes: Pipes configured for this handler (class then method)
        once: Whether the handler receives only the first occurrence
    """
    instance: Any
    method_name: str
    event: str
    param_spec: ParamSpec = ParamSpec()
    guards: Tuple[Any, ...] = ()
    pipes: Tuple[Any, ...] = ()
    once: bool = False

    @property
    def qualified_name(self) -> str:
        return f"{type(self.instance).__name__}.{self.method_name}"


@dataclass(frozen=True)
class ExecutionContext:
    """Everything a stage may inspect about one occurrence."""
    binding: HandlerBinding
    event: str
    occurrence: Tuple[Any, ...]


def build_binding(
    instance: Any,
    method_name: str,
    metadata: EventMetadata,
    provider: MetadataProvider,
) -> HandlerBinding:
    """
    Build the immutable binding for one handler method.

    Raises:
        BindingError: If the method is missing or not callable
    """
    method = getattr(type(instance), method_name, None)
    if method is None or not callable(method):
        raise BindingError(f"{type(instance).__name__}.{method_name} is not a callable handler")

    binding = HandlerBinding(
        instance=instance,
        method_name=method_name,
        event=metadata.event,
        param_spec=ParamSpec.from_handler(method),
        guards=provider.get_guards(instance, method_name),
        pipes=provider.get_pipes(instance, method_name),
        once=metadata.once,
    )
    logger.debug(
        f"Built binding {binding.qualified_name} -> '{binding.event}' "
        f"(once: {binding.once}, guards: {len(binding.guards)}, pipes: {len(binding.pipes)})"
    )
    return binding
