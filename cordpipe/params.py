"""
Param Resolver - Maps event context onto handler arguments.

Handlers declare which piece of an occurrence each parameter receives with
typing.Annotated markers:

    async def on_message(self, dto: Annotated[GreetDto, Content()],
                         message: Annotated[discord.Message, EventArg(0)]):
        ...

- Content(): the (possibly piped) message content; its base type is the
  declared content type handed to the pipe chain
- Context(): the whole raw occurrence tuple
- EventArg(index): one positional argument of the occurrence
"""

import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Any, Callable, List, Optional, Sequence, Tuple, get_args, get_origin, get_type_hints

from cordpipe.errors import BindingError

if TYPE_CHECKING:
    from cordpipe.binding import HandlerBinding

logger = logging.getLogger(__name__)


# ============================================================================
# Parameter Markers
# ============================================================================

class ParamMarker:
    """Base class for parameter markers."""
    pass


@dataclass(frozen=True)
class Content(ParamMarker):
    """Inject the message content after the pipe chain."""
    pass


@dataclass(frozen=True)
class Context(ParamMarker):
    """Inject the raw occurrence tuple."""
    pass


@dataclass(frozen=True)
class EventArg(ParamMarker):
    """Inject a single positional argument of the occurrence."""
    index: int = 0


# ============================================================================
# Static Parameter Metadata
# ============================================================================

@dataclass(frozen=True)
class ParamDecl:
    """
    A single handler parameter.

    Attributes:
        name: Parameter name in the handler signature
        annotation: Declared type with Annotated metadata stripped
        marker: The marker found on the parameter, or None
    """
    name: str
    annotation: Any = None
    marker: Optional[ParamMarker] = None


@dataclass(frozen=True)
class ParamSpec:
    """Per-handler parameter metadata, computed once at registration."""
    params: Tuple[ParamDecl, ...] = ()

    @property
    def has_markers(self) -> bool:
        return any(p.marker is not None for p in self.params)

    @property
    def content_type(self) -> Optional[Any]:
        """Declared type of the Content() parameter, if any."""
        for param in self.params:
            if isinstance(param.marker, Content):
                return param.annotation
        return None

    @classmethod
    def from_handler(cls, func: Callable) -> "ParamSpec":
        """
        Read parameter markers from a handler signature.

        Args:
            func: The handler function (bound or unbound)

        Returns:
            ParamSpec describing every parameter except self

        Raises:
            BindingError: If an annotation cannot be resolved (e.g. a string
                annotation naming a class local to a function)
        """
        try:
            hints = get_type_hints(func, include_extras=True)
        except NameError as e:
            raise BindingError(
                f"Cannot resolve annotations of handler {func.__qualname__}: {e}"
            ) from e
        signature = inspect.signature(func)

        params = []
        for name, parameter in signature.parameters.items():
            if name == "self" or parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
                continue

            hint = hints.get(name)
            annotation = hint
            marker = None
            if get_origin(hint) is Annotated:
                annotation, *extras = get_args(hint)
                markers = [extra for extra in extras if isinstance(extra, ParamMarker)]
                if len(markers) > 1:
                    raise TypeError(f"Parameter '{name}' of {func.__qualname__} has more than one marker")
                marker = markers[0] if markers else None

            params.append(ParamDecl(name=name, annotation=annotation, marker=marker))

        return cls(params=tuple(params))


# ============================================================================
# Resolver
# ============================================================================

class ParamResolver:
    """Resolves handler arguments from an occurrence and the piped content."""

    def get_content_type(self, binding: "HandlerBinding") -> Optional[Any]:
        """Declared content type the pipe chain should coerce content into."""
        return binding.param_spec.content_type

    def apply_param(
        self,
        binding: "HandlerBinding",
        occurrence: Sequence[Any],
        content: Any = None,
    ) -> Optional[List[Any]]:
        """
        Build the handler argument list.

        Args:
            binding: The handler binding
            occurrence: Raw event arguments
            content: Content after the pipe chain (message events only)

        Returns:
            Ordered argument list, or None when the handler declares no
            markers and should receive the raw occurrence instead
        """
        spec = binding.param_spec
        if not spec.has_markers:
            return None

        args = []
        for param in spec.params:
            marker = param.marker
            if isinstance(marker, Content):
                args.append(content)
            elif isinstance(marker, Context):
                args.append(tuple(occurrence))
            elif isinstance(marker, EventArg):
                in_range = 0 <= marker.index < len(occurrence)
                args.append(occurrence[marker.index] if in_range else None)
            else:
                args.append(None)
        return args
