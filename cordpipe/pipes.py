"""
Content Pipes - Transformers applied to message content before the handler.

This module provides pipe infrastructure:
- PipeResult sum type (Unchanged / Replaced)
- Pipe base class and FunctionPipe adapter
- PipeResolver that chains pipes in order
- TransformPipe: message words -> pydantic model fields (arg_num / arg_range)
- ValidationPipe: pydantic validation -> ValidationFailure

Usage:
    class GreetDto(BaseModel):
        name: str = arg_num(1)

    @on_event("message")
    @use_pipes(TransformPipe(), ValidationPipe())
    async def greet(self, dto: Annotated[GreetDto, Content()]):
        ...
"""

import inspect
import logging
import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from cordpipe.binding import ExecutionContext
from cordpipe.errors import ValidationFailure

logger = logging.getLogger(__name__)

ARG_NUM_KEY = "arg_num"
ARG_RANGE_KEY = "arg_range"


# ============================================================================
# Pipe Results
# ============================================================================

class Unchanged:
    """Pipe outcome meaning 'pass the current value through'."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNCHANGED"


UNCHANGED = Unchanged()


@dataclass(frozen=True)
class Replaced:
    """Pipe outcome carrying a new value (which may itself be empty)."""
    value: Any


PipeResult = Union[Unchanged, Replaced]


@dataclass(frozen=True)
class PipeMetadata:
    """
    What a pipe knows about the value it transforms.

    Attributes:
        context: The occurrence's execution context
        content: Raw message content before any pipe ran
        metatype: Declared type of the handler's Content() parameter
    """
    context: ExecutionContext
    content: Optional[str]
    metatype: Any = None


# ============================================================================
# Base Pipe
# ============================================================================

class Pipe(ABC):
    """Abstract base class for pipes. `transform` may be a coroutine function."""

    @abstractmethod
    def transform(self, value: Any, metadata: PipeMetadata) -> PipeResult:
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


class FunctionPipe(Pipe):
    """Wraps `fn(value)` (sync or async); the return value always replaces."""

    def __init__(self, func: Callable[[Any], Any]):
        self.func = func

    async def transform(self, value: Any, metadata: PipeMetadata) -> PipeResult:
        result = self.func(value)
        if inspect.isawaitable(result):
            result = await result
        return Replaced(result)

    def __repr__(self) -> str:
        return f"<FunctionPipe {getattr(self.func, '__name__', self.func)}>"


# ============================================================================
# Pipe Resolver
# ============================================================================

class PipeResolver:
    """Applies global pipes, then the binding's pipes, each fed the previous output."""

    def __init__(self, global_pipes: Optional[Iterable[Pipe]] = None):
        self.global_pipes: List[Pipe] = list(global_pipes or ())

    def add(self, pipe: Pipe) -> "PipeResolver":
        self.global_pipes.append(pipe)
        return self

    async def apply_pipe(
        self,
        context: ExecutionContext,
        content: Optional[str],
        metatype: Any = None,
    ) -> PipeResult:
        """
        Run the pipe chain over message content.

        Args:
            context: Execution context of the occurrence
            content: Raw message content
            metatype: Declared content type from the param resolver

        Returns:
            Replaced(final value) if any pipe replaced the value, else UNCHANGED

        Raises:
            ValidationFailure: If a pipe rejects the content
            TypeError: If a pipe returns something other than a PipeResult
        """
        metadata = PipeMetadata(context=context, content=content, metatype=metatype)
        value = content
        outcome: PipeResult = UNCHANGED

        for pipe in [*self.global_pipes, *context.binding.pipes]:
            result = pipe.transform(value, metadata)
            if inspect.isawaitable(result):
                result = await result

            if isinstance(result, Replaced):
                value = result.value
                outcome = result
            elif result is not UNCHANGED:
                raise TypeError(
                    f"{pipe!r} returned {type(result).__name__}; expected Replaced or UNCHANGED"
                )

        return outcome


# ============================================================================
# Argument Mapping
# ============================================================================

def arg_num(position: int, **kwargs) -> Any:
    """
    Declare a model field taken from one word of the message.

    Position 0 is the command word itself (e.g. "/greet").
    """
    extra = dict(kwargs.pop("json_schema_extra", None) or {})
    extra[ARG_NUM_KEY] = position
    return Field(json_schema_extra=extra, **kwargs)


def arg_range(start: int, end: Optional[int] = None, **kwargs) -> Any:
    """Declare a model field taken from words[start:end] as a list."""
    extra = dict(kwargs.pop("json_schema_extra", None) or {})
    extra[ARG_RANGE_KEY] = [start, end]
    return Field(json_schema_extra=extra, **kwargs)


def split_words(content: str) -> List[str]:
    """Split content into words, honouring quotes when they are balanced."""
    try:
        return shlex.split(content)
    except ValueError:
        # Fall back to simple split if quotes are unbalanced
        return content.split()


def _is_model(metatype: Any) -> bool:
    return inspect.isclass(metatype) and issubclass(metatype, BaseModel)


class TransformPipe(Pipe):
    """
    Maps message words onto the declared pydantic model.

    The produced instance is not validated; chain a ValidationPipe after
    this pipe to enforce the model's constraints.
    """

    def transform(self, value: Any, metadata: PipeMetadata) -> PipeResult:
        if not _is_model(metadata.metatype) or not isinstance(value, str):
            return UNCHANGED

        words = split_words(value)
        fields = {}
        for name, info in metadata.metatype.model_fields.items():
            extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
            if ARG_NUM_KEY in extra:
                position = extra[ARG_NUM_KEY]
                if 0 <= position < len(words):
                    fields[name] = words[position]
            elif ARG_RANGE_KEY in extra:
                start, end = extra[ARG_RANGE_KEY]
                fields[name] = words[start:end]

        return Replaced(metadata.metatype.model_construct(**fields))


class ValidationPipe(Pipe):
    """Validates the value against the declared pydantic model."""

    def transform(self, value: Any, metadata: PipeMetadata) -> PipeResult:
        metatype = metadata.metatype
        if not _is_model(metatype):
            return UNCHANGED

        # Only fields actually taken from the message; missing required fields must fail
        data = {name: getattr(value, name) for name in value.model_fields_set} if isinstance(value, BaseModel) else value
        try:
            return Replaced(metatype.model_validate(data))
        except PydanticValidationError as e:
            raise ValidationFailure.from_pydantic(e, content=metadata.content) from e
