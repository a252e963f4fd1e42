"""Handler invocation for resolved bindings."""

import inspect
import logging
from typing import Any, Sequence

from cordpipe.errors import BindingError

logger = logging.getLogger(__name__)


class HandlerInvoker:
    """Calls `instance.method_name(*args)`, sync or async. Errors propagate."""

    async def call_handler(self, instance: Any, method_name: str, args: Sequence[Any]) -> Any:
        handler = getattr(instance, method_name, None)
        if handler is None or not callable(handler):
            raise BindingError(f"{type(instance).__name__}.{method_name} is not callable")

        result = handler(*args)
        if inspect.isawaitable(result):
            result = await result
        return result
