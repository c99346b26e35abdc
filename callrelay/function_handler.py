"""
Function dispatch table for model-issued function calls.

The model asks for a tool by emitting a ``response.output_item.done`` event
whose item is a ``function_call``. The relay hands the item's name and raw
argument text to ``FunctionHandler.dispatch`` and returns whatever text comes
back to the conversation.

Lookup is a linear scan in registration order and the first matching name
wins; duplicate names are not rejected. Dispatch never raises: a missing
handler, unparsable arguments or a failing handler all come back as a JSON
error payload so the model can react to the failure in conversation.

Usage Example:
    ```python
    handler = FunctionHandler()
    handler.register(FunctionDescriptor(schema=my_tool, handler=my_async_fn))
    output = await handler.dispatch("my_tool", '{"city": "Lisbon"}')
    ```
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from callrelay.config.logging_config import configure_logging
from callrelay.models.tool_models import OpenAITool

logger = configure_logging("function_handler")

INVALID_ARGUMENTS_ERROR = "Invalid JSON arguments for function call."

Handler = Callable[[Dict[str, Any]], Union[Awaitable[Any], Any]]


@dataclass
class FunctionDescriptor:
    """A function schema paired with the callable that implements it."""

    schema: OpenAITool
    handler: Handler

    @property
    def name(self) -> str:
        return self.schema.name


@dataclass
class DispatchResult:
    """Outcome of a dispatch.

    Attributes:
        output: Text returned to the model, a handler result or a serialized error
        error: The error payload when the call failed, otherwise ``None``
    """

    output: str
    error: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def _error_result(message: str) -> DispatchResult:
    error = {"error": message}
    return DispatchResult(output=json.dumps(error), error=error)


class FunctionHandler:
    """
    Ordered registry of callable functions.

    Handlers receive the parsed argument object and may be sync or async. Text
    results are returned verbatim; any other result is serialized to JSON.
    """

    def __init__(self, descriptors: Optional[List[FunctionDescriptor]] = None):
        self.descriptors: List[FunctionDescriptor] = []
        for descriptor in descriptors or []:
            self.register(descriptor)

    def register(self, descriptor: FunctionDescriptor) -> None:
        self.descriptors.append(descriptor)
        logger.info(f"Registered function: {descriptor.name}")

    def find(self, name: str) -> Optional[FunctionDescriptor]:
        for descriptor in self.descriptors:
            if descriptor.name == name:
                return descriptor
        return None

    def get_registered_functions(self) -> List[str]:
        return [descriptor.name for descriptor in self.descriptors]

    def schemas(self) -> List[Dict[str, Any]]:
        """Serialized schemas in registration order."""
        return [descriptor.schema.model_dump() for descriptor in self.descriptors]

    async def dispatch(self, name: str, raw_arguments: Optional[str]) -> str:
        """Run ``name`` with the given JSON argument text and return its text result."""
        result = await self.execute(name, raw_arguments)
        return result.output

    async def execute(self, name: str, raw_arguments: Optional[str]) -> DispatchResult:
        """Like ``dispatch`` but also reports whether the call failed."""
        descriptor = self.find(name)
        if descriptor is None:
            logger.error(f"No handler found for function: {name}")
            return _error_result(
                f"Error running function {name}: No handler found for function: {name}"
            )

        try:
            arguments = json.loads(raw_arguments)
        except (TypeError, ValueError):
            logger.warning(f"Invalid JSON arguments for {name}: {raw_arguments!r}")
            return _error_result(INVALID_ARGUMENTS_ERROR)
        if not isinstance(arguments, dict):
            logger.warning(f"Arguments for {name} are not a JSON object: {raw_arguments!r}")
            return _error_result(INVALID_ARGUMENTS_ERROR)

        logger.info(f"Calling function: {name} {arguments}")
        try:
            func = descriptor.handler
            result = (
                await func(arguments)
                if asyncio.iscoroutinefunction(func)
                else func(arguments)
            )
            if asyncio.iscoroutine(result):
                result = await result
            if not isinstance(result, str):
                result = json.dumps(result)
        except Exception as e:
            logger.error(f"Error running function {name}: {e}")
            return _error_result(f"Error running function {name}: {e}")

        return DispatchResult(output=result)
