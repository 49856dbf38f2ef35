"""Dispatches tool calls against a :class:`~tooltalk.tools.ToolRegistry` and wraps errors."""

import logging
from typing import (
    Any,
    Mapping,
)

from tooltalk.core.schema import (
    ToolCall,
    ToolResultMessage,
)
from tooltalk.tools import ToolRegistry

logger = logging.getLogger(__name__)


class ToolExecutionError(RuntimeError):
    """Raised when a requested tool cannot run or fails."""


class ToolNotFoundError(ToolExecutionError):
    """Raised when the requested tool name is not in the registry."""


def execute_tool(registry: ToolRegistry, name: str, args: Mapping[str, Any] | None = None) -> str:
    """
    Look up *name* in *registry* and invoke it with *args*.

    Parameters
    ----------
    registry:
        The tools available for this turn.
    name:
        The registered tool name.
    args:
        Keyword arguments to pass verbatim to the tool function.  If *None*,
        an empty dict is assumed.

    Returns
    -------
    str
        The tool output as text.

    Raises
    ------
    ToolNotFoundError
        If the tool is missing.
    ToolExecutionError
        If its invocation raises an exception.
    """

    if args is None:
        args = {}

    tool = registry.get(name)
    if tool is None:
        available = ", ".join(registry) or "none"
        raise ToolNotFoundError(
            f"Unknown tool '{name}': it is not registered. Available tools: {available}."
        )

    try:
        logger.debug("Executing tool '%s' with args=%s", name, args)
        return tool.run(args)
    except TypeError as exc:
        # Argument mismatch
        logger.exception("Argument error while executing tool '%s'", name)
        raise ToolExecutionError(f"Invalid arguments for tool '{name}': {exc}") from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unhandled error in tool '%s'", name)
        raise ToolExecutionError(f"Tool '{name}' raised an error: {exc}") from exc


def dispatch_tool_call(call: ToolCall, registry: ToolRegistry) -> ToolResultMessage:
    """
    Run one tool call and wrap the outcome as a tool-result message.

    Tool problems never escape: they are reported as ``Error: ...`` text so the model can
    correct itself on the next round.
    """
    if call.raw_arguments is not None:
        content = (
            f"Error: Invalid arguments for tool '{call.name}': "
            f"could not decode {call.raw_arguments!r} as a JSON object."
        )
        logger.warning("Malformed arguments for tool '%s': %r", call.name, call.raw_arguments)
        return ToolResultMessage(
            tool_call_id=call.id, name=call.name, content=content, is_error=True
        )

    try:
        output = execute_tool(registry, call.name, call.args)
    except ToolExecutionError as exc:
        logger.warning("Tool failure: %s", exc)
        return ToolResultMessage(
            tool_call_id=call.id, name=call.name, content=f"Error: {exc}", is_error=True
        )

    logger.info("Tool '%s' returned: %s", call.name, output)
    return ToolResultMessage(tool_call_id=call.id, name=call.name, content=output)
