"""Terminal output helpers shared by the CLI front-ends."""

import json
from enum import Enum
from typing import (
    Any,
    Iterable,
)

from tooltalk.core.schema import ToolCall


class AnsiColors(Enum):
    """
    ANSI color codes for terminal output.
    """

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """
    Print text in color.

    Args:
        text: The text to print
        color: The color to use (AnsiColors enum)
        args: Additional positional arguments for print
        kwargs: Additional keyword arguments for print
    """
    print(f"{color.value}{text}\033[0m", *args, **kwargs)  # ANSI reset at the end


def format_tool_call(call: ToolCall) -> str:
    """Render a tool call as a one-line bullet, e.g. ``• calculator: {"expression": "1+1"}``."""
    args = json.dumps(call.args, ensure_ascii=False) if call.args else "No args"
    return f"  • {call.name}: {args}"


def print_tools_used(calls: Iterable[ToolCall]) -> None:
    """Print the tool calls made during one turn, if any."""
    lines = [format_tool_call(call) for call in calls]
    if not lines:
        return
    colored_print("\n🔧 Tools used:", AnsiColors.CYAN)
    for line in lines:
        colored_print(line, AnsiColors.CYAN)
