"""
Built-in demo tools.

These are stand-ins for real integrations: weather and search answers come from small canned
tables, the calculator evaluates plain arithmetic and the clock reads the local system time.
"""

import ast
import operator
from datetime import (
    datetime,
    timezone as dt_timezone,
)
from typing import (
    Any,
    Callable,
    Dict,
    Mapping,
)
from zoneinfo import ZoneInfo

from tooltalk.tools import register_tool

# ---------------------------------------------------------------------------
# Weather
# ---------------------------------------------------------------------------
_WEATHER_DATA: Mapping[str, Mapping[str, str]] = {
    "san francisco": {"temp": "65°F", "condition": "Partly cloudy", "humidity": "70%"},
    "new york": {"temp": "72°F", "condition": "Sunny", "humidity": "60%"},
    "london": {"temp": "55°F", "condition": "Rainy", "humidity": "85%"},
    "tokyo": {"temp": "78°F", "condition": "Clear", "humidity": "65%"},
}
_UNKNOWN_WEATHER: Mapping[str, str] = {"temp": "70°F", "condition": "Unknown", "humidity": "N/A"}


@register_tool(
    "get_weather",
    param_descriptions={"location": "City name, e.g. 'London'"},
)
def get_weather(location: str) -> str:
    """Get the current weather for a specific location."""
    weather = _WEATHER_DATA.get(location.strip().lower(), _UNKNOWN_WEATHER)
    return (
        f"Weather in {location}: {weather['temp']}, {weather['condition']}, "
        f"Humidity: {weather['humidity']}"
    )


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------
_BINARY_OPS: Mapping[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS: Mapping[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}
_MAX_EXPONENT = 100


def _evaluate(node: ast.AST) -> int | float:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left, right = _evaluate(node.left), _evaluate(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
            raise ValueError(f"exponent {right} is too large")
        return _BINARY_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand))
    raise ValueError(f"unsupported element '{type(node).__name__}'")


def _format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@register_tool(
    "calculator",
    param_descriptions={"expression": "Arithmetic expression, e.g. '15 * 3 + 7'"},
)
def calculator(expression: str) -> str:
    """Perform basic mathematical calculations (+, -, *, /, //, %, ** and parentheses)."""
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as exc:
        raise ValueError(f"cannot parse expression {expression!r}") from exc
    try:
        return _format_number(_evaluate(tree))
    except ZeroDivisionError as exc:
        raise ValueError(f"division by zero in {expression!r}") from exc


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------
_TIMEZONES: Mapping[str, str] = {
    "new york": "America/New_York",
    "america/new_york": "America/New_York",
    "san francisco": "America/Los_Angeles",
    "america/los_angeles": "America/Los_Angeles",
    "london": "Europe/London",
    "europe/london": "Europe/London",
    "tokyo": "Asia/Tokyo",
    "asia/tokyo": "Asia/Tokyo",
}


def _now() -> datetime:
    return datetime.now(dt_timezone.utc)


@register_tool(
    "get_time",
    param_descriptions={"timezone": "'UTC', a city name or an IANA zone such as 'Asia/Tokyo'"},
)
def get_time(timezone: str) -> str:
    """Get the current time for a specific timezone or location."""
    key = timezone.strip().lower()
    now = _now()
    if key == "utc":
        stamp = now.strftime("%a, %d %b %Y %H:%M:%S UTC")
    elif key in _TIMEZONES:
        stamp = now.astimezone(ZoneInfo(_TIMEZONES[key])).strftime("%Y-%m-%d %H:%M:%S %Z")
    else:
        stamp = now.astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")
    return f"Current time in {timezone}: {stamp}"


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------
_SEARCH_RESULTS: Dict[str, str] = {
    "python": (
        "Python is a high-level, general-purpose programming language that emphasizes code "
        "readability and ships with a large standard library."
    ),
    "openai": (
        "OpenAI is an AI research and deployment company. They are the creators of GPT models "
        "and provide APIs for AI services."
    ),
    "gemini": "Gemini is a family of multimodal large language models developed by Google.",
    "weather": (
        "Weather refers to the state of the atmosphere at a particular place and time, "
        "including temperature, humidity, precipitation, and wind."
    ),
}


@register_tool("web_search", param_descriptions={"query": "Search terms"})
def web_search(query: str) -> str:
    """Search for information on the web."""
    return _SEARCH_RESULTS.get(
        query.strip().lower(),
        f'Search results for "{query}": No specific information found, '
        "but this is a simulated search result.",
    )
