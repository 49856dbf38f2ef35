"""
Tool registry for tooltalk.

A tool is a plain Python function that accepts keyword arguments and returns a value.  Wrapping it in
a :class:`Tool` attaches the name, description and JSON argument schema that the chat model needs in
order to request it.  A :class:`ToolRegistry` is the read-only set of tools available during one
agent turn.

Built-in tools are collected with the :func:`register_tool` decorator into ``TOOL_REGISTRY`` and
exposed through :func:`default_registry`.
"""

import inspect
import json
import logging
from types import MappingProxyType
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from pydantic import (
    BaseModel,
    ConfigDict,
)

from tooltalk.core.schema import ToolSpec

logger = logging.getLogger(__name__)

TOOL_REGISTRY: Dict[str, "Tool"] = {}
"""Catalog of the built-in tools, filled by :func:`register_tool`."""

_JSON_TYPES: Mapping[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    dict: "object",
}


class Tool(BaseModel):
    """A callable capability the model can request by name."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    description: str
    parameters: Dict[str, Any]
    fn: Callable[..., Any]

    def spec(self) -> ToolSpec:
        """Return the declaration sent to the chat model."""
        return ToolSpec(name=self.name, description=self.description, parameters=self.parameters)

    def run(self, args: Mapping[str, Any]) -> str:
        """Invoke the tool with *args* and return its output as text."""
        result = self.fn(**args)
        if isinstance(result, str):
            return result
        if result is None:
            return ""
        return json.dumps(result, ensure_ascii=False, default=str)


def _json_type(annotation: Any) -> str | None:
    origin = get_origin(annotation)
    if origin is Union:
        # Optional[X] -> X
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        return _json_type(members[0]) if len(members) == 1 else None
    return _JSON_TYPES.get(origin or annotation)


def build_parameters_schema(
    fn: Callable[..., Any], param_descriptions: Mapping[str, str] | None = None
) -> Dict[str, Any]:
    """Derive a JSON schema for the keyword arguments of *fn* from its signature."""
    param_descriptions = param_descriptions or {}
    sig = inspect.signature(fn)
    type_hints = get_type_hints(fn)
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for param_name, param in sig.parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        prop: Dict[str, Any] = {}
        json_type = _json_type(type_hints.get(param_name))
        if json_type:
            prop["type"] = json_type
        if param_name in param_descriptions:
            prop["description"] = param_descriptions[param_name]
        properties[param_name] = prop
        if param.default is inspect.Parameter.empty:
            required.append(param_name)
    return {"type": "object", "properties": properties, "required": required}


def tool_from_function(
    fn: Callable[..., Any],
    name: str | None = None,
    description: str | None = None,
    param_descriptions: Mapping[str, str] | None = None,
) -> Tool:
    """
    Wrap *fn* in a :class:`Tool`.

    The name defaults to the function name and the description to the first paragraph of its
    docstring.
    """
    doc = inspect.getdoc(fn) or ""
    return Tool(
        name=name or fn.__name__,
        description=description or doc.split("\n\n")[0].strip(),
        parameters=build_parameters_schema(fn, param_descriptions),
        fn=fn,
    )


class ToolRegistry(Mapping[str, Tool]):
    """
    Read-only mapping from tool name to :class:`Tool`.

    Tools keep the order in which they were given, which is also the order of :meth:`specs`.
    """

    def __init__(self, tools: Iterable[Union[Tool, Callable[..., Any]]] = ()):
        entries: Dict[str, Tool] = {}
        for item in tools:
            tool = item if isinstance(item, Tool) else tool_from_function(item)
            if tool.name in entries:
                raise ValueError(f"Tool '{tool.name}' is already registered.")
            entries[tool.name] = tool
        self._tools: Mapping[str, Tool] = MappingProxyType(entries)

    def __getitem__(self, name: str) -> Tool:
        return self._tools[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __repr__(self) -> str:
        return f"ToolRegistry({list(self._tools)})"

    def specs(self) -> List[ToolSpec]:
        """Return the declarations of all tools, for the chat model."""
        return [tool.spec() for tool in self._tools.values()]


def register_tool(
    name: str,
    description: str | None = None,
    param_descriptions: Mapping[str, str] | None = None,
) -> Callable:
    """
    Register a built-in tool function with the given name.

    The name must be unique and is used by the model to request the tool.  The function must accept
    keyword arguments and return a value.

    The function is registered as a decorator, so it can be used like this:
        @register_tool("my_tool")
        def my_tool_function(arg1: str) -> str:
            return arg1

    Parameters
    ----------
    name: str
        The name of the tool.
    description: str, optional
        Text shown to the model.  Defaults to the function docstring.
    param_descriptions: Mapping[str, str], optional
        Per-argument descriptions added to the JSON schema.

    Returns
    -------
    Callable
        A decorator that registers the function with the given name.

    Raises
    ------
    ValueError
        If a function with the same name is already registered.
    """
    if name in TOOL_REGISTRY:
        raise ValueError(f"Tool '{name}' is already registered.")
    logger.debug("Registering tool '%s'", name)

    def wrapper(fn: Callable) -> Callable:
        TOOL_REGISTRY[name] = tool_from_function(
            fn, name=name, description=description, param_descriptions=param_descriptions
        )
        return fn

    return wrapper


def default_registry() -> ToolRegistry:
    """Return a registry with every built-in tool."""
    # Importing the module runs the @register_tool decorators
    import tooltalk.tools.builtin  # noqa: F401  pylint: disable=import-outside-toplevel

    return ToolRegistry(TOOL_REGISTRY.values())
