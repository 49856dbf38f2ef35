"""
Chat model interface for tooltalk.

This module is the only place that *directly* calls an LLM.  Everything else (agent loop, tools,
CLI) stays provider-agnostic and talks to a :class:`BaseChatModel`:

    send(history, tool_specs) -> AssistantMessage

We support three back-ends out of the box:

1. **OpenAI** chat completions with function tools.
2. **Google Gemini** through its OpenAI-compatible endpoint.
3. **Anthropic** messages with ``tool_use`` / ``tool_result`` blocks.

Additional providers can be added by subclassing :class:`BaseChatModel` and registering via
:func:`register_chat_model`.
"""

import json
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    List,
    Sequence,
    Type,
)

from tooltalk.core.schema import (
    AssistantMessage,
    Message,
    ToolCall,
    ToolResultMessage,
    ToolSpec,
    UserMessage,
)

logger = logging.getLogger(__name__)


class ModelInvocationError(RuntimeError):
    """Raised when the provider call fails (auth, network, rate limit, bad request)."""


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_CHAT_MODEL_REGISTRY: dict[str, Type["BaseChatModel"]] = {}


def register_chat_model(name: str) -> Callable:
    """Decorator to register a chat model class under *name*."""

    def wrapper(cls: Type["BaseChatModel"]) -> Type["BaseChatModel"]:
        _CHAT_MODEL_REGISTRY[name] = cls
        return cls

    return wrapper


def available_providers() -> List[str]:
    """Names accepted by :func:`load_chat_model`."""
    return sorted(_CHAT_MODEL_REGISTRY)


def load_chat_model(
    provider: str, model_name: str, api_key: str | None = None, **kwargs: Any
) -> "BaseChatModel":
    """
    Factory that returns an instantiated chat model for *provider*.

    Raises
    ------
    ValueError
        If no chat model is registered under *provider*.
    """

    cls = _CHAT_MODEL_REGISTRY.get(provider.lower())
    if cls is None:
        raise ValueError(
            f"Chat model provider '{provider}' is not registered "
            f"(known: {', '.join(available_providers())})."
        )
    logger.debug("Loading %s chat model '%s'", provider, model_name)
    return cls(model_name=model_name, api_key=api_key, **kwargs)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseChatModel(ABC):
    """Abstract chat model that turns a message history into the next assistant message."""

    SYSTEM_PROMPT: ClassVar[
        str
    ] = """\
You are a helpful assistant that can use tools.
Call a tool whenever it helps to answer the user, then reply in plain language.
"""

    def __init__(
        self,
        model_name: str,
        api_key: str | None = None,
        temperature: float = 0.0,
        system_prompt: str | None = None,
        client: Any = None,
    ):
        self.model_name = model_name
        self.api_key = api_key
        self.temperature = temperature
        self.system_prompt = system_prompt or self.SYSTEM_PROMPT
        self._client = client

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model_name={self.model_name!r})"

    @abstractmethod
    def send(self, history: Sequence[Message], tool_specs: Sequence[ToolSpec]) -> AssistantMessage:
        """Send the full *history* and the available tools; return the model's reply."""


def _decode_arguments(raw: Any) -> tuple[Dict[str, Any], str | None]:
    """Decode provider argument text into ``(args, raw_arguments)``."""
    if raw is None or raw == "":
        return {}, None
    if isinstance(raw, dict):
        return raw, None
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        logger.warning("Tool call arguments are not valid JSON: %r", raw)
        return {}, str(raw)
    if not isinstance(parsed, dict):
        return {}, str(raw)
    return parsed, None


# ---------------------------------------------------------------------------
# OpenAI wire format
# ---------------------------------------------------------------------------
def _to_openai_messages(history: Sequence[Message], system_prompt: str) -> List[Dict[str, Any]]:
    messages: List[Dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    for msg in history:
        if isinstance(msg, UserMessage):
            messages.append({"role": "user", "content": msg.content})
        elif isinstance(msg, AssistantMessage):
            # Null content is only accepted next to tool calls
            entry: Dict[str, Any] = {"role": "assistant", "content": msg.content}
            if msg.tool_calls:
                entry["content"] = msg.content or None
                entry["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": (
                                call.raw_arguments
                                if call.raw_arguments is not None
                                else json.dumps(call.args)
                            ),
                        },
                    }
                    for call in msg.tool_calls
                ]
            messages.append(entry)
        elif isinstance(msg, ToolResultMessage):
            messages.append(
                {"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.content}
            )
    return messages


def _to_openai_tools(tool_specs: Sequence[ToolSpec]) -> List[Dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": spec.name,
                "description": spec.description,
                "parameters": spec.parameters,
            },
        }
        for spec in tool_specs
    ]


def _from_openai_message(message: Any) -> AssistantMessage:
    calls = []
    for index, tc in enumerate(message.tool_calls or []):
        args, raw = _decode_arguments(tc.function.arguments)
        calls.append(
            ToolCall(
                id=tc.id or f"call_{index}",
                name=tc.function.name,
                args=args,
                raw_arguments=raw,
            )
        )
    return AssistantMessage(content=message.content or "", tool_calls=calls)


# ---------------------------------------------------------------------------
# Concrete chat models
# ---------------------------------------------------------------------------
@register_chat_model("openai")
class OpenAIChatModel(BaseChatModel):
    """OpenAI chat completions with function calling."""

    base_url: ClassVar[str | None] = None

    def _get_client(self) -> Any:
        if self._client is None:
            import openai  # pylint: disable=import-outside-toplevel

            self._client = openai.OpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    def send(self, history: Sequence[Message], tool_specs: Sequence[ToolSpec]) -> AssistantMessage:
        import openai  # pylint: disable=import-outside-toplevel

        kwargs: Dict[str, Any] = {
            "model": self.model_name,
            "messages": _to_openai_messages(history, self.system_prompt),
            "temperature": self.temperature,
        }
        if tool_specs:
            kwargs["tools"] = _to_openai_tools(tool_specs)

        try:
            resp = self._get_client().chat.completions.create(**kwargs)
        except openai.OpenAIError as exc:
            logger.error("%s request error: %s", type(self).__name__, exc)
            raise ModelInvocationError(f"Error calling {self.model_name}: {exc}") from exc

        if not resp.choices:
            raise ModelInvocationError(f"Empty response from {self.model_name}")
        reply = _from_openai_message(resp.choices[0].message)
        logger.debug("%s response: %s", type(self).__name__, reply)
        return reply


@register_chat_model("gemini")
class GeminiChatModel(OpenAIChatModel):
    """Google Gemini via the OpenAI-compatible endpoint."""

    base_url: ClassVar[str | None] = "https://generativelanguage.googleapis.com/v1beta/openai/"


# ---------------------------------------------------------------------------
# Anthropic wire format
# ---------------------------------------------------------------------------
def _add_user_block(messages: List[Dict[str, Any]], block: Dict[str, Any]) -> None:
    """Append *block* to the trailing user turn, or start a new one."""
    last = messages[-1] if messages else None
    if last and last["role"] == "user":
        if isinstance(last["content"], str):
            last["content"] = [{"type": "text", "text": last["content"]}]
        last["content"].append(block)
    else:
        messages.append({"role": "user", "content": [block]})


def _to_anthropic_messages(history: Sequence[Message]) -> List[Dict[str, Any]]:
    messages: List[Dict[str, Any]] = []
    for msg in history:
        if isinstance(msg, UserMessage):
            if messages and messages[-1]["role"] == "user":
                _add_user_block(messages, {"type": "text", "text": msg.content})
            else:
                messages.append({"role": "user", "content": msg.content})
        elif isinstance(msg, AssistantMessage):
            blocks: List[Dict[str, Any]] = []
            if msg.content:
                blocks.append({"type": "text", "text": msg.content})
            for call in msg.tool_calls:
                blocks.append(
                    {"type": "tool_use", "id": call.id, "name": call.name, "input": call.args}
                )
            # Empty assistant turns are rejected; the user turns around it are merged instead
            if blocks:
                messages.append({"role": "assistant", "content": blocks})
        elif isinstance(msg, ToolResultMessage):
            # Results answering the same assistant turn go into a single user turn
            _add_user_block(
                messages,
                {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content,
                    "is_error": msg.is_error,
                },
            )
    return messages


def _to_anthropic_tools(tool_specs: Sequence[ToolSpec]) -> List[Dict[str, Any]]:
    return [
        {"name": spec.name, "description": spec.description, "input_schema": spec.parameters}
        for spec in tool_specs
    ]


def _from_anthropic_content(content: Sequence[Any]) -> AssistantMessage:
    texts: List[str] = []
    calls: List[ToolCall] = []
    for block in content:
        if block.type == "text":
            texts.append(block.text)
        elif block.type == "tool_use":
            args, raw = _decode_arguments(block.input)
            calls.append(ToolCall(id=block.id, name=block.name, args=args, raw_arguments=raw))
    return AssistantMessage(content="".join(texts), tool_calls=calls)


@register_chat_model("anthropic")
class AnthropicChatModel(BaseChatModel):
    """Anthropic Claude messages with tool use."""

    MAX_TOKENS: ClassVar[int] = 4096

    def _get_client(self) -> Any:
        if self._client is None:
            import anthropic  # pylint: disable=import-outside-toplevel

            self._client = anthropic.Anthropic(api_key=self.api_key)
        return self._client

    def send(self, history: Sequence[Message], tool_specs: Sequence[ToolSpec]) -> AssistantMessage:
        import anthropic  # pylint: disable=import-outside-toplevel

        kwargs: Dict[str, Any] = {
            "model": self.model_name,
            "max_tokens": self.MAX_TOKENS,
            "system": self.system_prompt,
            "messages": _to_anthropic_messages(history),
            "temperature": self.temperature,
        }
        if tool_specs:
            kwargs["tools"] = _to_anthropic_tools(tool_specs)

        try:
            response = self._get_client().messages.create(**kwargs)
        except anthropic.AnthropicError as exc:
            logger.error("Anthropic request error: %s", exc)
            raise ModelInvocationError(f"Error calling {self.model_name}: {exc}") from exc

        reply = _from_anthropic_content(response.content)
        logger.debug("Anthropic response: %s", reply)
        return reply
