"""Shared test doubles: a scripted chat model and a small tool registry."""

from typing import (
    Callable,
    List,
    Sequence,
    Union,
)

import pytest

from tooltalk.core.chat_model import BaseChatModel
from tooltalk.core.schema import (
    AssistantMessage,
    Message,
    ToolCall,
    ToolSpec,
)
from tooltalk.tools import (
    ToolRegistry,
    tool_from_function,
)

Reply = Union[AssistantMessage, BaseException, Callable[[Sequence[Message]], AssistantMessage]]


class ScriptedChatModel(BaseChatModel):
    """Chat model that plays back a fixed list of replies and records what it was sent."""

    def __init__(self, replies: Sequence[Reply]):
        super().__init__(model_name="scripted")
        self._replies: List[Reply] = list(replies)
        self.histories: List[List[Message]] = []
        self.tool_specs: List[List[ToolSpec]] = []

    def send(self, history: Sequence[Message], tool_specs: Sequence[ToolSpec]) -> AssistantMessage:
        self.histories.append(list(history))
        self.tool_specs.append(list(tool_specs))
        if not self._replies:
            raise AssertionError("ScriptedChatModel ran out of replies")
        reply = self._replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(history)
        return reply


def tool_reply(*calls: ToolCall, content: str = "") -> AssistantMessage:
    """Assistant message requesting *calls*."""
    return AssistantMessage(content=content, tool_calls=list(calls))


def text_reply(content: str) -> AssistantMessage:
    """Assistant message with no tool calls."""
    return AssistantMessage(content=content)


def _add(a: int, b: int) -> int:
    """Return the sum of two integers."""
    return a + b


def _echo(text: str) -> str:
    """Echo the input text back to the caller."""
    return text


def _explode() -> str:
    """Always fails."""
    raise RuntimeError("kaboom")


@pytest.fixture(autouse=True)
def _no_api_keys(monkeypatch) -> None:
    """Keep real provider keys from the environment out of the tests."""
    for name in ("OPENAI_API_KEY", "GOOGLE_API_KEY", "ANTHROPIC_API_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def registry() -> ToolRegistry:
    """Registry with an adder, an echo tool and a tool that always fails."""
    return ToolRegistry(
        [
            tool_from_function(_add, name="add"),
            tool_from_function(_echo, name="echo"),
            tool_from_function(_explode, name="explode"),
        ]
    )
