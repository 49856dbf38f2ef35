"""
Schema definitions for the messages exchanged between the user, the chat model and the tools.

A conversation is an ordered, append-only list of messages.  Each message is one of three variants,
told apart by its ``role`` tag:

- ``user``: free text typed by the user.
- ``assistant``: the model's reply, possibly with tool calls attached.
- ``tool``: the text produced by running one tool call.

We keep these models free of runtime logic so they can be imported anywhere without side-effects.
"""

from typing import (
    Annotated,
    Any,
    Dict,
    Iterable,
    List,
    Literal,
    Optional,
    Sequence,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


class ToolCall(BaseModel):
    """A call that the model wants the agent to execute."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Identifier, unique within one assistant message")
    name: str = Field(..., description="Registered tool name")
    args: Dict[str, Any] = Field(default_factory=dict, description="Keyword arguments for the tool")
    raw_arguments: Optional[str] = Field(
        None, description="Argument text as sent by the provider, kept only when it was not valid JSON"
    )


class UserMessage(BaseModel):
    """Free text typed by the user."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user"] = "user"
    content: str


class AssistantMessage(BaseModel):
    """A reply from the chat model."""

    model_config = ConfigDict(frozen=True)

    role: Literal["assistant"] = "assistant"
    content: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_call_ids(self) -> "AssistantMessage":
        ids = [call.id for call in self.tool_calls]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate tool call ids in assistant message: {ids}")
        return self


class ToolResultMessage(BaseModel):
    """The outcome of one tool call, fed back to the model."""

    model_config = ConfigDict(frozen=True)

    role: Literal["tool"] = "tool"
    tool_call_id: str
    name: str
    content: str
    is_error: bool = False


Message = Annotated[
    Union[UserMessage, AssistantMessage, ToolResultMessage],
    Field(discriminator="role"),
]


class ToolSpec(BaseModel):
    """Declaration of a tool as seen by the chat model."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []},
        description="JSON schema of the keyword arguments",
    )


class ConversationState(BaseModel):
    """The chat history of one conversation, in the order it is sent to the model."""

    messages: List[Message] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.messages)

    @property
    def last_message(self) -> Optional[Message]:
        """The most recent message, or *None* for an empty conversation."""
        return self.messages[-1] if self.messages else None

    def append(self, message: Message) -> None:
        """Append *message* in place."""
        self.messages.append(message)

    def appended(self, message: Message) -> "ConversationState":
        """Return a copy of this state with *message* appended."""
        return self.extended([message])

    def extended(self, messages: Iterable[Message]) -> "ConversationState":
        """Return a copy of this state with *messages* appended."""
        return ConversationState(messages=[*self.messages, *messages])

    def since(self, index: int) -> List[Message]:
        """Return the messages appended after the first *index* ones."""
        return list(self.messages[index:])

    def unanswered_tool_calls(self) -> List[ToolCall]:
        """Tool calls of the latest assistant message that have no tool result yet."""
        answered: set[str] = set()
        for message in reversed(self.messages):
            if isinstance(message, ToolResultMessage):
                answered.add(message.tool_call_id)
            elif isinstance(message, AssistantMessage):
                return [call for call in message.tool_calls if call.id not in answered]
            else:
                break
        return []


def tools_used(messages: Sequence[Message]) -> List[ToolCall]:
    """Every tool call requested in *messages*, in order."""
    return [
        call
        for message in messages
        if isinstance(message, AssistantMessage)
        for call in message.tool_calls
    ]
