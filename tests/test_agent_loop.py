"""Tests for the model/tool loop of a single turn."""

import threading
import time

import pytest

from conftest import (
    ScriptedChatModel,
    text_reply,
    tool_reply,
)
from tooltalk.agent.agent_loop import (
    LoopBoundExceededError,
    describe_workflow,
    run_tool_calls,
    run_turn,
)
from tooltalk.core.chat_model import ModelInvocationError
from tooltalk.core.schema import (
    AssistantMessage,
    ConversationState,
    ToolCall,
    ToolResultMessage,
    UserMessage,
)
from tooltalk.tools import (
    ToolRegistry,
    default_registry,
    tool_from_function,
)


def _state(text: str = "hello") -> ConversationState:
    return ConversationState(messages=[UserMessage(content=text)])


def test_no_tool_calls_appends_one_message(registry) -> None:
    """A plain reply ends the turn with exactly one new message."""
    model = ScriptedChatModel([text_reply("Hi there!")])
    state = _state()

    result = run_turn(state, registry, model)

    assert len(result) == 2
    assert result.last_message == AssistantMessage(content="Hi there!")
    assert len(model.histories) == 1


def test_calculator_scenario() -> None:
    """The model asks for the calculator, sees its result and answers."""
    model = ScriptedChatModel(
        [
            tool_reply(ToolCall(id="call_1", name="calculator", args={"expression": "15*3+7"})),
            text_reply("The result is 52."),
        ]
    )
    state = _state("calculate 15 * 3 + 7")

    result = run_turn(state, default_registry(), model)

    assert [type(m) for m in result.messages] == [
        UserMessage,
        AssistantMessage,
        ToolResultMessage,
        AssistantMessage,
    ]
    assert result.messages[2] == ToolResultMessage(
        tool_call_id="call_1", name="calculator", content="52"
    )
    assert result.last_message.content == "The result is 52."
    # Second model call saw the tool result
    assert model.histories[1][-1].content == "52"


def test_tool_specs_sent_with_every_request(registry) -> None:
    """Every model request carries the registry's tool declarations."""
    model = ScriptedChatModel(
        [tool_reply(ToolCall(id="a", name="echo", args={"text": "x"})), text_reply("done")]
    )

    run_turn(_state(), registry, model)

    expected = [spec.name for spec in registry.specs()]
    assert [[spec.name for spec in specs] for specs in model.tool_specs] == [expected, expected]


def test_results_follow_call_order(registry) -> None:
    """Tool results are appended in the order of the calls."""
    calls = [
        ToolCall(id="c1", name="echo", args={"text": "one"}),
        ToolCall(id="c2", name="add", args={"a": 1, "b": 1}),
        ToolCall(id="c3", name="echo", args={"text": "three"}),
    ]
    model = ScriptedChatModel([tool_reply(*calls), text_reply("ok")])

    result = run_turn(_state(), registry, model)

    results = result.messages[2:5]
    assert [m.tool_call_id for m in results] == ["c1", "c2", "c3"]
    assert [m.content for m in results] == ["one", "2", "three"]


def test_concurrent_tools_keep_call_order() -> None:
    """Results stay in call order even when later calls finish first."""
    finished: list = []
    lock = threading.Lock()

    def slow(delay: float) -> str:
        """Sleep, then report the delay."""
        time.sleep(delay)
        with lock:
            finished.append(delay)
        return str(delay)

    registry = ToolRegistry([tool_from_function(slow)])
    calls = [
        ToolCall(id="c1", name="slow", args={"delay": 0.2}),
        ToolCall(id="c2", name="slow", args={"delay": 0.0}),
    ]

    results = run_tool_calls(calls, registry, concurrent=True)

    assert finished == [0.0, 0.2]
    assert [r.tool_call_id for r in results] == ["c1", "c2"]
    assert [r.content for r in results] == ["0.2", "0.0"]


def test_interrupt_does_not_wait_for_running_tools() -> None:
    """Ctrl+C in a concurrent round returns without joining tools that are still running."""
    release = threading.Event()
    finished: list = []

    def stop() -> str:
        """Simulate Ctrl+C."""
        raise KeyboardInterrupt

    def hang() -> str:
        """Block until released."""
        release.wait(timeout=5)
        finished.append("hang")
        return "done"

    registry = ToolRegistry([tool_from_function(stop), tool_from_function(hang)])
    calls = [ToolCall(id="c1", name="stop"), ToolCall(id="c2", name="hang")]

    try:
        with pytest.raises(KeyboardInterrupt):
            run_tool_calls(calls, registry, concurrent=True)
        assert finished == []
    finally:
        release.set()


def test_unknown_tool_does_not_raise(registry) -> None:
    """An unknown tool produces an error result and the loop goes on to the next model call."""
    model = ScriptedChatModel(
        [tool_reply(ToolCall(id="x", name="frobnicate")), text_reply("Sorry, I can't do that.")]
    )

    result = run_turn(_state(), registry, model)

    tool_result = result.messages[2]
    assert isinstance(tool_result, ToolResultMessage)
    assert tool_result.is_error
    assert "frobnicate" in tool_result.content
    assert "not registered" in tool_result.content
    assert len(model.histories) == 2


def test_tool_failure_is_fed_back(registry) -> None:
    """A raising tool becomes text the model can react to."""
    model = ScriptedChatModel(
        [tool_reply(ToolCall(id="x", name="explode")), text_reply("That tool is broken.")]
    )

    result = run_turn(_state(), registry, model)

    assert "kaboom" in result.messages[2].content
    assert result.last_message.content == "That tool is broken."


def test_model_error_propagates_and_state_is_untouched(registry) -> None:
    """Model failures are not swallowed and leave the caller's state as it was."""
    model = ScriptedChatModel(
        [
            tool_reply(ToolCall(id="a", name="echo", args={"text": "x"})),
            ModelInvocationError("rate limited"),
        ]
    )
    state = _state()
    before = state.model_copy(deep=True)

    with pytest.raises(ModelInvocationError):
        run_turn(state, registry, model)

    assert len(state) == 1
    assert state == before


def test_cancellation_leaves_state_untouched(registry) -> None:
    """An interrupt in the middle of a turn commits nothing."""
    model = ScriptedChatModel(
        [tool_reply(ToolCall(id="a", name="echo", args={"text": "x"})), KeyboardInterrupt()]
    )
    state = _state()

    with pytest.raises(KeyboardInterrupt):
        run_turn(state, registry, model)

    assert len(state) == 1


def test_loop_bound(registry) -> None:
    """A model that never stops calling tools hits the round limit."""
    model = ScriptedChatModel(
        [tool_reply(ToolCall(id=f"c{i}", name="echo", args={"text": "again"})) for i in range(3)]
    )
    state = _state()

    with pytest.raises(LoopBoundExceededError) as exc_info:
        run_turn(state, registry, model, max_rounds=3)

    assert exc_info.value.max_rounds == 3
    assert len(model.histories) == 3
    assert len(state) == 1


def test_final_reply_on_last_allowed_round(registry) -> None:
    """Replying on the last allowed model call is still a success."""
    model = ScriptedChatModel(
        [tool_reply(ToolCall(id="a", name="echo", args={"text": "x"})), text_reply("done")]
    )

    result = run_turn(_state(), registry, model, max_rounds=2)

    assert result.last_message.content == "done"


def test_requires_trailing_user_message(registry) -> None:
    """A turn needs a fresh user message to answer."""
    model = ScriptedChatModel([])

    with pytest.raises(ValueError):
        run_turn(ConversationState(), registry, model)
    with pytest.raises(ValueError):
        run_turn(_state().appended(text_reply("hi")), registry, model)


def test_rejects_unanswered_tool_calls(registry) -> None:
    """Every earlier tool call needs its result before the model is asked again."""
    state = _state().extended(
        [
            tool_reply(ToolCall(id="c1", name="echo", args={"text": "x"})),
            UserMessage(content="never mind"),
        ]
    )
    model = ScriptedChatModel([text_reply("ok")])

    with pytest.raises(ValueError, match="c1"):
        run_turn(state, registry, model)
    assert model.histories == []


def test_answered_tool_calls_are_accepted(registry) -> None:
    """A history whose tool calls all have results can start a new turn."""
    state = _state().extended(
        [
            tool_reply(ToolCall(id="c1", name="echo", args={"text": "x"})),
            ToolResultMessage(tool_call_id="c1", name="echo", content="x"),
            text_reply("x"),
            UserMessage(content="thanks"),
        ]
    )

    result = run_turn(state, registry, ScriptedChatModel([text_reply("welcome")]))

    assert result.last_message.content == "welcome"


def test_replay_is_deterministic(registry) -> None:
    """The same input, model script and tools give an equal result."""

    def script() -> ScriptedChatModel:
        return ScriptedChatModel(
            [
                tool_reply(
                    ToolCall(id="a", name="add", args={"a": 2, "b": 2}),
                    ToolCall(id="b", name="echo", args={"text": "hey"}),
                ),
                text_reply("2 + 2 = 4"),
            ]
        )

    state = _state("what is 2 + 2?")

    assert run_turn(state, registry, script()) == run_turn(state, registry, script())


def test_history_is_extended_not_rewritten(registry) -> None:
    """Earlier messages are kept as-is at the start of the result."""
    earlier = ConversationState(
        messages=[
            UserMessage(content="hi"),
            AssistantMessage(content="hello"),
            UserMessage(content="echo something"),
        ]
    )
    model = ScriptedChatModel(
        [tool_reply(ToolCall(id="a", name="echo", args={"text": "something"})), text_reply("ok")]
    )

    result = run_turn(earlier, registry, model)

    assert result.messages[:3] == earlier.messages
    assert model.histories[0] == earlier.messages


def test_describe_workflow() -> None:
    """The diagram shows both branches out of the agent node."""
    diagram = describe_workflow()

    assert diagram.startswith("graph TD;")
    assert "agent -. tool calls .-> tools;" in diagram
    assert "tools --> agent;" in diagram
