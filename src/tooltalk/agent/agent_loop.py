"""
Main orchestration loop for tooltalk.

One call to :func:`run_turn` handles one user turn::

    AWAITING_MODEL --(reply has tool calls)--> HAS_TOOL_CALLS --(results appended)--> AWAITING_MODEL
    AWAITING_MODEL --(reply has no tool calls)--> DONE

The caller's :class:`~tooltalk.core.schema.ConversationState` is never touched: every message of the
turn is appended to a working copy that is returned only when the turn reaches ``DONE``.  If the
model fails, the round limit is hit, or the turn is interrupted, the caller still holds its
pre-turn state.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from functools import partial
from typing import (
    List,
    Sequence,
)

from tooltalk.agent.tool_executor import dispatch_tool_call
from tooltalk.config import settings
from tooltalk.core.chat_model import BaseChatModel
from tooltalk.core.schema import (
    ConversationState,
    Message,
    ToolCall,
    ToolResultMessage,
    UserMessage,
)
from tooltalk.tools import ToolRegistry

logger = logging.getLogger(__name__)

_MAX_TOOL_WORKERS = 8


class LoopState(Enum):
    """States of the agent loop within one turn."""

    AWAITING_MODEL = "awaiting_model"
    HAS_TOOL_CALLS = "has_tool_calls"
    DONE = "done"


class LoopBoundExceededError(RuntimeError):
    """Raised when a turn needs more model calls than allowed."""

    def __init__(self, max_rounds: int):
        super().__init__(
            f"The agent did not produce a final reply within {max_rounds} model calls."
        )
        self.max_rounds = max_rounds


# ---------------------------------------------------------------------------
# Tool round
# ---------------------------------------------------------------------------
def run_tool_calls(
    calls: Sequence[ToolCall], registry: ToolRegistry, concurrent: bool = False
) -> List[ToolResultMessage]:
    """
    Execute *calls* and return one result per call, in call order.

    With *concurrent* set the calls run on a thread pool; ``Executor.map`` keeps the results in
    the order of the calls, not the order they finish in.
    """
    run_one = partial(dispatch_tool_call, registry=registry)
    if not concurrent or len(calls) < 2:
        return [run_one(call) for call in calls]

    pool = ThreadPoolExecutor(max_workers=min(len(calls), _MAX_TOOL_WORKERS))
    try:
        results = list(pool.map(run_one, calls))
    except BaseException:
        # Interrupted: drop queued calls and leave running ones behind
        pool.shutdown(wait=False, cancel_futures=True)
        raise
    pool.shutdown()
    return results


# ---------------------------------------------------------------------------
# Agent Loop
# ---------------------------------------------------------------------------
def run_turn(
    state: ConversationState,
    registry: ToolRegistry,
    model: BaseChatModel,
    *,
    max_rounds: int | None = None,
    concurrent_tools: bool | None = None,
) -> ConversationState:
    """
    Run the model/tool loop for one user turn.

    Parameters
    ----------
    state:
        History ending with the new user message.  It is not modified.
    registry:
        Tools the model may call.  Their specs are sent with every model request.
    model:
        The chat model to query.
    max_rounds:
        Upper bound on model calls in this turn (default ``settings.MAX_TOOL_ROUNDS``).
    concurrent_tools:
        Run the tool calls of one reply in parallel (default ``settings.CONCURRENT_TOOLS``).

    Returns
    -------
    ConversationState
        A new state: the input history followed by the assistant replies and tool results of this
        turn.  Its last message is the assistant's final reply.

    Raises
    ------
    ValueError
        If *state* does not end with a user message, or an earlier tool call has no result.
    ModelInvocationError
        If the model call fails.
    LoopBoundExceededError
        If no final reply arrives within *max_rounds* model calls.
    """
    if max_rounds is None:
        max_rounds = settings.MAX_TOOL_ROUNDS
    if concurrent_tools is None:
        concurrent_tools = settings.CONCURRENT_TOOLS
    if max_rounds < 1:
        raise ValueError(f"max_rounds must be at least 1, got {max_rounds}")
    if not isinstance(state.last_message, UserMessage):
        raise ValueError("The conversation must end with a user message before running a turn.")
    unanswered = ConversationState(messages=state.messages[:-1]).unanswered_tool_calls()
    if unanswered:
        raise ValueError(
            "The conversation has tool calls without results: "
            f"{', '.join(call.id for call in unanswered)}"
        )

    tool_specs = registry.specs()
    working: List[Message] = list(state.messages)
    loop_state = LoopState.AWAITING_MODEL

    for round_no in range(1, max_rounds + 1):
        logger.debug("Round %d/%d: sending %d messages", round_no, max_rounds, len(working))
        reply = model.send(tuple(working), tool_specs)
        working.append(reply)

        if not reply.tool_calls:
            loop_state = LoopState.DONE
            break

        loop_state = LoopState.HAS_TOOL_CALLS
        logger.info(
            "Model requested %d tool calls: %s",
            len(reply.tool_calls),
            [call.name for call in reply.tool_calls],
        )
        working.extend(run_tool_calls(reply.tool_calls, registry, concurrent=concurrent_tools))
        loop_state = LoopState.AWAITING_MODEL

    if loop_state is not LoopState.DONE:
        logger.error("Turn aborted after %d model calls without a final reply", max_rounds)
        raise LoopBoundExceededError(max_rounds)

    logger.debug("Turn finished with %d new messages", len(working) - len(state))
    return ConversationState(messages=working)


# ---------------------------------------------------------------------------
# Workflow diagram
# ---------------------------------------------------------------------------
def describe_workflow() -> str:
    """Return the agent loop as a Mermaid flowchart."""
    return "\n".join(
        [
            "graph TD;",
            "    __start__([__start__]) --> agent;",
            "    agent -. tool calls .-> tools;",
            "    agent -. no tool calls .-> __end__([__end__]);",
            "    tools --> agent;",
        ]
    )
