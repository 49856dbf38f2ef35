"""Interactive terminal client: main menu and the chat session."""

from __future__ import annotations

import logging
from typing import (
    Callable,
    Tuple,
)

from tooltalk.agent.agent_loop import (
    LoopBoundExceededError,
    describe_workflow,
    run_turn,
)
from tooltalk.common import (
    AnsiColors,
    colored_print,
    print_tools_used,
)
from tooltalk.config import (
    Settings,
    settings as default_settings,
)
from tooltalk.core.chat_model import (
    BaseChatModel,
    ModelInvocationError,
    load_chat_model,
)
from tooltalk.core.credentials import load_credentials
from tooltalk.core.schema import (
    ConversationState,
    UserMessage,
    tools_used,
)
from tooltalk.tools import (
    ToolRegistry,
    default_registry,
)

logger = logging.getLogger(__name__)

QUIT_COMMANDS = {"/quit", "exit", "quit"}


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    import signal  # pylint: disable=import-outside-toplevel

    # Ensure SIGINT breaks out of slow system calls such as read()
    # (True  ⇒  *do* interrupt;  False ⇒ restart them)
    if hasattr(signal, "siginterrupt"):
        signal.siginterrupt(signal.SIGINT, True)

    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


# ---------------------------------------------------------------------------
# Chat session
# ---------------------------------------------------------------------------
def run_chat(
    model: BaseChatModel,
    registry: ToolRegistry,
    read_message: Callable[[], Tuple[str, bool]] = get_user_message,
    max_rounds: int | None = None,
) -> ConversationState:
    """
    Run an interactive conversation until the user quits.

    Each turn is run against a copy of the history that already holds the new user message; the
    copy becomes the history only if the turn succeeds, so a failed turn can be retried as-is.

    Returns the final conversation.
    """
    colored_print("\n🤖 Interactive AI Assistant with Memory", AnsiColors.YELLOW)
    colored_print("Type your messages below. Type '/quit' to exit.", AnsiColors.YELLOW)
    state = ConversationState()

    while True:
        colored_print("\n🗣️  You: ", AnsiColors.BLUE, end="")
        user_msg, ok = read_message()
        if not ok or user_msg.lower() in QUIT_COMMANDS:
            colored_print("\n👋 Goodbye! Conversation ended.", AnsiColors.YELLOW)
            break
        if not user_msg:
            continue

        pending = state.appended(UserMessage(content=user_msg))
        colored_print("🤔 Thinking...", AnsiColors.CYAN)
        try:
            result = run_turn(pending, registry, model, max_rounds=max_rounds)
        except (ModelInvocationError, LoopBoundExceededError) as exc:
            logger.warning("Turn failed: %s", exc)
            colored_print(f"❌ Error processing message: {exc}", AnsiColors.RED)
            colored_print("Please try again.", AnsiColors.RED)
            continue
        except KeyboardInterrupt:
            colored_print("\n⚠️ Turn interrupted; nothing was added to the conversation.", AnsiColors.RED)
            continue

        new_messages = result.since(len(state))
        state = result
        colored_print(f"🤖 Assistant: {state.last_message.content}", AnsiColors.GREEN)
        print_tools_used(tools_used(new_messages))

    return state


def start_chat(settings: Settings = default_settings) -> bool:
    """Load the configured model and start a chat.  Returns *False* if no model is usable."""
    credentials = load_credentials(settings.CONFIG_PATH, settings)
    model_info = credentials.model_used
    if not model_info.api_key:
        colored_print("❌ No valid credentials found!", AnsiColors.RED)
        colored_print(
            "Please run setup first to configure your model and credentials.", AnsiColors.RED
        )
        return False

    model = load_chat_model(
        model_info.model_type.value,
        model_info.model_name,
        api_key=model_info.api_key,
        temperature=settings.TEMPERATURE,
        system_prompt=settings.SYSTEM_PROMPT,
    )
    colored_print(
        f"🤖 Using {model_info.model_type.value.upper()} {model_info.model_name} model",
        AnsiColors.YELLOW,
    )
    run_chat(model, default_registry(), max_rounds=settings.MAX_TOOL_ROUNDS)
    return True


def show_workflow() -> None:
    """Print the agent loop diagram."""
    colored_print("\n📊 Agent Workflow Diagram:", AnsiColors.YELLOW)
    print(describe_workflow())


# ---------------------------------------------------------------------------
# Main menu
# ---------------------------------------------------------------------------
MENU_OPTIONS = (
    ("setup", "Setup/Configure Model & Credentials"),
    ("workflow", "View Agent Workflow Diagram"),
    ("chat", "Run Chat Assistant"),
    ("exit", "Exit Application"),
)


def run_menu(
    settings: Settings = default_settings,
    read_message: Callable[[], Tuple[str, bool]] = get_user_message,
) -> None:
    """Show the main menu until the user picks *Exit*."""
    # Lazy import: the wizard is only needed from the menu and the --mode setup path
    from tooltalk.client.setup_wizard import run_setup  # pylint: disable=import-outside-toplevel

    colored_print("🤖 tooltalk", AnsiColors.YELLOW)
    while True:
        colored_print("\nWhat would you like to do?", AnsiColors.BLUE)
        for index, (_, label) in enumerate(MENU_OPTIONS, start=1):
            print(f"  {index}. {label}")
        colored_print("> ", AnsiColors.BLUE, end="")
        answer, ok = read_message()
        if not ok:
            break

        choice = next(
            (
                value
                for index, (value, _) in enumerate(MENU_OPTIONS, start=1)
                if answer in (str(index), value)
            ),
            None,
        )
        if choice == "setup":
            if run_setup(settings):
                colored_print("✅ Setup complete! 🎉", AnsiColors.GREEN)
            else:
                colored_print("❌ Setup failed or was cancelled.", AnsiColors.RED)
        elif choice == "workflow":
            show_workflow()
        elif choice == "chat":
            start_chat(settings)
        elif choice == "exit":
            break
        else:
            colored_print("No option selected.", AnsiColors.RED)

    colored_print("Goodbye! 👋", AnsiColors.YELLOW)
