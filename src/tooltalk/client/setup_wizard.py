"""Interactive setup: choose a provider, a model name and an API key, then save them."""

import getpass
import logging
from typing import Callable

from tooltalk.common import (
    AnsiColors,
    colored_print,
)
from tooltalk.config import (
    Settings,
    settings as default_settings,
)
from tooltalk.core.credentials import (
    API_KEY_ENV_VARS,
    API_KEY_PREFIXES,
    CredentialError,
    ModelType,
    load_credentials,
    save_credentials,
    select_provider,
    validate_api_key,
    validate_model_name,
)

logger = logging.getLogger(__name__)

PROVIDER_LABELS = {
    ModelType.OPENAI: "OpenAI (GPT models)",
    ModelType.GEMINI: "Google Gemini",
    ModelType.ANTHROPIC: "Anthropic (Claude models)",
}

MODEL_HINTS = {
    ModelType.OPENAI: "Common OpenAI models: gpt-4o, gpt-4o-mini, gpt-4-turbo, gpt-3.5-turbo",
    ModelType.GEMINI: "Common Gemini models: gemini-2.5-pro, gemini-2.5-flash, gemini-1.5-pro",
    ModelType.ANTHROPIC: "Common Anthropic models: claude-3-5-sonnet-latest, claude-3-5-haiku-latest",
}

KEY_HINTS = {
    ModelType.OPENAI: "You'll need an OpenAI API key from https://platform.openai.com/api-keys",
    ModelType.GEMINI: "You'll need a Google AI API key from https://aistudio.google.com/app/apikey",
    ModelType.ANTHROPIC: "You'll need an Anthropic API key from https://console.anthropic.com/",
}


class SetupCancelled(Exception):
    """The user left the wizard (Ctrl+C or end of input)."""


def _ask(prompt: Callable[[str], str], message: str) -> str:
    try:
        return prompt(message)
    except (EOFError, KeyboardInterrupt) as exc:
        raise SetupCancelled() from exc


def _choose_provider(prompt: Callable[[str], str], current: ModelType) -> ModelType:
    options = list(ModelType)
    colored_print("Which AI model provider would you like to use?", AnsiColors.BLUE)
    for index, model_type in enumerate(options, start=1):
        marker = " (current)" if model_type is current else ""
        print(f"  {index}. {PROVIDER_LABELS[model_type]}{marker}")
    while True:
        answer = _ask(prompt, f"Provider [{options.index(current) + 1}]: ").strip().lower()
        if not answer:
            return current
        for index, model_type in enumerate(options, start=1):
            if answer in (str(index), model_type.value):
                return model_type
        colored_print("Please pick one of the listed providers.", AnsiColors.RED)


def _ask_validated(
    prompt: Callable[[str], str],
    message: str,
    default: str | None,
    validate: Callable[[str], str],
) -> str:
    while True:
        answer = _ask(prompt, message).strip() or (default or "")
        try:
            return validate(answer)
        except CredentialError as exc:
            colored_print(str(exc), AnsiColors.RED)


def run_setup(
    settings: Settings = default_settings,
    prompt: Callable[[str], str] = input,
    secret_prompt: Callable[[str], str] = getpass.getpass,
) -> bool:
    """
    Walk the user through model and credential setup.

    The chosen model goes to ``settings.CONFIG_PATH`` and the API key to ``settings.ENV_PATH``.
    The key is also applied to *settings* so a chat can start right away.

    Returns *False* if the user cancelled or the files could not be written.
    """
    colored_print("🤖 Model Setup", AnsiColors.YELLOW)
    config = load_credentials(settings.CONFIG_PATH, settings)

    try:
        model_type = _choose_provider(prompt, config.model_used.model_type)
        info = config.providers[model_type]

        colored_print(MODEL_HINTS[model_type], AnsiColors.CYAN)
        info.model_name = _ask_validated(
            prompt,
            f"Model name [{info.model_name}]: ",
            info.model_name,
            validate_model_name,
        )

        colored_print(KEY_HINTS[model_type], AnsiColors.CYAN)
        current_key = "(keep current)" if info.api_key else API_KEY_PREFIXES[model_type] + "..."
        info.api_key = _ask_validated(
            secret_prompt,
            f"API key {current_key}: ",
            info.api_key,
            lambda key: validate_api_key(model_type, key),
        )
    except SetupCancelled:
        colored_print("Setup cancelled.", AnsiColors.RED)
        return False

    select_provider(config, model_type)
    try:
        save_credentials(config, settings.CONFIG_PATH, settings.ENV_PATH)
    except OSError as exc:
        logger.error("Failed to save configuration: %s", exc)
        colored_print(f"❌ Failed to save configuration: {exc}", AnsiColors.RED)
        return False

    setattr(settings, API_KEY_ENV_VARS[model_type], info.api_key)
    colored_print(f"Saved configuration to {settings.CONFIG_PATH}", AnsiColors.GREEN)
    return True
