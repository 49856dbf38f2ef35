"""
Model selection and API key storage.

The selected provider and model names live in ``config.json``; API keys never go there and are
written to ``.env`` instead, where :mod:`tooltalk.config` picks them up on the next start.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import (
    Dict,
    Mapping,
    Optional,
)

from dotenv import set_key
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
)

from tooltalk.config import Settings

logger = logging.getLogger(__name__)


class CredentialError(ValueError):
    """Raised when a model name or API key fails validation."""


class ModelType(str, Enum):
    """Supported model providers."""

    OPENAI = "openai"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"


DEFAULT_MODEL_NAMES: Mapping[ModelType, str] = {
    ModelType.OPENAI: "gpt-4o-mini",
    ModelType.GEMINI: "gemini-2.5-flash",
    ModelType.ANTHROPIC: "claude-3-5-haiku-latest",
}

API_KEY_PREFIXES: Mapping[ModelType, str] = {
    ModelType.OPENAI: "sk-",
    ModelType.GEMINI: "AIza",
    ModelType.ANTHROPIC: "sk-ant-",
}

API_KEY_ENV_VARS: Mapping[ModelType, str] = {
    ModelType.OPENAI: "OPENAI_API_KEY",
    ModelType.GEMINI: "GOOGLE_API_KEY",
    ModelType.ANTHROPIC: "ANTHROPIC_API_KEY",
}

MIN_MODEL_NAME_LENGTH = 3
MIN_API_KEY_LENGTH = 10


class ModelInfo(BaseModel):
    """Provider, model name and (in memory only) the API key."""

    model_config = ConfigDict(protected_namespaces=())

    model_type: ModelType
    model_name: str
    api_key: Optional[str] = Field(None, exclude=True)


def _default_providers() -> Dict[ModelType, ModelInfo]:
    return {
        model_type: ModelInfo(model_type=model_type, model_name=name)
        for model_type, name in DEFAULT_MODEL_NAMES.items()
    }


class AppConfig(BaseModel):
    """The selected model plus the last-used settings of every provider."""

    model_config = ConfigDict(protected_namespaces=())

    model_used: ModelInfo = Field(
        default_factory=lambda: ModelInfo(
            model_type=ModelType.OPENAI, model_name=DEFAULT_MODEL_NAMES[ModelType.OPENAI]
        )
    )
    providers: Dict[ModelType, ModelInfo] = Field(default_factory=_default_providers)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
def validate_model_name(name: str) -> str:
    """Return the stripped model name, or raise :class:`CredentialError`."""
    name = (name or "").strip()
    if not name:
        raise CredentialError("Model name cannot be empty")
    if len(name) < MIN_MODEL_NAME_LENGTH:
        raise CredentialError(
            f"Model name must be at least {MIN_MODEL_NAME_LENGTH} characters long"
        )
    return name


def validate_api_key(model_type: ModelType, key: str) -> str:
    """Return the stripped API key, or raise :class:`CredentialError`."""
    key = (key or "").strip()
    if len(key) < MIN_API_KEY_LENGTH:
        raise CredentialError(f"API key must be at least {MIN_API_KEY_LENGTH} characters long")
    prefix = API_KEY_PREFIXES[model_type]
    if not key.startswith(prefix):
        raise CredentialError(f"{model_type.value} API key should start with '{prefix}'")
    return key


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------
def _attach_keys(config: AppConfig, settings: Settings) -> AppConfig:
    for model_type, info in config.providers.items():
        info.api_key = getattr(settings, API_KEY_ENV_VARS[model_type]) or None
    config.model_used = config.providers[config.model_used.model_type].model_copy(
        update={"model_name": config.model_used.model_name}
    )
    return config


def load_credentials(config_path: str | Path, settings: Settings) -> AppConfig:
    """
    Read ``config.json`` and attach the API keys known to *settings*.

    Missing or unreadable files are reported and the defaults are used instead.
    """
    path = Path(config_path)
    config = AppConfig()
    if not path.exists():
        logger.warning("%s not found, using default model settings", path)
        return _attach_keys(config, settings)

    try:
        stored = AppConfig.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        logger.error("Error reading configuration file %s: %s", path, exc)
        return _attach_keys(config, settings)

    # Providers missing from the file keep their defaults
    config.providers.update(stored.providers)
    config.model_used = stored.model_used
    return _attach_keys(config, settings)


def save_credentials(config: AppConfig, config_path: str | Path, env_path: str | Path) -> None:
    """Write the model settings to *config_path* and the API keys to *env_path*."""
    config_file = Path(config_path)
    config_file.write_text(config.model_dump_json(indent=2), encoding="utf-8")
    logger.info("Saved model configuration to %s", config_file)

    env_file = Path(env_path)
    env_file.touch(exist_ok=True)
    for model_type, info in config.providers.items():
        if info.api_key:
            set_key(str(env_file), API_KEY_ENV_VARS[model_type], info.api_key)
    logger.info("Saved API keys to %s", env_file)


def select_provider(config: AppConfig, model_type: ModelType) -> AppConfig:
    """Make the stored settings of *model_type* the current model."""
    config.model_used = config.providers[model_type].model_copy()
    return config
