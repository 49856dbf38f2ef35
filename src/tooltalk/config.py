"""Configuration settings for the application."""

from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # These will be loaded from environment variables or a .env file if not provided
    LOG_LEVEL: str = "warning"  # Options: debug, info, warning, error, critical

    # Agent loop
    MAX_TOOL_ROUNDS: int = 25  # model calls allowed in a single user turn
    CONCURRENT_TOOLS: bool = False
    TEMPERATURE: float = 0.0
    SYSTEM_PROMPT: str | None = None

    # Where the setup wizard keeps the selected model (config.json) and the keys (.env)
    CONFIG_PATH: str = "config.json"
    ENV_PATH: str = ".env"

    # Provider API keys
    OPENAI_API_KEY: str | None = None
    GOOGLE_API_KEY: str | None = None
    ANTHROPIC_API_KEY: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
