"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Helpdesk assistant configuration. All values come from environment variables."""

    # Anthropic
    anthropic_api_key: str = Field(default="")
    chat_model: str = Field(default="sonnet")
    generation_max_tokens: int = Field(default=1024)
    generation_timeout_seconds: float = Field(default=25.0)

    # Conversation
    history_turns: int = Field(default=20)
    max_message_length: int = Field(default=2000)
    session_retention_hours: int = Field(default=24)

    # Rate limiting
    rate_limit_window_seconds: float = Field(default=60.0)
    rate_limit_max_messages: int = Field(default=10)
    rate_limit_max_windows: int = Field(default=10_000)

    # Database
    database_path: Path = Field(default=Path("data/helpdesk.db"))
    fulltext_enabled: bool = Field(default=True)

    # Housekeeping
    housekeeping_interval_seconds: int = Field(default=900)

    # HTTP
    http_host: str = Field(default="0.0.0.0")
    http_port: int = Field(default=8080)

    # Company
    company_timezone: str = Field(default="Africa/Accra")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @property
    def generation_configured(self) -> bool:
        """True when an Anthropic API key is present."""
        return bool(self.anthropic_api_key.strip())


settings = Settings()
