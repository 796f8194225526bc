"""Application settings loaded from environment variables."""

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.llm.models import (
    CHAT_DEFAULT_MAX_TOKENS,
    CHAT_DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    PROXY_DEFAULT_MAX_TOKENS,
    PROXY_DEFAULT_MODEL,
)


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Gateway configuration. All values come from environment variables."""

    # Anthropic
    anthropic_api_key: str = Field(default="")
    anthropic_api_url: str = Field(default="https://api.anthropic.com")
    anthropic_version: str = Field(default="2023-06-01")

    # Mem0
    mem0_api_key: str = Field(default="")
    mem0_api_url: str = Field(default="https://api.mem0.ai")

    # Completion defaults, one pair per request flow
    chat_model: str = Field(default=CHAT_DEFAULT_MODEL)
    chat_max_tokens: int = Field(default=CHAT_DEFAULT_MAX_TOKENS)
    proxy_model: str = Field(default=PROXY_DEFAULT_MODEL)
    proxy_max_tokens: int = Field(default=PROXY_DEFAULT_MAX_TOKENS)
    default_temperature: float = Field(default=DEFAULT_TEMPERATURE)

    # Outbound HTTP
    http_timeout: float = Field(default=60.0)
    max_redirects: int = Field(default=3)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    cors_origin: str = Field(default="*")

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
    def memory_enabled(self) -> bool:
        """Memory features are silently off without a Mem0 key."""
        return bool(self.mem0_api_key)


settings = Settings()
