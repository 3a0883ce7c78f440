"""Configuration management for aifunctions."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from aifunctions.types import Model
from aifunctions.utils.retry import BackoffConfig

DEFAULT_BASE_URL = "https://api.openai.com/v1"

# Field names masked in repr so keys do not leak into logs or tracebacks
_SENSITIVE_FIELDS: frozenset = frozenset({"openai_api_key"})


class Settings(BaseSettings):
    """Engine settings, read from the environment and an optional ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    def __repr__(self) -> str:
        field_strs = []
        for field_name in type(self).model_fields:
            value = getattr(self, field_name, None)
            if field_name in _SENSITIVE_FIELDS:
                masked = f"<{len(str(value))} chars>" if value else "None"
                field_strs.append(f"{field_name}={masked!r}")
            else:
                field_strs.append(f"{field_name}={value!r}")
        return f"{self.__class__.__name__}({', '.join(field_strs)})"

    def __str__(self) -> str:
        return self.__repr__()

    # Backend
    openai_api_key: Optional[str] = Field(None, validation_alias="OPENAI_API_KEY")
    openai_base_url: str = Field(DEFAULT_BASE_URL, validation_alias="OPENAI_BASE_URL")
    ai_model: str = Field(Model.gpt_3_5_turbo.value, validation_alias="AI_MODEL")
    ai_max_tokens: Optional[int] = Field(None, validation_alias="AI_MAX_TOKENS", gt=0)
    request_timeout: float = Field(60.0, validation_alias="REQUEST_TIMEOUT", gt=0)

    # Rate-limit backoff (seconds)
    rate_limit_initial_delay: float = Field(
        1.0, validation_alias="RATE_LIMIT_INITIAL_DELAY", gt=0
    )
    rate_limit_max_delay: float = Field(
        60.0, validation_alias="RATE_LIMIT_MAX_DELAY", gt=0
    )

    # Driver
    max_attempts_per_turn: int = Field(5, validation_alias="MAX_ATTEMPTS_PER_TURN", ge=1)
    strict_function_choice: bool = Field(
        False,
        validation_alias="STRICT_FUNCTION_CHOICE",
        description="Reject invocations of functions outside the prompt's allowed set",
    )

    # Logging
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    json_logs: bool = Field(False, validation_alias="JSON_LOGS")

    @field_validator("openai_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    def backoff_config(self) -> BackoffConfig:
        return BackoffConfig(
            initial_delay=self.rate_limit_initial_delay,
            max_delay=self.rate_limit_max_delay,
        )


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Load settings, optionally from a specific ``.env`` file."""
    if env_file:
        return Settings(_env_file=env_file)
    return Settings()
