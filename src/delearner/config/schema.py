"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"


class AnthropicConfig(BaseModel):
    """Anthropic-specific configuration."""

    model: str = DEFAULT_MODEL
    max_tokens: int = Field(16000, ge=256, le=64000)
    temperature: float = Field(0.2, ge=0.0, le=1.0)
    timeout: float = Field(180.0, gt=0, description="Read timeout in seconds")


class BackendConfig(BaseModel):
    """Generation backend configuration."""

    provider: Literal["anthropic"] = "anthropic"
    anthropic: AnthropicConfig = AnthropicConfig()


class SessionConfig(BaseModel):
    """Defaults for a new editing session."""

    default_model: str = DEFAULT_MODEL
    default_language: str = "javascript"
    highlight_duration: float = Field(2.5, gt=0, description="Seconds before a patch highlight clears")

    @field_validator("default_language")
    @classmethod
    def validate_default_language(cls, v: str) -> str:
        """Reject language ids the resolver does not know."""
        from ..core.languages import SUPPORTED_LANGUAGES

        if v not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {v}")
        return v


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("delearner.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "console"
    file: FileLoggingConfig = FileLoggingConfig()


class RetryConfig(BaseModel):
    """Caller-side retry for failed analyses. One attempt means no retry."""

    max_attempts: int = Field(1, ge=1, le=10)
    initial_delay: float = Field(1.0, ge=0.0, le=10.0)
    max_delay: float = Field(30.0, ge=0.0, le=300.0)


class AssistantConfig(BaseSettings):
    """Root configuration for DeLearner."""

    backend: BackendConfig = BackendConfig()
    session: SessionConfig = SessionConfig()
    logging: LoggingConfig = LoggingConfig()
    retry: RetryConfig = RetryConfig()

    model_config = SettingsConfigDict(
        env_prefix="DELEARNER_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )


class Settings(BaseSettings):
    """Secrets read from the process environment."""

    api_key: SecretStr = Field(validation_alias=AliasChoices("API_KEY", "ANTHROPIC_API_KEY"))

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: SecretStr) -> SecretStr:
        """Reject blank credentials."""
        if not v.get_secret_value().strip():
            raise ValueError("API key must not be empty")
        return v
