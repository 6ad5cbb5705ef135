"""Configuration loading and validation."""

from .loader import ConfigurationError, load_config, load_settings
from .schema import (
    AnthropicConfig,
    AssistantConfig,
    BackendConfig,
    LoggingConfig,
    RetryConfig,
    SessionConfig,
    Settings,
)

__all__ = [
    # Loader
    "ConfigurationError",
    "load_config",
    "load_settings",
    # Root config
    "AssistantConfig",
    "Settings",
    # Sections
    "BackendConfig",
    "LoggingConfig",
    "RetryConfig",
    "SessionConfig",
    # Provider-specific configs
    "AnthropicConfig",
]
