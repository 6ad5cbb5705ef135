"""Configuration loader with YAML parsing and environment variable substitution."""

import os
import re
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from ..utils.async_helpers import AssistantError
from ..utils.logging import LogEventNames
from ..utils.security import mask_config_value
from .schema import AssistantConfig, Settings

log = structlog.get_logger()


class ConfigurationError(AssistantError):
    """Required configuration is missing or invalid."""


def substitute_env_vars(text: str) -> str:
    """
    Replace ${VAR_NAME} patterns with environment variable values.

    Args:
        text: Text containing ${VAR_NAME} patterns

    Returns:
        Text with environment variables substituted

    Raises:
        ValueError: If a referenced environment variable is not found
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(f"Environment variable {var_name} not found")
        return value

    return re.sub(r"\$\{([^}]+)\}", replacer, text)


def load_config(path: Path | None = None) -> AssistantConfig:
    """
    Load configuration, optionally from a YAML file.

    Without a path, defaults are used and ``DELEARNER_*`` environment
    variables are applied on top.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AssistantConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If environment variables are missing or config is invalid
        ValidationError: If config doesn't match schema
    """
    if path is None:
        config = AssistantConfig()
        validate_config(config)
        return config

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open() as f:
        raw_yaml = f.read()

    yaml_with_env = substitute_env_vars(raw_yaml)
    config_dict = yaml.safe_load(yaml_with_env) or {}

    config = AssistantConfig.model_validate(config_dict)
    validate_config(config)

    return config


def validate_config(config: AssistantConfig) -> None:
    """
    Perform cross-field validation.

    Raises:
        ValueError: If the retry window is inverted
    """
    if config.retry.max_delay < config.retry.initial_delay:
        raise ValueError("retry.max_delay must not be smaller than retry.initial_delay")


def load_settings() -> Settings:
    """
    Read the backend credential from the environment.

    Called at start-up so a missing key stops the process immediately rather
    than surfacing on the first analysis.

    Returns:
        Settings holding the API key

    Raises:
        ConfigurationError: If API_KEY (or ANTHROPIC_API_KEY) is not set
    """
    try:
        settings = Settings()
    except ValidationError as e:
        raise ConfigurationError(
            "API_KEY environment variable not set. Export API_KEY (or ANTHROPIC_API_KEY) "
            "with a key for the generation backend before starting DeLearner."
        ) from e

    log.info(
        LogEventNames.SETTINGS_LOADED,
        api_key=mask_config_value("api_key", settings.api_key.get_secret_value()),
    )
    return settings
