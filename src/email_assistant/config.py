"""Reading and writing config.yaml.

The file is optional. Missing or empty means every default from
config_schema applies, so a fresh install can run `email-assistant scan`
once the provider credentials exist.

Usage:
    from email_assistant.config import load_config

    config = load_config()
    store = DatabaseStore(config.database_path)
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from email_assistant.config_schema import CURRENT_SCHEMA_VERSION, AppConfig
from email_assistant.core.errors import ConfigLoadError, ConfigValidationError
from email_assistant.core.logging import get_logger

logger = get_logger(__name__)

CONFIG_ENV_VAR = "EMAIL_ASSISTANT_CONFIG"
DEFAULT_CONFIG_PATH = Path("config/config.yaml")

# Friendlier wording for the pydantic error types users hit most
_ERROR_HINTS = {
    "missing": "is required",
    "string_type": "must be a string",
    "int_type": "must be an integer",
    "int_parsing": "must be an integer",
    "bool_type": "must be true or false",
    "bool_parsing": "must be true or false",
}


def get_config_path() -> Path:
    return Path(os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)


def describe_errors(error: ValidationError) -> str:
    """One indented line per failing field, dotted path first."""
    lines = []
    for item in error.errors():
        where = ".".join(str(part) for part in item["loc"]) or "(root)"
        lines.append(f"  - {where}: {_ERROR_HINTS.get(item['type'], item['msg'])}")
    return "\n".join(lines)


def read_config_data(path: Path) -> dict[str, Any]:
    """Return the raw mapping stored in a config file ({} when absent)."""
    if not path.exists():
        logger.debug("config_defaults_used", path=str(path))
        return {}

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigLoadError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse YAML in {path}:\n{e}") from e

    if data is None:
        return {}
    if isinstance(data, dict):
        return data
    raise ConfigLoadError(f"{path} must contain a YAML mapping, not a {type(data).__name__}")


def load_config(path: Path | None = None) -> AppConfig:
    """Load config.yaml into an AppConfig.

    Args:
        path: Config file; defaults to $EMAIL_ASSISTANT_CONFIG or
              config/config.yaml

    Raises:
        ConfigLoadError: Unreadable file or not a YAML mapping
        ConfigValidationError: Values rejected by the schema
    """
    config_path = path or get_config_path()
    data = read_config_data(config_path)

    try:
        config = AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigValidationError(
            f"Invalid configuration in {config_path}:\n{describe_errors(e)}"
        ) from e

    if config.schema_version > CURRENT_SCHEMA_VERSION:
        raise ConfigValidationError(
            f"{config_path} uses schema version {config.schema_version}, which is newer than "
            f"the supported version {CURRENT_SCHEMA_VERSION}; upgrade email-assistant."
        )

    logger.debug(
        "config_loaded",
        path=str(config_path),
        provider=config.provider,
        backend=config.generation.backend,
    )
    return config


def save_config(config: AppConfig, path: Path | None = None) -> Path:
    """Write config as YAML (temp file then rename) and return the path."""
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    staged = config_path.with_name(config_path.name + ".tmp")
    staged.write_text(
        yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False),
        encoding="utf-8",
    )
    staged.replace(config_path)
    logger.info("config_saved", path=str(config_path))
    return config_path


def validate_config_file(path: Path | None = None) -> tuple[bool, str]:
    """Check a config file and describe the outcome for the CLI.

    Returns:
        (ok, message) where message is a summary or the error text
    """
    config_path = path or get_config_path()
    try:
        config = load_config(config_path)
    except ConfigLoadError as e:
        return False, f"Load error: {e}"
    except ConfigValidationError as e:
        return False, f"Validation error: {e}"

    origin = config_path if config_path.exists() else "built-in defaults"
    summary = [
        f"Configuration valid (schema version {config.schema_version}, from {origin})",
        f"  - provider: {config.provider}",
        f"  - generation backend: {config.generation.backend}",
        f"  - state dir: {config.state_path}",
    ]
    return True, "\n".join(summary)
