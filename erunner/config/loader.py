# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Settings loader: reads YAML from disk and produces a validated, frozen ErunnerConfig.

The loading pipeline is linear:
  1. Read raw text from the file
  2. Parse as YAML into a plain dict
  3. Hand the dict to pydantic for schema validation
  4. Return the frozen config object

Any failure stops here with a ConfigError subclass. There are no fallback
values for a broken file. Defaults apply only when no settings file is named
at all (see resolve_config_path).
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from erunner.config.exceptions import ConfigLoadError, ConfigValidationError
from erunner.config.schema import CONFIG_VERSION, ErunnerConfig

CONFIG_ENV_VAR = "ERUNNER_CONFIG"


def _read_yaml_file(config_path: Path) -> dict[str, Any]:
    """
    Read a YAML file and return the parsed dict.

    Raises:
        ConfigLoadError: If the file doesn't exist, isn't readable, or isn't valid YAML.
    """
    if not config_path.exists():
        raise ConfigLoadError(f"Config file not found: {config_path}")

    if not config_path.is_file():
        raise ConfigLoadError(f"Config path is not a file: {config_path}")

    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as err:
        raise ConfigLoadError(f"Cannot read config file {config_path}: {err}") from err

    try:
        parsed = yaml.safe_load(raw_text)
    except yaml.YAMLError as err:
        raise ConfigLoadError(f"Invalid YAML in {config_path}: {err}") from err

    if not isinstance(parsed, dict):
        raise ConfigLoadError(
            f"Config file must contain a YAML mapping (dict), got {type(parsed).__name__}"
        )

    return parsed


def load_config(config_path: Path) -> ErunnerConfig:
    """
    Load, validate, and freeze a settings file.

    Args:
        config_path: Path to a YAML settings file.

    Returns:
        A fully validated, frozen ErunnerConfig instance.

    Raises:
        ConfigLoadError: File I/O or YAML parse failures.
        ConfigValidationError: Schema violations (missing fields, wrong types, unknown keys).
    """
    raw_data = _read_yaml_file(config_path)

    try:
        config = ErunnerConfig.model_validate(raw_data)
    except ValidationError as err:
        raise ConfigValidationError(
            f"Config validation failed for {config_path}:\n{err}"
        ) from err

    return config


def default_config(log_level: str = "INFO") -> ErunnerConfig:
    """Settings used when no `--config` file is given."""
    return ErunnerConfig.model_validate(
        {"global": {"config_version": CONFIG_VERSION, "log_level": log_level}}
    )


def resolve_config_path(cli_value: Optional[str]) -> Optional[Path]:
    """
    Pick the settings file for this invocation.

    `--config` wins; otherwise the ERUNNER_CONFIG environment variable is
    used when set and non-empty. None means built-in defaults.
    """
    if cli_value is not None:
        return Path(cli_value)
    env_value = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if env_value:
        return Path(env_value).expanduser()
    return None
