# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Config loader: reads a pipeline file from disk and produces a validated,
frozen PipelineConfig.

The loading pipeline is linear:
  1. Read raw text from the file
  2. Parse as YAML into a plain dict
  3. Hand the dict to pydantic for schema validation
  4. Return the frozen config object

Any failure stops the run before a single hook executes. There is no
fallback to defaults for a broken file.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from matrixci.config.exceptions import ConfigLoadError, ConfigValidationError
from matrixci.config.schema import PipelineConfig

DEFAULT_CONFIG_NAME = ".travis.yml"


def _read_yaml_file(config_path: Path) -> dict[str, Any]:
    """
    Read a YAML file and return the parsed dict.

    Existence is checked up front because yaml.safe_load gives cryptic
    errors on missing files.

    Raises:
        ConfigLoadError: If the file doesn't exist, isn't readable, or isn't valid YAML.
    """
    if not config_path.exists():
        raise ConfigLoadError(f"Pipeline file not found: {config_path}")

    if not config_path.is_file():
        raise ConfigLoadError(f"Pipeline path is not a file: {config_path}")

    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as err:
        raise ConfigLoadError(f"Cannot read pipeline file {config_path}: {err}") from err

    try:
        parsed = yaml.safe_load(raw_text)
    except yaml.YAMLError as err:
        raise ConfigLoadError(f"Invalid YAML in {config_path}: {err}") from err

    if not isinstance(parsed, dict):
        raise ConfigLoadError(
            f"Pipeline file must contain a YAML mapping (dict), got {type(parsed).__name__}"
        )

    return parsed


def load_config(config_path: Path) -> PipelineConfig:
    """
    Load, validate, and freeze a pipeline file.

    Args:
        config_path: Path to a YAML pipeline file.

    Returns:
        A fully validated, frozen PipelineConfig instance.

    Raises:
        ConfigLoadError: File I/O or YAML parse failures.
        ConfigValidationError: Schema violations (missing fields, wrong types, unknown keys).
    """
    raw_data = _read_yaml_file(config_path)

    try:
        config = PipelineConfig.model_validate(raw_data)
    except ValidationError as err:
        raise ConfigValidationError(
            f"Pipeline validation failed for {config_path}:\n{err}"
        ) from err

    return config


def config_snapshot(config: PipelineConfig) -> dict[str, Any]:
    """Plain-data view of a config, suitable for dumping next to a report."""
    return config.model_dump(mode="json", by_alias=True, exclude_none=True)
