# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Custom exceptions for the configuration system.

Kept separate so the CLI can catch config-specific failures without importing
the whole schema.
"""


class ConfigError(Exception):
    """Base for all configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when a pipeline file cannot be read from disk or parsed as YAML."""


class ConfigValidationError(ConfigError):
    """
    Raised when a pipeline file parses fine but fails schema validation.
    Covers missing fields, type mismatches, unknown keys and values that
    make no sense together (e.g. both `matrix` and `jobs`).
    """
