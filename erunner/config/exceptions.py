# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Custom exceptions for the settings system.

Kept separate so the CLI can catch settings failures without importing the
loader machinery.
"""


class ConfigError(Exception):
    """Base for all configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when a settings file cannot be read from disk or parsed as YAML."""


class ConfigValidationError(ConfigError):
    """
    Raised when a settings file parses fine but fails schema validation.
    This covers missing required fields, type mismatches, out-of-range values,
    and unknown keys.
    """
