"""Validation of task configurations."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from lint_staged.exceptions import ConfigurationError

log = structlog.get_logger(__name__)


def _validate_commands(pattern: str, commands: Any) -> str | None:
    if isinstance(commands, str):
        return None if commands.strip() else f"Invalid value for '{pattern}': should not be an empty string."
    if callable(commands):
        return None
    if isinstance(commands, (list, tuple)):
        if not commands:
            return f"Invalid value for '{pattern}': should not be an empty array."
        for command in commands:
            if not (isinstance(command, str) or callable(command)):
                return f"Invalid value for '{pattern}': should be a string, a function, or an array of those."
        return None
    return f"Invalid value for '{pattern}': should be a string, a function, or an array of those."


def validate_config(config: Any, config_path: str | None = None) -> dict[str, Any]:
    """Check a configuration and return it as a plain dict.

    A callable configuration is treated as ``{"*": config}``, receiving every
    staged file.

    Args:
        config: Mapping of glob pattern to commands, or a callable
        config_path: Where the configuration came from, for error messages

    Returns:
        The validated configuration

    Raises:
        ConfigurationError: Listing every invalid entry
    """
    source = config_path or "config object"

    if callable(config) and not isinstance(config, Mapping):
        return {"*": config}

    if not isinstance(config, Mapping):
        raise ConfigurationError(f"Configuration in {source} should be an object or a function.")
    if not config:
        raise ConfigurationError(f"Configuration in {source} should not be empty.")

    errors = []
    for pattern, commands in config.items():
        if not isinstance(pattern, str) or not pattern:
            errors.append(f"Invalid pattern {pattern!r}: should be a non-empty string.")
            continue
        error = _validate_commands(pattern, commands)
        if error is not None:
            errors.append(error)

    if errors:
        log.debug("config_invalid", source=source, errors=errors)
        raise ConfigurationError(f"Invalid configuration in {source}:\n\n" + "\n".join(errors))

    return dict(config)
