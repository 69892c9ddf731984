"""
Run options using Pydantic for type-safe settings management.

Options come from CLI flags or keyword arguments; any option left unset can
be supplied through a ``LINT_STAGED_<OPTION>`` environment variable.
"""

from __future__ import annotations

import os
import shutil
import sys
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Half of the platform's command line limit, leaving room for the environment
MAX_ARG_LENGTH_LINUX = 131072
MAX_ARG_LENGTH_MACOS = 262144
MAX_ARG_LENGTH_WINDOWS = 8191


def default_max_arg_length(platform: str | None = None) -> int:
    """Default chunking threshold for the given ``sys.platform`` value."""
    platform = platform or sys.platform
    if platform == "darwin":
        return MAX_ARG_LENGTH_MACOS
    if platform.startswith("win") or platform == "cygwin":
        return MAX_ARG_LENGTH_WINDOWS
    return MAX_ARG_LENGTH_LINUX


class LintStagedOptions(BaseSettings):
    """Options for one lint-staged run."""

    model_config = SettingsConfigDict(
        env_prefix="LINT_STAGED_",
        case_sensitive=False,
        arbitrary_types_allowed=True,
    )

    allow_empty: bool = Field(default=False, description="Allow empty commits when tasks revert all staged changes")
    concurrent: bool | int = Field(
        default=True,
        description="True runs all tasks at once, False serially, an integer bounds parallel tasks",
    )
    config_object: Any = Field(
        default=None,
        exclude=True,
        description="Task configuration given directly, as a mapping or a function",
    )
    config_path: str | None = Field(default=None, description="Path to a single configuration file")
    cwd: str | None = Field(default=None, description="Working directory to run all tasks in")
    debug: bool = Field(default=False, description="Enable debug diagnostics")
    diff: str | None = Field(default=None, description="Custom `git diff` arguments, implies no stash")
    diff_filter: str | None = Field(default=None, description="Custom `git diff --diff-filter` value")
    max_arg_length: int | None = Field(
        default_factory=default_max_arg_length,
        description="Maximum length of a command line before files are chunked",
    )
    quiet: bool = Field(default=False, description="Only print errors")
    relative: bool = Field(default=False, description="Pass file paths relative to cwd to tasks")
    shell: bool | str = Field(default=False, description="Run tasks in a shell, optionally a specific one")
    stash: bool = Field(default=True, description="Back up the original state in a git stash")
    verbose: bool = Field(default=False, description="Show task output even when tasks succeed")

    @field_validator("concurrent")
    @classmethod
    def validate_concurrent(cls, value: bool | int) -> bool | int:
        if not isinstance(value, bool) and value < 1:
            raise ValueError(f"concurrent must be a boolean or a positive integer, got {value}")
        return value

    @field_validator("shell")
    @classmethod
    def validate_shell(cls, value: bool | str) -> bool | str:
        if isinstance(value, bool):
            return value
        resolved = shutil.which(value)
        if resolved is None:
            raise ValueError(f"shell '{value}' is not an executable file")
        return resolved

    @field_validator("cwd")
    @classmethod
    def validate_cwd(cls, value: str | None) -> str | None:
        if value is None:
            return None
        path = os.path.abspath(value)
        if not os.path.isdir(path):
            raise ValueError(f"cwd '{value}' is not a directory")
        return path

    @field_validator("max_arg_length")
    @classmethod
    def validate_max_arg_length(cls, value: int | None) -> int | None:
        if value is not None and value < 0:
            raise ValueError("max_arg_length must not be negative")
        return value

    @property
    def explicit_config(self) -> bool:
        """Whether a single configuration was given instead of discovered."""
        return self.config_object is not None or self.config_path is not None
