"""Configuration for lint-staged.

This package covers both the run options and the task configuration files.

Key Components:
    - LintStagedOptions: Run options (CLI flags, ``LINT_STAGED_*`` environment)
    - search_configs: Discover and load task configurations in a repository
    - validate_config: Check a glob-to-commands mapping

Example:
    >>> from lint_staged.config import LintStagedOptions
    >>> options = LintStagedOptions(cwd="/repo", concurrent=2)
    >>> options.max_arg_length
    131072
"""

from lint_staged.config.loader import CONFIG_FILE_NAMES, load_config_file, search_configs
from lint_staged.config.settings import LintStagedOptions, default_max_arg_length
from lint_staged.config.validation import validate_config

__all__ = [
    "CONFIG_FILE_NAMES",
    "LintStagedOptions",
    "default_max_arg_length",
    "load_config_file",
    "search_configs",
    "validate_config",
]
