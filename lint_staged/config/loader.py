"""
Discovery and loading of task configuration files.

Configurations are found in three ways, in order of precedence:

1. A configuration object passed by the caller
2. A single file given with ``--config``
3. Every configuration file tracked (or untracked but not ignored) in the
   repository under ``cwd``; if there are none, the nearest one found by
   walking up from ``cwd``

Supported files:
    - ``pyproject.toml`` with a ``[tool.lint-staged]`` table
    - ``.lintstagedrc`` (YAML or JSON), ``.lintstagedrc.json``,
      ``.lintstagedrc.yaml``, ``.lintstagedrc.yml``
    - ``.lintstagedrc.py`` and ``lint-staged.config.py`` defining a
      module-level ``config``

Example:
    >>> configs = await search_configs(cwd="/repo", git_dir="/repo")
    >>> list(configs)
    ['/repo/packages/app/.lintstagedrc', '/repo/pyproject.toml']
"""

import asyncio
import os
import runpy
import tomllib
from pathlib import Path
from typing import Any

import aiofiles
import structlog
import yaml

from lint_staged.config.validation import validate_config
from lint_staged.engine.matcher import normalize_path
from lint_staged.exceptions import ConfigurationError, GitCommandError
from lint_staged.git.commands import exec_git
from lint_staged.messages import ERROR
from lint_staged.utils.status_reporter import Logger

log = structlog.get_logger(__name__)

PYPROJECT = "pyproject.toml"

CONFIG_FILE_NAMES = (
    PYPROJECT,
    ".lintstagedrc",
    ".lintstagedrc.json",
    ".lintstagedrc.yaml",
    ".lintstagedrc.yml",
    ".lintstagedrc.py",
    "lint-staged.config.py",
)

# Key of a configuration given as an object rather than a file
CONFIG_OBJECT = "Config object"


async def _read_text(path: str) -> str:
    async with aiofiles.open(path, encoding="utf-8") as f:
        return await f.read()


def _run_python_config(path: str) -> Any:
    namespace = runpy.run_path(path)
    if "config" not in namespace:
        raise ConfigurationError(f"{path} does not define a module-level `config`")
    return namespace["config"]


async def load_config_file(path: str) -> Any | None:
    """Load one configuration file.

    Args:
        path: Configuration file path

    Returns:
        The raw configuration, or None when the file holds none (an empty
        file, or a ``pyproject.toml`` without ``[tool.lint-staged]``)

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    name = os.path.basename(path)
    try:
        if name.endswith(".py"):
            return await asyncio.to_thread(_run_python_config, path)
        content = await _read_text(path)
        if name == PYPROJECT:
            return tomllib.loads(content).get("tool", {}).get("lint-staged")
        return yaml.safe_load(content)
    except ConfigurationError:
        raise
    except (OSError, yaml.YAMLError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Failed to read config from file {path}: {e}") from e
    except Exception as e:
        # Errors raised by the code of a Python configuration
        raise ConfigurationError(f"Failed to load config from file {path}: {e}") from e


def _depth(path: str) -> int:
    return path.count("/")


def _is_inside(directory: str, path: str) -> bool:
    return path.startswith(directory.rstrip("/") + "/")


async def _list_repo_config_files(git_dir: str) -> list[str]:
    tracked = await exec_git(["ls-files", "-z", "--full-name"], cwd=git_dir)
    untracked = await exec_git(["ls-files", "-z", "--full-name", "--others", "--exclude-standard"], cwd=git_dir)
    files = {file for file in (tracked + "\0" + untracked).split("\0") if file}
    return [
        normalize_path(os.path.join(git_dir, file))
        for file in files
        if os.path.basename(file) in CONFIG_FILE_NAMES and "node_modules" not in file.split("/")
    ]


async def _find_upwards(cwd: str) -> tuple[str, Any] | None:
    for directory in (Path(cwd), *Path(cwd).parents):
        for name in CONFIG_FILE_NAMES:
            path = directory / name
            if not path.is_file():
                continue
            config = await load_config_file(str(path))
            if config is not None:
                return normalize_path(str(path)), config
    return None


async def _load_or_report(path: str, logger: Logger | None) -> Any | None:
    try:
        return await load_config_file(path)
    except ConfigurationError as e:
        log.debug("config_load_failed", path=path, error=e.message)
        if logger is not None:
            logger.error(f"{ERROR} {e.message}")
        return None


async def search_configs(
    cwd: str,
    git_dir: str,
    config_object: Any = None,
    config_path: str | None = None,
    logger: Logger | None = None,
) -> dict[str, dict[str, Any]]:
    """Find and validate every configuration that applies to a run.

    Args:
        cwd: Directory lint-staged runs in
        git_dir: Repository root
        config_object: Configuration passed directly by the caller
        config_path: Single configuration file to use
        logger: Reports files that could not be loaded

    Returns:
        Mapping of config path to validated configuration, deepest first.
        Empty when nothing was found.

    Raises:
        ConfigurationError: If a configuration is found but is invalid
    """
    if config_object is not None:
        return {config_path or CONFIG_OBJECT: validate_config(config_object, config_path)}

    if config_path is not None:
        path = normalize_path(os.path.abspath(os.path.join(cwd, config_path)))
        config = await _load_or_report(path, logger)
        return {} if config is None else {path: validate_config(config, path)}

    try:
        candidates = await _list_repo_config_files(git_dir)
    except GitCommandError as e:
        log.debug("config_listing_failed", error=str(e))
        candidates = []

    normalized_cwd = normalize_path(cwd)
    candidates = sorted(
        (file for file in candidates if _is_inside(normalized_cwd, file)),
        key=lambda file: (-_depth(file), file),
    )

    configs: dict[str, dict[str, Any]] = {}
    for path in candidates:
        config = await _load_or_report(path, logger)
        if config is not None:
            configs[path] = validate_config(config, path)

    if not configs:
        found = await _find_upwards(cwd)
        if found is not None:
            path, config = found
            configs[path] = validate_config(config, path)

    log.debug("configs_found", count=len(configs), paths=list(configs))
    return configs
