"""
Matching staged files to configured glob patterns.

This module turns the flat list of staged files into work:

- ``group_files_by_config`` assigns each staged file to the deepest
  configuration whose directory contains it
- ``chunk_files`` splits file lists so a single command line stays under
  the platform's argument length limit
- ``generate_tasks`` matches a chunk against every pattern of a
  configuration

Glob semantics:
    - ``*`` and ``?`` do not cross directory separators, ``**`` does
    - ``{a,b}`` alternatives are expanded
    - a pattern without ``/`` is matched against the file's basename, so
      ``*.py`` matches both ``a.py`` and ``pkg/a.py``
    - dotfiles are matched like any other file
    - only files under ``cwd`` are considered unless the pattern starts
      with ``../``

Example:
    >>> generate_tasks({"*.py": "ruff check"}, cwd="/repo", files=["/repo/a.py", "/repo/b.md"])
    [PatternTask(pattern='*.py', commands='ruff check', file_list=['/repo/a.py'])]
"""

import functools
import math
import os
import posixpath
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

BRACES = re.compile(r"\{([^{}]*,[^{}]*)\}")


def normalize_path(path: str) -> str:
    """Normalize a path and use forward slashes."""
    return os.path.normpath(path).replace(os.sep, "/")


def _expand_braces(pattern: str) -> list[str]:
    match = BRACES.search(pattern)
    if match is None:
        return [pattern]
    expanded: list[str] = []
    for alternative in match.group(1).split(","):
        expanded.extend(_expand_braces(pattern[: match.start()] + alternative + pattern[match.end() :]))
    return expanded


def _translate(pattern: str) -> str:
    """Translate one brace-free glob into a regular expression."""
    i, n = 0, len(pattern)
    parts: list[str] = []
    while i < n:
        char = pattern[i]
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif char == "*":
            parts.append("[^/]*")
            i += 1
        elif char == "?":
            parts.append("[^/]")
            i += 1
        elif char == "[":
            end = pattern.find("]", i + 2)
            if end == -1:
                parts.append(re.escape(char))
                i += 1
                continue
            body = pattern[i + 1 : end]
            if body[0] in "!^":
                body = "^" + body[1:]
            parts.append(f"[{body}]")
            i = end + 1
        else:
            parts.append(re.escape(char))
            i += 1
    return "".join(parts)


@functools.lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    alternatives = [_translate(p) for p in _expand_braces(pattern)]
    return re.compile(r"\A(?:" + "|".join(alternatives) + r")\Z", re.DOTALL)


def match_files(files: Sequence[str], pattern: str) -> list[str]:
    """Return the files matching ``pattern``, in input order."""
    regex = compile_pattern(pattern)
    match_base = "/" not in pattern
    return [file for file in files if regex.match(posixpath.basename(file) if match_base else file)]


def chunk_array(items: Sequence[str], chunk_count: int) -> list[list[str]]:
    """Split items into ``chunk_count`` chunks of nearly equal size."""
    if chunk_count <= 1:
        return [list(items)]
    chunks: list[list[str]] = []
    position = 0
    for i in range(chunk_count):
        chunk_length = math.ceil((len(items) - position) / (chunk_count - i))
        chunks.append(list(items[position : position + chunk_length]))
        position += chunk_length
    return chunks


def chunk_files(
    files: Sequence[str],
    base_dir: str | None = None,
    max_arg_length: int | None = None,
    relative: bool = False,
) -> list[list[str]]:
    """Chunk files so each chunk's space-joined length stays under ``max_arg_length``.

    Args:
        files: File paths
        base_dir: Directory to resolve relative paths against
        max_arg_length: Maximum command line length. None or 0 disables chunking.
        relative: Keep paths as given instead of resolving them against ``base_dir``

    Returns:
        A list of file lists, never empty
    """
    normalized = [
        normalize_path(file if relative or not base_dir else os.path.join(base_dir, file)) for file in files
    ]
    if not max_arg_length:
        return [normalized]
    file_list_length = len(" ".join(normalized))
    chunk_count = min(math.ceil(file_list_length / max_arg_length), len(normalized))
    return chunk_array(normalized, chunk_count)


@dataclass
class PatternTask:
    """Files of a chunk matched by one configured pattern."""

    pattern: str
    commands: Any
    file_list: list[str]


def generate_tasks(
    config: Mapping[str, Any],
    cwd: str | None = None,
    files: Sequence[str] = (),
    relative: bool = False,
) -> list[PatternTask]:
    """Match files against every pattern of a configuration.

    Args:
        config: Mapping of glob pattern to commands
        cwd: Directory patterns are relative to. Defaults to the process cwd.
        files: Absolute file paths
        relative: Hand files to tasks relative to ``cwd`` instead of absolute

    Returns:
        One PatternTask per pattern, in configuration order. Patterns
        without matches get an empty file list.
    """
    cwd = cwd or os.getcwd()
    relative_files = [normalize_path(os.path.relpath(file, cwd)) for file in files]
    tasks: list[PatternTask] = []

    for pattern, commands in config.items():
        is_parent_dir_pattern = pattern.startswith("../")
        candidates = [
            file
            for file in relative_files
            if is_parent_dir_pattern or not (file.startswith("..") or os.path.isabs(file))
        ]
        matches = match_files(candidates, pattern)
        file_list = [normalize_path(file if relative else os.path.join(cwd, file)) for file in matches]
        tasks.append(PatternTask(pattern=pattern, commands=commands, file_list=file_list))

    return tasks


@dataclass
class ConfigGroup:
    """A configuration and the staged files it is responsible for."""

    config: Mapping[str, Any]
    files: list[str] = field(default_factory=list)


def _is_inside_dir(directory: str, file: str) -> bool:
    relative = os.path.relpath(file, directory)
    return bool(relative) and relative != "." and not relative.startswith("..") and not os.path.isabs(relative)


def group_files_by_config(
    configs: Mapping[str, Mapping[str, Any]],
    files: Sequence[str],
    single_config_mode: bool = False,
) -> dict[str, ConfigGroup]:
    """Assign each staged file to exactly one configuration.

    Configs must be ordered deepest first. A file belongs to the first
    config whose directory contains it. A config with a ``../`` pattern
    claims every remaining file.

    Args:
        configs: Mapping of config file path to configuration
        files: Absolute staged file paths
        single_config_mode: A single explicit config (object or path) was
            given; it receives every file

    Returns:
        Mapping of config path to ConfigGroup, in input order
    """
    remaining = list(dict.fromkeys(files))
    groups: dict[str, ConfigGroup] = {}

    for config_path, config in configs.items():
        if single_config_mode:
            groups[config_path] = ConfigGroup(config=config, files=list(files))
            break

        directory = os.path.normpath(os.path.dirname(config_path))
        include_all = any(pattern.startswith("..") for pattern in config)
        scoped = list(remaining) if include_all else [f for f in remaining if _is_inside_dir(directory, f)]
        scoped_set = set(scoped)
        remaining = [f for f in remaining if f not in scoped_set]
        groups[config_path] = ConfigGroup(config=config, files=scoped)

    return groups
