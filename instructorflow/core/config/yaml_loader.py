# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reading instructor profiles and prompt templates from YAML.

Two kinds of content ship as YAML under config/:

- config/profiles/<profile_id>.yaml, one instructor profile per file. The
  profile loader reads a single file by id or the whole directory; the file
  stem is the profile id. Authors park work in progress as _<name>.yaml and
  it is never offered to sessions.
- config/prompts/teaching.yaml, one format string per prompt section. Every
  key has a built-in default, so a partial file only overrides what it
  names and a missing file is not an error.

Errors carry the offending path so a broken profile can be found from the
log line alone.

Example:
    >>> from pathlib import Path
    >>> from instructorflow.core.config.yaml_loader import load_yaml, load_yaml_directory
    >>> guide = load_yaml(Path("config/profiles/socratic_guide.yaml"))
    >>> by_id = load_yaml_directory(Path("config/profiles"))
"""

from pathlib import Path
from typing import Any

import yaml

PROFILE_SUFFIXES = ("*.yaml", "*.yml")


class YAMLLoadError(Exception):
    """A profile or template file could not be read as a YAML mapping.

    Attributes:
        path: File or directory that failed.
        reason: Short cause, used verbatim in profile load errors.
    """

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load YAML file '{path}': {reason}")


def _parse_mapping(path: Path, content: str) -> dict[str, Any]:
    try:
        parsed = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise YAMLLoadError(path, f"Invalid YAML syntax: {e}") from e

    # An empty profile is valid YAML; the model decides what is missing
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise YAMLLoadError(path, f"YAML root must be a mapping, got {type(parsed).__name__}")
    return parsed


def load_yaml(path: Path) -> dict[str, Any]:
    """Read one profile or template file.

    Args:
        path: The YAML file, e.g. config/profiles/socratic_guide.yaml.

    Returns:
        The top-level mapping, or an empty dict for an empty file. Field
        validation is left to the pydantic model the caller builds.

    Raises:
        YAMLLoadError: If the file is missing, unreadable, not YAML, or its
            top level is a list or scalar rather than a mapping.
    """
    if not path.exists():
        raise YAMLLoadError(path, "File does not exist")
    if not path.is_file():
        raise YAMLLoadError(path, "Path is not a file")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise YAMLLoadError(path, f"Cannot read file: {e}") from e

    return _parse_mapping(path, content)


def load_yaml_directory(path: Path) -> dict[str, dict[str, Any]]:
    """Read every published profile in a directory, keyed by profile id.

    The profile id is the file stem. Draft files (leading underscore) are
    left out. A single unreadable file fails the whole directory; callers
    that want to skip bad profiles validate per entry afterwards.

    Raises:
        YAMLLoadError: If the directory is missing or any file fails.
    """
    if not path.exists():
        raise YAMLLoadError(path, "Directory does not exist")
    if not path.is_dir():
        raise YAMLLoadError(path, "Path is not a directory")

    files = sorted(f for pattern in PROFILE_SUFFIXES for f in path.glob(pattern))
    return {
        f.stem: load_yaml(f)
        for f in files
        if f.is_file() and not f.name.startswith("_")
    }


def load_yaml_with_defaults(path: Path, defaults: dict[str, Any]) -> dict[str, Any]:
    """Read a template file laid over its built-in defaults.

    A missing file yields a copy of the defaults; a malformed one still
    raises YAMLLoadError rather than silently falling back.
    """
    overrides = load_yaml(path) if path.exists() else {}
    return deep_merge(defaults, overrides)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Lay a template file over the built-in templates.

    Keys in override win. Nested mappings merge key by key; lists and
    scalars replace the base value outright. Neither input is modified.

    Example:
        >>> deep_merge({"hint": "Give one hint.", "history_empty": "(none)"}, {"hint": "One short hint."})
        {'hint': 'One short hint.', 'history_empty': '(none)'}
    """
    merged = {key: deep_merge(value, {}) if isinstance(value, dict) else value for key, value in base.items()}
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged
