# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for instructorflow.

This package provides centralized configuration management:
- Settings: Pydantic-based settings loaded from environment variables
- YAML loader: Utilities for loading profile and prompt YAML files

Example:
    >>> from instructorflow.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.environment
    'development'
"""

from instructorflow.core.config.settings import (
    DatabaseSettings,
    LLMSettings,
    OrchestrationSettings,
    PathSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)
from instructorflow.core.config.yaml_loader import (
    YAMLLoadError,
    deep_merge,
    load_yaml,
    load_yaml_directory,
    load_yaml_with_defaults,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "LLMSettings",
    "DatabaseSettings",
    "OrchestrationSettings",
    "PathSettings",
    # YAML utilities
    "load_yaml",
    "load_yaml_directory",
    "load_yaml_with_defaults",
    "deep_merge",
    "YAMLLoadError",
]
