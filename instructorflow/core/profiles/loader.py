# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Instructor profile YAML loader.

Profiles live in config/profiles/<id>.yaml, optionally nested under a
top-level ``profile`` key, and are validated against InstructorProfile.
"""

from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from instructorflow.core.config.settings import get_settings
from instructorflow.core.config.yaml_loader import YAMLLoadError, load_yaml, load_yaml_directory
from instructorflow.core.profiles.models import InstructorProfile
from instructorflow.utils.logging import get_logger

logger = get_logger(__name__)


class ProfileLoadError(Exception):
    """Raised when a profile fails to load or validate."""

    pass


def get_profiles_directory() -> Path:
    """Get the configured profiles directory."""
    return get_settings().paths.profiles_dir


def _profile_data(profile_id: str, data: dict[str, Any]) -> dict[str, Any]:
    profile_data = dict(data.get("profile", data))
    profile_data.setdefault("id", profile_id)
    return profile_data


def load_profile(profile_id: str, profiles_dir: Optional[Path] = None) -> InstructorProfile:
    """Load a single profile from its YAML file.

    Args:
        profile_id: Profile identifier (file name without .yaml)
        profiles_dir: Directory to read from (defaults to settings)

    Returns:
        Validated InstructorProfile.

    Raises:
        ProfileLoadError: If the file is missing, malformed or invalid.
    """
    if profiles_dir is None:
        profiles_dir = get_profiles_directory()

    profile_file = profiles_dir / f"{profile_id}.yaml"

    try:
        data = load_yaml(profile_file)
    except YAMLLoadError as e:
        raise ProfileLoadError(f"Failed to load profile '{profile_id}': {e.reason}") from e

    try:
        profile = InstructorProfile.model_validate(_profile_data(profile_id, data))
    except ValidationError as e:
        raise ProfileLoadError(f"Validation failed for profile '{profile_id}': {e}") from e

    logger.debug("loaded_profile", profile_id=profile.id, name=profile.name)
    return profile


def load_all_profiles(profiles_dir: Optional[Path] = None) -> dict[str, InstructorProfile]:
    """Load every enabled profile in a directory.

    Invalid files are logged and skipped so one broken profile does not take
    the others down.

    Raises:
        ProfileLoadError: If the directory cannot be read.
    """
    if profiles_dir is None:
        profiles_dir = get_profiles_directory()

    if not profiles_dir.exists():
        logger.warning("profiles_directory_not_found", path=str(profiles_dir))
        return {}

    try:
        all_data = load_yaml_directory(profiles_dir)
    except YAMLLoadError as e:
        raise ProfileLoadError(f"Failed to load profiles directory: {e}") from e

    profiles: dict[str, InstructorProfile] = {}
    for profile_id, data in all_data.items():
        try:
            profile = InstructorProfile.model_validate(_profile_data(profile_id, data))
        except ValidationError as e:
            logger.warning("profile_validation_failed", profile_id=profile_id, error=str(e))
            continue

        if profile.enabled:
            profiles[profile.id] = profile
        else:
            logger.debug("skipped_disabled_profile", profile_id=profile.id)

    logger.info("profiles_loaded", count=len(profiles), profile_ids=sorted(profiles))
    return profiles
