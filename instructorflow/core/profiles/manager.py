# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Instructor profile manager.

ProfileManager is the mutable profile store: profiles can be reloaded from
disk or registered at runtime. Sessions never read from it after creation;
they keep the snapshot returned by get_profile().
"""

from pathlib import Path
from typing import Optional

from instructorflow.core.profiles.loader import ProfileLoadError, load_all_profiles, load_profile
from instructorflow.core.profiles.models import InstructorProfile
from instructorflow.utils.logging import get_logger

logger = get_logger(__name__)


class ProfileNotFoundError(Exception):
    """Raised when a requested profile is not found."""

    pass


class ProfileManager:
    """Loads, caches and serves instructor profiles.

    Attributes:
        _profiles: Cache of loaded profiles
        _profiles_dir: Directory profiles are read from
    """

    def __init__(
        self,
        profiles_dir: Optional[Path] = None,
        auto_load: bool = True,
    ):
        self._profiles: dict[str, InstructorProfile] = {}
        self._profiles_dir = profiles_dir
        self._loaded = False

        if auto_load:
            self._load_profiles()

    def _load_profiles(self) -> None:
        self._profiles = load_all_profiles(self._profiles_dir)
        self._loaded = True

    def reload(self) -> None:
        """Reload all profiles from disk.

        Running sessions are unaffected; they hold their own snapshot.
        """
        logger.info("reloading_profiles")
        self._load_profiles()

    def register(self, profile: InstructorProfile) -> None:
        """Add or replace a profile in the store."""
        self._profiles[profile.id] = profile
        self._loaded = True

    def get_profile(self, profile_id: str) -> InstructorProfile:
        """Get a profile by its ID.

        Raises:
            ProfileNotFoundError: If the profile is unknown or disabled.
        """
        if not self._loaded:
            self._load_profiles()

        if profile_id in self._profiles:
            return self._profiles[profile_id]

        try:
            profile = load_profile(profile_id, self._profiles_dir)
        except ProfileLoadError as e:
            raise ProfileNotFoundError(f"Profile '{profile_id}' not found: {e}") from e

        if not profile.enabled:
            raise ProfileNotFoundError(f"Profile '{profile_id}' exists but is disabled")

        self._profiles[profile_id] = profile
        return profile

    def has_profile(self, profile_id: str) -> bool:
        if not self._loaded:
            self._load_profiles()
        return profile_id in self._profiles

    def list_profile_ids(self) -> list[str]:
        if not self._loaded:
            self._load_profiles()
        return sorted(self._profiles)
