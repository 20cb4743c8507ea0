# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Instructor profile system.

Profiles define the instructor's identity, voice, behavior and canned
texts. They are loaded from config/profiles and snapshotted into each
session at creation time.

Example:
    >>> from instructorflow.core.profiles import ProfileManager
    >>> manager = ProfileManager()
    >>> profile = manager.get_profile("socratic_guide")
    >>> print(profile.get_system_prompt_segment())
"""

from instructorflow.core.profiles.loader import (
    ProfileLoadError,
    get_profiles_directory,
    load_all_profiles,
    load_profile,
)
from instructorflow.core.profiles.manager import ProfileManager, ProfileNotFoundError
from instructorflow.core.profiles.models import (
    CorrectionStyle,
    EmojiUsage,
    Formality,
    InstructorProfile,
    ProfileBehavior,
    ProfileIdentity,
    ProfileTemplates,
    ProfileVoice,
    Tone,
)

__all__ = [
    # Models
    "InstructorProfile",
    "ProfileIdentity",
    "ProfileVoice",
    "ProfileBehavior",
    "ProfileTemplates",
    "Tone",
    "Formality",
    "EmojiUsage",
    "CorrectionStyle",
    # Loader
    "load_profile",
    "load_all_profiles",
    "get_profiles_directory",
    "ProfileLoadError",
    # Manager
    "ProfileManager",
    "ProfileNotFoundError",
]
