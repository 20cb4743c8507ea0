# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core package for instructorflow.

This package contains the teaching pipeline and its shared infrastructure:
- config: Application configuration and settings
- profiles: Instructor profiles and their loader
- constraints: Screen constraint evaluation
- prompts: Structured prompt assembly
- validation: Tiered response validation
- memory: Learning insights and learner memory updates
- intelligence: Generation port and LiteLLM client
- orchestration: Interaction coordination and the session orchestrator
"""
