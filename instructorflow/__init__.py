"""instructorflow.

Orchestration core for AI-instructed lesson screens: one learner submission
in, a validated instructor response out, with learner memory and screen
progress kept consistent under cancellation and supersession.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "0.1.0"
