# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for the grading engine.

Domains:
    grading: Identity mapping, hierarchy resolution, attempt collection,
        grade aggregation, participation and alerts.
    reporting: Report assembly for teachers, admins, students and guardians.
    content_import: Validation and planning of bulk content imports.
"""
