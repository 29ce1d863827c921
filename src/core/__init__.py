# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core package for the grading engine.

This package contains cross-cutting application configuration:
- config: Application configuration, settings and grading constants
"""
