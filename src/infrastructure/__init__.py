# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Infrastructure layer for data access.

This package contains:
- Database connections (PostgreSQL via SQLAlchemy async)
- Academic repositories (SQL and snapshot-backed)
"""
