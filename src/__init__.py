"""Academic Grading Engine.

Read-only aggregation engine that walks the Course > Subject > Period >
Topic > Subtopic > Content hierarchy together with quiz and evaluation
attempts to produce grades, participation figures and performance alerts
for the teacher, administrator and guardian dashboards.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
