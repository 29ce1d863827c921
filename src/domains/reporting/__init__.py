# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reporting domain package.

This package assembles grading results into the report shapes consumed by
teacher, administrator, student and guardian views.
"""

from src.domains.reporting.schemas import (
    AlertsReport,
    AssessmentResultsReport,
    CourseParticipationReport,
    CourseReport,
    CourseReportList,
    CoursesPerformanceReport,
    GuardianReport,
    Report,
    ReportModel,
    StudentProgressReport,
    StudentTrackingReport,
    TeacherDashboardStats,
)
from src.domains.reporting.service import ReportAssembler

__all__ = [
    "ReportAssembler",
    "ReportModel",
    "Report",
    "CourseReport",
    "CourseReportList",
    "StudentTrackingReport",
    "AlertsReport",
    "CoursesPerformanceReport",
    "CourseParticipationReport",
    "TeacherDashboardStats",
    "AssessmentResultsReport",
    "GuardianReport",
    "StudentProgressReport",
]
