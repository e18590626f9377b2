"""
Analytics package exports.
"""

from study_core.analytics.service import build_progress_dashboard, project_exam_readiness
from study_core.analytics.types import ExamProjection, ProgressDashboard, ProgressSummary

__all__ = [
    "build_progress_dashboard",
    "project_exam_readiness",
    "ExamProjection",
    "ProgressDashboard",
    "ProgressSummary",
]
