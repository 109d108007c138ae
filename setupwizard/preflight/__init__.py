"""
Prerequisite Check Module

Validates the host before the wizard lets the user past the checklist.
"""

from .models import CheckCategory, CheckResult, CheckSeverity, PrerequisiteReport
from .checker import PrerequisiteChecker

__all__ = [
    "PrerequisiteChecker",
    "PrerequisiteReport",
    "CheckResult",
    "CheckSeverity",
    "CheckCategory",
]
