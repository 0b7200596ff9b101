"""Workspace health checks and automatic fixes."""

from .checker import CheckResult, CheckStatus, DoctorChecker, DoctorSummary
from .fixer import Fixer

__all__ = ["CheckResult", "CheckStatus", "DoctorChecker", "DoctorSummary", "Fixer"]
