"""Data models for RepoGuard."""

from .checks import (
    CheckResult,
    CheckStatus,
    ProjectType,
    ReportSummary,
    Severity,
    ValidationReport,
    determine_overall_status,
)
from .process import ProcessOutcome, ProcessResult
from .secrets import SecretMatch

__all__ = [
    "CheckResult",
    "CheckStatus",
    "ProjectType",
    "ReportSummary",
    "Severity",
    "ValidationReport",
    "determine_overall_status",
    "ProcessOutcome",
    "ProcessResult",
    "SecretMatch",
]
