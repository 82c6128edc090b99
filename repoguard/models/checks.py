"""Check result and report data models for RepoGuard."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Literal, Sequence, Tuple, get_args

from dataclasses_json import DataClassJsonMixin, config

# Type aliases for better type safety
CheckStatus = Literal['pass', 'warn', 'fail', 'skip']
Severity = Literal['info', 'warning', 'error', 'critical']
ProjectType = Literal['frontend', 'backend', 'fullstack']

CHECK_STATUSES: Tuple[str, ...] = get_args(CheckStatus)
SEVERITIES: Tuple[str, ...] = get_args(Severity)
PROJECT_TYPES: Tuple[str, ...] = get_args(ProjectType)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class CheckResult(DataClassJsonMixin):
    """The outcome of a single check. Immutable once produced."""

    name: str
    status: CheckStatus
    severity: Severity
    message: str
    details: Any = field(default=None)
    suggestions: Tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        """Validate check result data after initialization."""
        if not self.name:
            raise ValueError("Check name cannot be empty")
        if self.status not in CHECK_STATUSES:
            raise ValueError(f"Invalid check status: {self.status!r}")
        if self.severity not in SEVERITIES:
            raise ValueError(f"Invalid severity: {self.severity!r}")
        if not self.message:
            raise ValueError("Message cannot be empty")
        object.__setattr__(self, 'suggestions', tuple(self.suggestions))

    @classmethod
    def passed(
        cls,
        name: str,
        message: str,
        details: Any = None,
        suggestions: Sequence[str] = (),
    ) -> CheckResult:
        return cls(name, 'pass', 'info', message, details, tuple(suggestions))

    @classmethod
    def warning(
        cls,
        name: str,
        message: str,
        details: Any = None,
        suggestions: Sequence[str] = (),
        severity: Severity = 'warning',
    ) -> CheckResult:
        return cls(name, 'warn', severity, message, details, tuple(suggestions))

    @classmethod
    def failure(
        cls,
        name: str,
        message: str,
        details: Any = None,
        suggestions: Sequence[str] = (),
        severity: Severity = 'error',
    ) -> CheckResult:
        return cls(name, 'fail', severity, message, details, tuple(suggestions))

    @classmethod
    def skipped(
        cls,
        name: str,
        message: str,
        suggestions: Sequence[str] = (),
    ) -> CheckResult:
        return cls(name, 'skip', 'info', message, None, tuple(suggestions))

    @classmethod
    def from_exception(
        cls,
        name: str,
        message: str,
        error: BaseException,
        suggestions: Sequence[str] = (),
    ) -> CheckResult:
        """Build the fail/error result a check reports when it faults."""
        return cls(
            name,
            'fail',
            'error',
            message,
            str(error) or type(error).__name__,
            tuple(suggestions),
        )

    @property
    def is_failure(self) -> bool:
        return self.status == 'fail'

    @property
    def is_critical(self) -> bool:
        """Check if result is critical severity."""
        return self.severity == 'critical'


@dataclass(slots=True)
class ReportSummary(DataClassJsonMixin):
    """Per-status counts over a report's checks."""

    total: int = 0
    passed: int = 0
    warnings: int = 0
    failed: int = 0
    skipped: int = 0

    @classmethod
    def from_checks(cls, checks: Iterable[CheckResult]) -> ReportSummary:
        summary = cls()
        for check in checks:
            summary.total += 1
            if check.status == 'pass':
                summary.passed += 1
            elif check.status == 'warn':
                summary.warnings += 1
            elif check.status == 'fail':
                summary.failed += 1
            else:
                summary.skipped += 1
        return summary

    @property
    def is_partition(self) -> bool:
        return self.passed + self.warnings + self.failed + self.skipped == self.total


def determine_overall_status(checks: Sequence[CheckResult]) -> CheckStatus:
    """Fold check statuses with fail > warn > all-skip > pass precedence."""
    if any(c.status == 'fail' for c in checks):
        return 'fail'
    if any(c.status == 'warn' for c in checks):
        return 'warn'
    if all(c.status == 'skip' for c in checks):
        return 'skip'
    return 'pass'


@dataclass(slots=True)
class ValidationReport(DataClassJsonMixin):
    """The aggregated result of one validation run."""

    project_type: ProjectType
    overall_status: CheckStatus
    summary: ReportSummary
    checks: List[CheckResult]
    execution_time_ms: int
    timestamp: datetime = field(
        default_factory=_utcnow,
        metadata=config(encoder=datetime.isoformat, decoder=datetime.fromisoformat)
    )

    def __post_init__(self) -> None:
        """Validate report consistency after initialization."""
        if self.project_type not in PROJECT_TYPES:
            raise ValueError(f"Invalid project type: {self.project_type!r}")
        if self.summary != ReportSummary.from_checks(self.checks):
            raise ValueError("Summary counts do not match the checks list")
        if self.overall_status != determine_overall_status(self.checks):
            raise ValueError("Overall status does not match the checks list")

    @classmethod
    def from_checks(
        cls,
        checks: Sequence[CheckResult],
        project_type: ProjectType,
        execution_time_ms: int = 0,
        timestamp: datetime | None = None,
    ) -> ValidationReport:
        """Build a report whose summary and status are derived from ``checks``."""
        checks = list(checks)
        return cls(
            project_type=project_type,
            overall_status=determine_overall_status(checks),
            summary=ReportSummary.from_checks(checks),
            checks=checks,
            execution_time_ms=execution_time_ms,
            timestamp=timestamp or _utcnow(),
        )

    def get_check(self, name: str) -> CheckResult | None:
        """Get the first check with the given name."""
        for check in self.checks:
            if check.name == name:
                return check
        return None

    @property
    def failed_checks(self) -> List[CheckResult]:
        return [c for c in self.checks if c.status == 'fail']

    def to_summary_dict(self) -> Dict[str, Any]:
        """Compact dictionary for logging."""
        return {
            'project_type': self.project_type,
            'overall_status': self.overall_status,
            'total': self.summary.total,
            'failed': self.summary.failed,
            'execution_time_ms': self.execution_time_ms,
        }
