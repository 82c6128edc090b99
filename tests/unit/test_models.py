"""Unit tests for report and result models."""

from datetime import datetime, timezone

import pytest

from repoguard.models.checks import (
    CheckResult,
    ReportSummary,
    ValidationReport,
    determine_overall_status,
)
from repoguard.models.process import ProcessResult
from repoguard.models.secrets import SNIPPET_LIMIT, SecretMatch


class TestCheckResult:
    """Test cases for CheckResult."""

    def test_check_result_creation(self):
        """Test creating a result with valid data."""
        result = CheckResult(
            name="lockfile",
            status="warn",
            severity="warning",
            message="No lockfile found",
            details={"checked": ["package-lock.json"]},
            suggestions=["Commit a lockfile"],
        )

        assert result.name == "lockfile"
        assert result.status == "warn"
        assert result.suggestions == ("Commit a lockfile",)

    def test_check_result_validation(self):
        """Test validation of invalid fields."""
        with pytest.raises(ValueError, match="Check name cannot be empty"):
            CheckResult.passed("", "ok")
        with pytest.raises(ValueError, match="Invalid check status"):
            CheckResult("x", "maybe", "info", "msg")
        with pytest.raises(ValueError, match="Invalid severity"):
            CheckResult("x", "pass", "fatal", "msg")
        with pytest.raises(ValueError, match="Message cannot be empty"):
            CheckResult("x", "pass", "info", "")

    def test_check_result_is_immutable(self):
        """Test that results cannot be modified once produced."""
        result = CheckResult.passed("build", "Build script configured")
        with pytest.raises(AttributeError):
            result.status = "fail"

    def test_from_exception(self):
        """Test converting an exception into a failing result."""
        result = CheckResult.from_exception("npm audit", "Could not run npm audit", RuntimeError("boom"))

        assert result.status == "fail"
        assert result.severity == "error"
        assert result.details == "boom"
        assert result.is_failure is True

        blank = CheckResult.from_exception("x", "failed", KeyError())
        assert blank.details == "KeyError"

    def test_serialization(self):
        """Test result serialization."""
        result = CheckResult.failure("secrets scan", "Found 1", {"total": 1}, ["Rotate"], severity="critical")
        data = result.to_dict()

        assert data["status"] == "fail"
        assert data["severity"] == "critical"
        assert list(data["suggestions"]) == ["Rotate"]
        assert result.is_critical is True


class TestOverallStatus:
    """Test cases for status aggregation."""

    @pytest.mark.parametrize(
        "statuses, expected",
        [
            (["pass", "warn", "fail", "skip"], "fail"),
            (["pass", "warn", "skip"], "warn"),
            (["skip", "skip"], "skip"),
            (["pass", "skip"], "pass"),
            ([], "skip"),
        ],
    )
    def test_precedence(self, statuses, expected):
        """Test fail > warn > all-skip > pass."""
        checks = [CheckResult(f"c{i}", s, "info", "m") for i, s in enumerate(statuses)]
        assert determine_overall_status(checks) == expected


class TestValidationReport:
    """Test cases for ValidationReport."""

    def _checks(self):
        return [
            CheckResult.passed("a", "ok"),
            CheckResult.warning("b", "hmm"),
            CheckResult.failure("c", "bad"),
            CheckResult.skipped("d", "off"),
        ]

    def test_from_checks_partitions_summary(self):
        """Test that summary counts partition the checks."""
        report = ValidationReport.from_checks(self._checks(), "backend", execution_time_ms=12)

        assert report.summary == ReportSummary(total=4, passed=1, warnings=1, failed=1, skipped=1)
        assert report.summary.is_partition
        assert report.overall_status == "fail"
        assert [c.name for c in report.failed_checks] == ["c"]
        assert report.get_check("b").status == "warn"
        assert report.get_check("missing") is None

    def test_inconsistent_summary_rejected(self):
        """Test that a summary not matching the checks is rejected."""
        with pytest.raises(ValueError, match="Summary counts"):
            ValidationReport(
                project_type="backend",
                overall_status="fail",
                summary=ReportSummary(total=1, passed=1),
                checks=self._checks(),
                execution_time_ms=0,
            )

    def test_inconsistent_status_rejected(self):
        """Test that an overall status not matching the checks is rejected."""
        checks = self._checks()
        with pytest.raises(ValueError, match="Overall status"):
            ValidationReport(
                project_type="backend",
                overall_status="pass",
                summary=ReportSummary.from_checks(checks),
                checks=checks,
                execution_time_ms=0,
            )

    def test_invalid_project_type(self):
        """Test project type validation."""
        with pytest.raises(ValueError, match="Invalid project type"):
            ValidationReport.from_checks([], "mobile")

    def test_report_serialization(self):
        """Test report serialization."""
        stamp = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        report = ValidationReport.from_checks(self._checks(), "frontend", 5, timestamp=stamp)
        data = report.to_dict()

        assert data["timestamp"] == stamp.isoformat()
        assert data["summary"]["total"] == 4
        assert [c["name"] for c in data["checks"]] == ["a", "b", "c", "d"]
        assert report.to_summary_dict()["failed"] == 1


class TestSecretMatch:
    """Test cases for SecretMatch."""

    def test_snippet_truncated(self):
        """Test that snippets are capped."""
        match = SecretMatch(file="src/a.js", pattern_name="JWT Token", line_number=3, snippet="x" * 500)
        assert len(match.snippet) == SNIPPET_LIMIT
        assert match.location == "src/a.js:3"

    def test_file_level_match(self):
        """Test a match without a line number."""
        match = SecretMatch(file=".env", pattern_name="Env file not in .gitignore")
        assert match.line_number is None
        assert match.location == ".env"
        assert match.to_detail()["line"] is None

    def test_validation(self):
        """Test invalid matches are rejected."""
        with pytest.raises(ValueError, match="File cannot be empty"):
            SecretMatch(file="", pattern_name="x")
        with pytest.raises(ValueError, match="1-based"):
            SecretMatch(file="a", pattern_name="x", line_number=0)

    def test_hashable(self):
        """Test matches can be compared as sets."""
        a = SecretMatch(file="a", pattern_name="x", line_number=1)
        b = SecretMatch(file="a", pattern_name="x", line_number=1)
        assert {a} == {b}


class TestProcessResult:
    """Test cases for ProcessResult."""

    def test_outcome(self):
        """Test the finding outcome flag."""
        assert ProcessResult("", "", 0).has_findings is False
        assert ProcessResult("{}", "", 1, outcome="finding").has_findings is True
