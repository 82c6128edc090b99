"""Unit tests for the npm adapter."""

import pytest

from repoguard.adapters.npm_adapter import NpmAdapter
from repoguard.adapters.process_runner import FINDINGS_ON_ONE, ProcessExitError, ProcessTimeoutError
from repoguard.config import Settings
from repoguard.models.process import ProcessResult


def _adapter(runner, **overrides):
    settings = Settings(_env_file=None, **overrides)
    return NpmAdapter(runner, settings, npm_path="npm")


class TestNpmAdapter:
    """Test cases for NpmAdapter."""

    @pytest.mark.asyncio
    async def test_audit_command(self, tmp_path, make_runner):
        """Test audit runs with the findings exit policy in the project directory."""
        runner = make_runner([ProcessResult('{"metadata": {}}', "", 1, outcome="finding")])

        result = await _adapter(runner).audit(tmp_path)

        assert result.has_findings
        assert runner.calls[0]["argv"] == ["npm", "audit", "--json"]
        assert runner.calls[0]["policy"] == FINDINGS_ON_ONE
        assert runner.calls[0]["cwd"] == str(tmp_path)

    @pytest.mark.asyncio
    async def test_audit_retries_unexpected_exit(self, tmp_path, make_runner):
        """Test an unexpected exit code is retried."""
        runner = make_runner([
            ProcessExitError(["npm", "audit", "--json"], 254, "", "network"),
            ProcessResult("{}", "", 0),
        ])

        result = await _adapter(runner, audit_retry_attempts=2).audit(tmp_path)

        assert result.exit_code == 0
        assert len(runner.calls) == 2

    @pytest.mark.asyncio
    async def test_audit_gives_up_after_attempts(self, tmp_path, make_runner):
        """Test the last exit error is re-raised."""
        runner = make_runner([ProcessExitError(["npm"], 254, "", "network")])

        with pytest.raises(ProcessExitError):
            await _adapter(runner, audit_retry_attempts=1).audit(tmp_path)

    @pytest.mark.asyncio
    async def test_timeouts_not_retried(self, tmp_path, make_runner):
        """Test only exit errors are retried."""
        runner = make_runner([ProcessTimeoutError(["npm"], 30.0)])

        with pytest.raises(ProcessTimeoutError):
            await _adapter(runner, audit_retry_attempts=3).audit(tmp_path)
        assert len(runner.calls) == 1

    @pytest.mark.asyncio
    async def test_pack_and_ls_commands(self, tmp_path, make_runner):
        """Test pack and ls argument vectors."""
        runner = make_runner([ProcessResult("", "", 0), ProcessResult("{}", "", 1, outcome="finding")])
        adapter = _adapter(runner)

        await adapter.pack_dry_run(tmp_path)
        await adapter.list_dependencies(tmp_path)

        assert runner.calls[0]["argv"] == ["npm", "pack", "--dry-run"]
        assert runner.calls[1]["argv"] == ["npm", "ls", "--all", "--json"]
        assert runner.calls[1]["policy"] == FINDINGS_ON_ONE
