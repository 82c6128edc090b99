"""npm adapter for dependency audit, packaging and inventory."""

import shutil
from pathlib import Path
from typing import List, Optional

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import Settings, get_settings
from ..logging import get_logger
from ..models.process import ProcessResult
from .process_runner import FINDINGS_ON_ONE, ProcessExitError, ProcessRunner

logger = get_logger(__name__)


class NpmAdapter:
    """Runs npm subcommands through the sandboxed process runner."""

    def __init__(
        self,
        runner: Optional[ProcessRunner] = None,
        settings: Optional[Settings] = None,
        npm_path: Optional[str] = None,
    ):
        """Initialize the npm adapter."""
        self.settings = settings or get_settings()
        self.runner = runner or ProcessRunner(self.settings)
        self.npm_path = npm_path or shutil.which("npm") or "npm"

    def _argv(self, *args: str) -> List[str]:
        return [self.npm_path, *args]

    async def audit(self, project_dir: Path) -> ProcessResult:
        """Run ``npm audit --json``.

        Exit code 1 means vulnerabilities were reported. Any other non-zero
        exit is retried before the ProcessExitError is re-raised.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.audit_retry_attempts),
            wait=wait_exponential(multiplier=0.5, max=4),
            retry=retry_if_exception_type(ProcessExitError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                attempt_number = attempt.retry_state.attempt_number
                if attempt_number > 1:
                    logger.info("Retrying npm audit", attempt=attempt_number)
                result = await self.runner.run(
                    self._argv("audit", "--json"),
                    policy=FINDINGS_ON_ONE,
                    cwd=str(project_dir),
                )
        return result

    async def pack_dry_run(self, project_dir: Path) -> ProcessResult:
        """Run ``npm pack --dry-run`` and return its output."""
        return await self.runner.run(
            self._argv("pack", "--dry-run"),
            cwd=str(project_dir),
        )

    async def list_dependencies(self, project_dir: Path) -> ProcessResult:
        """Run ``npm ls --all --json``; exit 1 (dependency problems) still carries the tree."""
        return await self.runner.run(
            self._argv("ls", "--all", "--json"),
            policy=FINDINGS_ON_ONE,
            cwd=str(project_dir),
        )
