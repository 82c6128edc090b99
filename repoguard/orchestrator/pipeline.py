"""Check orchestration and the validation pipeline for RepoGuard."""

import asyncio
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..adapters.npm_adapter import NpmAdapter
from ..adapters.process_runner import ProcessRunner
from ..checks import Check, CheckContext, MetadataError, default_checks, safe_load_json
from ..config import Settings, get_settings
from ..logging import get_logger, log_check_event
from ..models.checks import CheckResult, ProjectType, ValidationReport
from ..scanner.path_guard import PathLike

logger = get_logger(__name__)

FRONTEND_LIBS = ('react', 'vue', 'angular', 'svelte', 'next')
BACKEND_LIBS = ('express', 'fastify', 'koa', '@nestjs/core', 'firebase-functions')


def _check_name(check: Any) -> str:
    name = getattr(check, 'name', None)
    return name if isinstance(name, str) and name else type(check).__name__


class CheckOrchestrator:
    """Runs independent checks concurrently and never lets one escape."""

    async def run_checks(self, checks: Sequence[Check], context: CheckContext) -> List[CheckResult]:
        """Run every check; results come back in declaration order."""
        results = await asyncio.gather(*(self._run_guarded(c, context) for c in checks))
        return list(results)

    async def _run_guarded(self, check: Check, context: CheckContext) -> CheckResult:
        name = _check_name(check)
        start_time = time.monotonic()
        log_check_event(logger, name, "started")

        try:
            result = await check.run(context)
            if not isinstance(result, CheckResult):
                raise TypeError(f"Check returned {type(result).__name__}, expected CheckResult")
        except Exception as e:
            logger.error("Check raised an exception", check=name, error=str(e), exc_info=True)
            result = CheckResult.from_exception(name, f"Check '{name}' failed unexpectedly", e)

        log_check_event(
            logger,
            name,
            "completed",
            status=result.status,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )
        return result


def detect_project_type(root: PathLike, max_size: int = 1024 * 1024) -> ProjectType:
    """Classify a project from its package.json dependencies."""
    try:
        package = safe_load_json(Path(root) / 'package.json', max_size)
    except (OSError, MetadataError):
        return 'backend'

    deps: Dict[str, Any] = {}
    for key in ('dependencies', 'devDependencies'):
        section = package.get(key)
        if isinstance(section, dict):
            deps.update(section)

    has_frontend = any(lib in dep for lib in FRONTEND_LIBS for dep in deps)
    has_backend = any(lib in deps for lib in BACKEND_LIBS)

    if has_frontend and has_backend:
        return 'fullstack'
    if has_frontend:
        return 'frontend'
    return 'backend'


class ValidationPipeline:
    """Builds the check context, runs the checks and assembles the report."""

    def __init__(self, settings: Optional[Settings] = None, runner: Optional[ProcessRunner] = None):
        """Initialize the pipeline."""
        self.settings = settings or get_settings()
        self.runner = runner or ProcessRunner(self.settings)
        self.npm = NpmAdapter(self.runner, self.settings)
        self.orchestrator = CheckOrchestrator()

    async def execute(
        self,
        root: PathLike,
        checks: Optional[Sequence[Check]] = None,
        project_type: Optional[ProjectType] = None,
    ) -> ValidationReport:
        """Validate the project at ``root``."""
        start_time = time.monotonic()
        root_path = Path(root).resolve()
        if not root_path.is_dir():
            raise NotADirectoryError(f"Project root is not a directory: {root_path}")

        project_type = project_type or detect_project_type(root_path, self.settings.max_json_size)
        checks = list(checks) if checks is not None else default_checks()

        logger.info(
            "validation.started",
            root=str(root_path),
            project_type=project_type,
            checks=len(checks),
        )

        context = CheckContext(
            root=root_path,
            settings=self.settings,
            project_type=project_type,
            runner=self.runner,
            npm=self.npm,
        )
        results = await self.orchestrator.run_checks(checks, context)

        report = ValidationReport.from_checks(
            results,
            project_type,
            execution_time_ms=int((time.monotonic() - start_time) * 1000),
        )
        logger.info("validation.completed", **report.to_summary_dict())
        return report


async def run_validation(root: PathLike = '.', settings: Optional[Settings] = None) -> ValidationReport:
    """Validate a project with the default checks."""
    return await ValidationPipeline(settings).execute(root)
