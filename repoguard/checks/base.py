"""Check protocol, execution context and metadata helpers."""

import asyncio
import functools
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, runtime_checkable

from ..adapters.npm_adapter import NpmAdapter
from ..adapters.process_runner import ProcessRunner
from ..config import Settings, get_settings
from ..models.checks import CheckResult, ProjectType
from ..models.process import ProcessResult

CheckFunction = Callable[['CheckContext'], Awaitable[CheckResult]]


class MetadataError(ValueError):
    """A metadata file is too large or not a JSON object."""


def safe_load_json(path: Path, max_size: int = 1024 * 1024) -> Dict[str, Any]:
    """Load a JSON object from ``path`` after checking its size.

    Raises MetadataError for oversized files, invalid JSON and non-object top
    levels; OSError propagates.
    """
    size = path.stat().st_size
    if size > max_size:
        raise MetadataError(f"{path.name} is too large ({size} bytes, limit {max_size})")

    try:
        data = json.loads(path.read_text(encoding='utf-8', errors='replace'))
    except json.JSONDecodeError as e:
        raise MetadataError(f"{path.name} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MetadataError(f"{path.name} must contain a JSON object")
    return data


def parse_json_output(output: str, source: str, max_size: int = 10 * 1024 * 1024) -> Dict[str, Any]:
    """Parse a tool's JSON stdout into an object."""
    if len(output) > max_size:
        raise MetadataError(f"{source} output is too large")
    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        raise MetadataError(f"{source} produced invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MetadataError(f"{source} output must be a JSON object")
    return data


@dataclass
class CheckContext:
    """Everything a check may look at: the project root and shared services."""

    root: Path
    settings: Settings = field(default_factory=get_settings)
    project_type: ProjectType = 'backend'
    runner: Optional[ProcessRunner] = None
    npm: Optional[NpmAdapter] = None
    _dependency_tree: Optional["asyncio.Future[ProcessResult]"] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        if self.runner is None:
            self.runner = ProcessRunner(self.settings)
        if self.npm is None:
            self.npm = NpmAdapter(self.runner, self.settings)

    @property
    def package_json_path(self) -> Path:
        return self.root / 'package.json'

    def has_package_json(self) -> bool:
        return self.package_json_path.is_file()

    def load_package_json(self) -> Optional[Dict[str, Any]]:
        """Return package.json as a dict, or None if there is none."""
        if not self.has_package_json():
            return None
        return safe_load_json(self.package_json_path, self.settings.max_json_size)

    async def dependency_tree(self) -> ProcessResult:
        """Output of ``npm ls --all --json``, run at most once per context."""
        if self._dependency_tree is None:
            self._dependency_tree = asyncio.ensure_future(self.npm.list_dependencies(self.root))
        return await asyncio.shield(self._dependency_tree)


@runtime_checkable
class Check(Protocol):
    """Anything with a name and an async ``run(context)``."""

    name: str

    async def run(self, context: CheckContext) -> CheckResult:
        ...


class FunctionCheck:
    """Adapts a coroutine function into a Check."""

    def __init__(self, name: str, func: CheckFunction):
        if not name:
            raise ValueError("Check name cannot be empty")
        self.name = name
        self.func = func
        functools.update_wrapper(self, func)

    async def run(self, context: CheckContext) -> CheckResult:
        return await self.func(context)

    def __repr__(self) -> str:
        return f"<check {self.name!r}>"


def check(name: str) -> Callable[[CheckFunction], FunctionCheck]:
    """Decorator turning ``async def f(context) -> CheckResult`` into a Check."""

    def decorator(func: CheckFunction) -> FunctionCheck:
        return FunctionCheck(name, func)

    return decorator
