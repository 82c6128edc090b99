"""Adapters for external command-line tools."""

from .npm_adapter import NpmAdapter
from .process_runner import (
    DEFAULT_POLICY,
    FINDINGS_ON_ONE,
    ExitPolicy,
    ProcessBufferExceededError,
    ProcessError,
    ProcessExitError,
    ProcessRunner,
    ProcessTimeoutError,
)

__all__ = [
    "DEFAULT_POLICY",
    "FINDINGS_ON_ONE",
    "ExitPolicy",
    "NpmAdapter",
    "ProcessBufferExceededError",
    "ProcessError",
    "ProcessExitError",
    "ProcessRunner",
    "ProcessTimeoutError",
]
