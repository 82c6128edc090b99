"""Shared fixtures for RepoGuard tests."""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pytest

from repoguard.config import Settings, reset_settings
from repoguard.models.process import ProcessResult

# A key-shaped literal used across the scanner tests
AWS_KEY = "AKIA" + "ABCDEFGHIJKLMNOP"


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep REPOGUARD_* variables from the environment out of the tests."""
    for name in list(os.environ):
        if name.startswith("REPOGUARD_"):
            monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


def write_files(root: Path, files: Dict[str, Any]) -> Path:
    """Create ``files`` (relative path -> text or JSON-able dict) under ``root``."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, (dict, list)):
            content = json.dumps(content)
        path.write_text(content, encoding="utf-8")
    return root


class FakeRunner:
    """Stands in for ProcessRunner, replaying scripted outcomes.

    ``outcomes`` is either a list consumed in call order or a dict mapping a
    subcommand (``argv[1]``) to its own list, for concurrently issued calls.
    """

    def __init__(self, outcomes: Union[List[Any], Dict[str, List[Any]], None] = None):
        if isinstance(outcomes, dict):
            self.outcomes = {key: list(value) for key, value in outcomes.items()}
        else:
            self.outcomes = list(outcomes or [])
        self.calls: List[Dict[str, Any]] = []

    async def run(self, argv, **kwargs) -> ProcessResult:
        self.calls.append({"argv": list(argv), **kwargs})
        if isinstance(self.outcomes, dict):
            queue = self.outcomes.get(argv[1] if len(argv) > 1 else "", [])
        else:
            queue = self.outcomes
        if not queue:
            raise AssertionError(f"Unexpected command: {argv}")
        outcome = queue.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def write_tree():
    """Factory writing a file tree under a directory."""
    return write_files


@pytest.fixture
def make_runner():
    """Factory for a FakeRunner with scripted outcomes."""
    return FakeRunner


@pytest.fixture
def aws_key() -> str:
    return AWS_KEY
