"""External process result models for RepoGuard."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from dataclasses_json import DataClassJsonMixin

# success: exit code accepted as clean; finding: the tool exited with a code it
# uses to report findings (npm audit exits 1 when vulnerabilities exist)
ProcessOutcome = Literal['success', 'finding']


@dataclass(frozen=True, slots=True)
class ProcessResult(DataClassJsonMixin):
    """Captured output of a completed external command."""

    stdout: str
    stderr: str
    exit_code: int
    outcome: ProcessOutcome = 'success'

    @property
    def has_findings(self) -> bool:
        return self.outcome == 'finding'
