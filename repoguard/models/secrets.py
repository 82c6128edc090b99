"""Secret match data models for RepoGuard."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from dataclasses_json import DataClassJsonMixin

SNIPPET_LIMIT = 200


@dataclass(frozen=True, slots=True)
class SecretMatch(DataClassJsonMixin):
    """A line (or file) flagged by the secret scanner."""

    file: str
    pattern_name: str
    line_number: Optional[int] = field(default=None)
    snippet: str = field(default='')
    is_definition: bool = field(default=False)

    def __post_init__(self) -> None:
        """Validate match data after initialization."""
        if not self.file:
            raise ValueError("File cannot be empty")
        if not self.pattern_name:
            raise ValueError("Pattern name cannot be empty")
        if self.line_number is not None and self.line_number < 1:
            raise ValueError("Line numbers are 1-based")
        if len(self.snippet) > SNIPPET_LIMIT:
            object.__setattr__(self, 'snippet', self.snippet[:SNIPPET_LIMIT])

    @property
    def location(self) -> str:
        if self.line_number is None:
            return self.file
        return f"{self.file}:{self.line_number}"

    def to_detail(self) -> Dict[str, Any]:
        """Dictionary form used inside check details."""
        return {
            'file': self.file,
            'type': self.pattern_name,
            'line': self.line_number,
            'snippet': self.snippet,
            'is_definition': self.is_definition,
        }
