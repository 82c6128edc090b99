"""Secret detection patterns and their validation."""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Pattern, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..logging import get_logger

logger = get_logger(__name__)

# JavaScript-style flag letters used by pattern files
FLAG_MAP = {
    'i': re.IGNORECASE,
    'm': re.MULTILINE,
    's': re.DOTALL,
    'g': 0,
    'u': 0,
    'y': 0,
}

_BRACE_QUANTIFIER = re.compile(r"\{(\d*)(?:(,)(\d*))?\}")


class UnboundedPatternError(ValueError):
    """A pattern contains a quantifier with no upper bound."""

    def __init__(self, pattern: str, position: int):
        super().__init__(f"Unbounded quantifier at offset {position} in pattern {pattern!r}")
        self.pattern = pattern
        self.position = position


def parse_flags(flags: Optional[str]) -> int:
    """Translate a flag string such as ``"gi"`` into ``re`` flags."""
    value = 0
    for letter in flags or "":
        if letter not in FLAG_MAP:
            raise ValueError(f"Unsupported regex flag: {letter!r}")
        value |= FLAG_MAP[letter]
    return value


def find_unbounded_quantifier(pattern: str) -> Optional[int]:
    """Return the offset of the first unbounded quantifier, or None.

    ``*``, ``+`` and ``{n,}`` are unbounded. A ``+`` directly after a bounded
    quantifier is the possessive modifier and is allowed. Escapes and
    character classes are skipped.
    """
    i = 0
    length = len(pattern)
    after_quantifier = False

    while i < length:
        char = pattern[i]

        if char == '\\':
            i += 2
            after_quantifier = False
            continue

        if char == '[':
            i += 1
            if i < length and pattern[i] == '^':
                i += 1
            # A leading ']' is a literal member
            if i < length and pattern[i] == ']':
                i += 1
            while i < length and pattern[i] != ']':
                i += 2 if pattern[i] == '\\' else 1
            i += 1
            after_quantifier = False
            continue

        if char == '*':
            return i

        if char == '+':
            if not after_quantifier:
                return i
            after_quantifier = False
            i += 1
            continue

        if char == '?':
            after_quantifier = True
            i += 1
            continue

        if char == '{':
            match = _BRACE_QUANTIFIER.match(pattern, i)
            if match and match.group(0) != '{}':
                if match.group(2) and not match.group(3):
                    return i
                after_quantifier = True
                i = match.end()
                continue

        after_quantifier = False
        i += 1

    return None


def check_bounded(pattern: str) -> None:
    """Raise UnboundedPatternError unless every quantifier is bounded."""
    position = find_unbounded_quantifier(pattern)
    if position is not None:
        raise UnboundedPatternError(pattern, position)


@dataclass(frozen=True, slots=True)
class ScanPattern:
    """A named, compiled secret pattern."""

    name: str
    regex: Pattern[str]
    flags: str = 'i'

    @classmethod
    def compile(cls, name: str, pattern: str, flags: str = 'i') -> 'ScanPattern':
        """Validate and compile a pattern."""
        if not name:
            raise ValueError("Pattern name cannot be empty")
        check_bounded(pattern)
        return cls(name=name, regex=re.compile(pattern, parse_flags(flags)), flags=flags)

    def search(self, line: str) -> bool:
        return self.regex.search(line) is not None


class PatternSpec(BaseModel):
    """One entry of a pattern file."""

    model_config = ConfigDict(extra='ignore')

    name: str = Field(min_length=1, max_length=200, description="Label reported with matches")
    pattern: str = Field(min_length=1, max_length=2000, description="Bounded regular expression")
    flags: Optional[str] = Field(default='i', max_length=8, description="Flag letters from i, m, s, g, u, y")

    @field_validator('flags')
    @classmethod
    def validate_flags(cls, value: Optional[str]) -> str:
        if value is None:
            return 'i'
        parse_flags(value)
        return value

    @field_validator('pattern')
    @classmethod
    def validate_pattern(cls, value: str) -> str:
        position = find_unbounded_quantifier(value)
        if position is not None:
            raise ValueError(f"unbounded quantifier at offset {position}")
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regular expression: {e}") from e
        return value

    def to_pattern(self) -> ScanPattern:
        return ScanPattern.compile(self.name, self.pattern, self.flags or 'i')


DEFAULT_PATTERNS: Sequence[ScanPattern] = (
    ScanPattern.compile('AWS Access Key', r"AKIA[0-9A-Z]{16}"),
    ScanPattern.compile(
        'AWS Secret Key',
        r"aws_secret_access_key\s{0,10}[=:]\s{0,10}['\"]?[A-Za-z0-9/+=]{40}['\"]?",
    ),
    ScanPattern.compile('Stripe Live Key', r"sk_live_[0-9a-zA-Z]{24,99}"),
    ScanPattern.compile('Google API Key', r"AIza[0-9A-Za-z\-_]{35}"),
    ScanPattern.compile('GitHub PAT', r"ghp_[0-9a-zA-Z]{36}"),
    ScanPattern.compile('GitHub PAT (alt)', r"github_pat_[0-9a-zA-Z]{22}_[0-9a-zA-Z]{59}"),
    ScanPattern.compile('Slack Token', r"xox[baprs]-[0-9a-zA-Z-]{10,48}"),
    ScanPattern.compile('Bearer Token', r"Bearer\s{1,10}[A-Za-z0-9\-._~+/]{10,500}"),
    ScanPattern.compile(
        'JWT Token',
        r"eyJ[A-Za-z0-9_-]{10,500}\.[A-Za-z0-9_-]{10,500}\.[A-Za-z0-9_-]{10,500}",
    ),
    ScanPattern.compile('Private Key', r"-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----"),
    ScanPattern.compile(
        'Database URL',
        r"(?:mongodb(?:\+srv)?|postgres(?:ql)?|mysql|redis)://[^:/\s]{1,100}:[^@/\s]{1,200}@",
    ),
)


def _format_errors(error: ValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in item['loc']) or 'entry'}: {item['msg']}"
        for item in error.errors()
    ]


def parse_pattern_entries(entries: List[Any]) -> List[ScanPattern]:
    """Validate entries one by one, keeping the valid ones in order."""
    patterns: List[ScanPattern] = []
    for index, entry in enumerate(entries):
        try:
            spec = PatternSpec.model_validate(entry)
        except ValidationError as e:
            logger.warning(
                "patterns.entry_rejected",
                index=index,
                errors=_format_errors(e),
            )
            continue
        patterns.append(spec.to_pattern())
    return patterns


def load_patterns(path: Optional[Path], max_size: int = 1024 * 1024) -> List[ScanPattern]:
    """Load patterns from a JSON file, falling back to the built-in set."""
    defaults = list(DEFAULT_PATTERNS)
    if path is None:
        return defaults

    path = Path(path)
    try:
        size = path.stat().st_size
        if size > max_size:
            logger.warning("patterns.file_too_large", path=str(path), size=size, limit=max_size)
            return defaults
        data = json.loads(path.read_text(encoding='utf-8'))
    except FileNotFoundError:
        return defaults
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("patterns.file_unreadable", path=str(path), error=str(e))
        return defaults

    if not isinstance(data, list):
        logger.warning("patterns.file_not_a_list", path=str(path))
        return defaults

    patterns = parse_pattern_entries(data)
    if not patterns:
        logger.warning("patterns.no_valid_entries", path=str(path))
        return defaults

    logger.debug("patterns.loaded", path=str(path), count=len(patterns))
    return patterns
