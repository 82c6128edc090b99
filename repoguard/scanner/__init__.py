"""Filesystem traversal and secret scanning."""

from .env_files import find_env_files, is_ignored, read_ignore_patterns, unignored_env_files
from .path_guard import is_contained
from .patterns import (
    DEFAULT_PATTERNS,
    PatternSpec,
    ScanPattern,
    UnboundedPatternError,
    load_patterns,
)
from .secrets import SecretScanner, summarize
from .walker import DirectoryWalker, FileEntry, extension_filter

__all__ = [
    "DEFAULT_PATTERNS",
    "DirectoryWalker",
    "FileEntry",
    "PatternSpec",
    "ScanPattern",
    "SecretScanner",
    "UnboundedPatternError",
    "extension_filter",
    "find_env_files",
    "is_contained",
    "is_ignored",
    "load_patterns",
    "read_ignore_patterns",
    "summarize",
    "unignored_env_files",
]
