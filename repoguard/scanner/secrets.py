"""Pattern-based hardcoded secret detection."""

import os
import re
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

import anyio

from ..config import Settings, get_settings
from ..logging import get_logger
from ..models.checks import CheckResult
from ..models.secrets import SNIPPET_LIMIT, SecretMatch
from .env_files import unignored_env_files
from .path_guard import PathLike
from .patterns import ScanPattern, load_patterns
from .walker import DirectoryWalker, FileEntry, extension_filter

logger = get_logger(__name__)

SCANNED_EXTENSIONS = ('.ts', '.js', '.jsx', '.tsx', '.json', '.py', '.env', '.yml', '.yaml')
COMMENT_PREFIXES = ('//', '#', '*', '/*', '<!--')
PLACEHOLDER_MARKERS = ('example', 'placeholder', 'TODO', 'FIXME')
ENV_NOT_IGNORED = 'Env file not in .gitignore'
SECRETS_CHECK_NAME = 'secrets scan'

# This package's own directory; it holds pattern definitions, never secrets
PACKAGE_DIR = Path(__file__).resolve().parent.parent

_DEFINITION_RE = re.compile(
    r"(?:^|[=(,:\[]\s{0,5})/[^/\s*][^/\n]{0,500}/[dgimsuvy]{0,8}"
    r"|new\s{1,5}RegExp\("
    r"|re\.compile\("
    r"|patterns?['\"]?\s{0,5}[:=]",
    re.IGNORECASE,
)


def is_comment_line(trimmed: str) -> bool:
    return trimmed.startswith(COMMENT_PREFIXES)


def has_placeholder_marker(line: str) -> bool:
    return any(marker in line for marker in PLACEHOLDER_MARKERS)


def looks_like_definition(line: str) -> bool:
    """True if the line appears to define a detection pattern rather than hold a secret."""
    return _DEFINITION_RE.search(line) is not None


class SecretScanner:
    """Scans a project's source files for hardcoded credentials."""

    def __init__(
        self,
        root: PathLike,
        *,
        patterns: Optional[Sequence[ScanPattern]] = None,
        walker: Optional[DirectoryWalker] = None,
        max_file_size: Optional[int] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the scanner.

        Without explicit ``patterns`` the configured pattern file (default
        ``<root>/config/patterns.json``) is loaded. Without a ``walker`` the
        project's ``src/`` directory is walked when present, else the root.
        """
        self.settings = settings or get_settings()
        self.root = Path(root).resolve()
        self.max_file_size = max_file_size or self.settings.max_file_size

        if patterns is None:
            pattern_file = self.settings.pattern_file or self.root / 'config' / 'patterns.json'
            patterns = load_patterns(pattern_file, max_size=self.settings.max_json_size)
        self.patterns: List[ScanPattern] = list(patterns)

        if walker is None:
            walker = DirectoryWalker(
                self.root,
                accept=extension_filter(*SCANNED_EXTENSIONS),
                max_depth=self.settings.max_walk_depth,
                exclude_prefixes=(PACKAGE_DIR,),
            )
            source_dir = self.root / 'src'
            self.start: Optional[Path] = source_dir if source_dir.is_dir() else None
        else:
            self.start = None
        self.walker = walker

    def scan_text(self, text: str, file: str) -> List[SecretMatch]:
        """Return the matches in ``text``, reported against ``file``."""
        matches: List[SecretMatch] = []
        for number, raw_line in enumerate(text.split('\n'), start=1):
            hits = [pattern for pattern in self.patterns if pattern.search(raw_line)]
            if not hits:
                continue

            trimmed = raw_line.strip()
            if is_comment_line(trimmed) or has_placeholder_marker(trimmed):
                continue

            definition = looks_like_definition(trimmed)
            snippet = trimmed[:SNIPPET_LIMIT]
            for pattern in hits:
                matches.append(SecretMatch(
                    file=file,
                    pattern_name=pattern.name,
                    line_number=number,
                    snippet=snippet,
                    is_definition=definition,
                ))
        return matches

    def scan_file(self, entry: FileEntry) -> List[SecretMatch]:
        """Scan one file; oversized or unreadable files yield no matches."""
        if entry.size > self.max_file_size:
            logger.warning(
                "secrets.file_too_large",
                file=entry.relative,
                size=entry.size,
                limit=self.max_file_size,
            )
            return []

        try:
            fd = os.open(entry.path, os.O_RDONLY | getattr(os, 'O_NOFOLLOW', 0))
            with os.fdopen(fd, 'rb') as handle:
                data = handle.read(self.max_file_size + 1)
        except OSError as e:
            logger.debug("secrets.file_unreadable", file=entry.relative, error=str(e))
            return []

        if len(data) > self.max_file_size:
            logger.warning("secrets.file_too_large", file=entry.relative, limit=self.max_file_size)
            return []

        return self.scan_text(data.decode('utf-8', errors='replace'), entry.relative)

    def env_file_matches(self) -> List[SecretMatch]:
        """File-level matches for root env files that .gitignore does not cover."""
        return [
            SecretMatch(file=name, pattern_name=ENV_NOT_IGNORED)
            for name in unignored_env_files(self.root)
        ]

    def iter_matches(self) -> Iterator[SecretMatch]:
        for entry in self.walker.walk(self.start):
            yield from self.scan_file(entry)
        yield from self.env_file_matches()

    def scan(self) -> List[SecretMatch]:
        """Scan the whole project synchronously."""
        matches = list(self.iter_matches())
        logger.info(
            "secrets.scan_completed",
            matches=len(matches),
            definitions=sum(1 for m in matches if m.is_definition),
        )
        return matches

    async def scan_async(self) -> List[SecretMatch]:
        """Scan in a worker thread so the event loop stays responsive."""
        return await anyio.to_thread.run_sync(self.scan)


def summarize(
    matches: Sequence[SecretMatch],
    name: str = SECRETS_CHECK_NAME,
    patterns_checked: Optional[int] = None,
) -> CheckResult:
    """Fold scanner matches into one check result."""
    real = [m for m in matches if not m.is_definition]
    definitions = [m for m in matches if m.is_definition]

    if not matches:
        details = None if patterns_checked is None else {'patterns_checked': patterns_checked}
        return CheckResult.passed(name, 'No hardcoded secrets detected', details)

    if not real:
        return CheckResult.warning(
            name,
            f"Found {len(definitions)} possible false positive(s) in pattern definitions",
            {
                'definitions': [m.to_detail() for m in definitions[:5]],
                'total': len(definitions),
            },
            ['Review pattern definitions to make sure they hold no real secrets'],
            severity='info',
        )

    by_type = Counter(m.pattern_name for m in real)
    files = list(dict.fromkeys(m.file for m in real))
    details: Dict[str, Any] = {
        'by_type': dict(by_type),
        'files': files[:10],
        'total': len(real),
        'matches': [m.to_detail() for m in real[:10]],
    }
    if definitions:
        details['possible_definitions'] = [m.to_detail() for m in definitions[:5]]

    return CheckResult.failure(
        name,
        f"Found {len(real)} potential secret(s) in {len(files)} file(s)",
        details,
        [
            'Remove hardcoded secrets from the source code',
            'Load credentials from environment variables',
            'Add .env files to .gitignore',
            'Rotate any credential that was committed',
        ],
        severity='critical',
    )
