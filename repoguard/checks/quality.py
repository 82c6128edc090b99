"""Dependency quality checks: unused, duplicated and unmet peer dependencies."""

import fnmatch
import json
import re
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

import anyio

from ..adapters.process_runner import ProcessError
from ..logging import get_logger
from ..models.checks import CheckResult
from ..scanner.walker import DirectoryWalker, extension_filter
from .base import CheckContext, MetadataError, check, parse_json_output

logger = get_logger(__name__)

SOURCE_EXTENSIONS = ('.js', '.jsx', '.ts', '.tsx', '.mjs', '.cjs')
MAX_REPORTED = 10

# require('x'), import('x'), import 'x', ... from 'x'
_IMPORT_RE = re.compile(
    r"""(?:\brequire\s*\(\s*|\bimport\s*\(\s*|\bimport\s+|\bfrom\s+)['"`]([^'"`\s]{1,300})['"`]"""
)
_PEER_MARKERS = ('peer dep missing', 'missing peer', 'unmet peer dependency')
_PACKAGE_AT_RE = re.compile(
    r"(@?[a-z0-9][a-z0-9._-]{0,213}(?:/[a-z0-9][a-z0-9._-]{0,213})?)@",
    re.IGNORECASE,
)


def package_name(specifier: str) -> Optional[str]:
    """Map an import specifier to the npm package it loads, or None for local paths."""
    if specifier.startswith(('.', '/')):
        return None
    if specifier.startswith('node:'):
        return None
    parts = specifier.split('/')
    if specifier.startswith('@'):
        return '/'.join(parts[:2]) if len(parts) > 1 else None
    return parts[0]


def imported_packages(text: str) -> Set[str]:
    names = set()
    for match in _IMPORT_RE.finditer(text):
        name = package_name(match.group(1))
        if name:
            names.add(name)
    return names


def collect_imports(context: CheckContext) -> Set[str]:
    """Package names imported by source files under ``src/``."""
    walker = DirectoryWalker(
        context.root,
        accept=extension_filter(*SOURCE_EXTENSIONS),
        max_depth=context.settings.max_walk_depth,
    )
    found: Set[str] = set()
    for entry in walker.walk('src'):
        if entry.size > context.settings.max_file_size:
            logger.warning("Skipping oversized source file", file=entry.relative, size=entry.size)
            continue
        try:
            text = entry.path.read_text(encoding='utf-8', errors='replace')
        except OSError as e:
            logger.debug("Could not read source file", file=entry.relative, error=str(e))
            continue
        found |= imported_packages(text)
    return found


def find_unused(
    declared: Sequence[str],
    imported: Set[str],
    scripts: Dict[str, Any],
    allowed: Sequence[str],
) -> List[str]:
    """Declared packages that are neither imported, used by a script nor allow-listed."""
    scripts_text = json.dumps(scripts)
    unused = []
    for name in declared:
        if name in imported or name in scripts_text:
            continue
        if any(fnmatch.fnmatchcase(name, pattern) for pattern in allowed):
            continue
        unused.append(name)
    return unused


@check('unused dependencies')
async def check_unused_dependencies(context: CheckContext) -> CheckResult:
    name = 'unused dependencies'
    if not context.settings.check_unused_dependencies:
        return CheckResult.skipped(name, 'Unused dependencies check disabled')

    try:
        package = context.load_package_json()
    except (OSError, MetadataError) as e:
        return CheckResult.from_exception(name, 'Could not check unused dependencies', e)

    if package is None:
        return CheckResult.skipped(name, 'No package.json found')
    if not (context.root / 'src').is_dir():
        return CheckResult.skipped(name, 'No src directory found')

    declared: Dict[str, None] = {}
    for key in ('dependencies', 'devDependencies'):
        section = package.get(key)
        if isinstance(section, dict):
            declared.update(dict.fromkeys(section))
    scripts = package.get('scripts')
    if not isinstance(scripts, dict):
        scripts = {}

    imported = await anyio.to_thread.run_sync(collect_imports, context)
    unused = find_unused(list(declared), imported, scripts, context.settings.allowed_unused_dependencies)

    if unused:
        return CheckResult.warning(
            name,
            f"Found {len(unused)} potentially unused dependencies",
            {'unused': unused, 'total_dependencies': len(declared)},
            [
                'Review and remove unused dependencies to reduce install size',
                f"Run: npm uninstall {' '.join(unused[:3])}",
                'Add exceptions with REPOGUARD_ALLOWED_UNUSED_DEPENDENCIES if needed',
            ],
        )
    return CheckResult.passed(name, f"All {len(declared)} dependencies appear to be used")


def _walk_tree(tree: Dict[str, Any]) -> Iterator[Tuple[str, Dict[str, Any]]]:
    """Yield (name, node) for every node below the root of an ``npm ls`` tree."""
    stack = [tree]
    while stack:
        node = stack.pop()
        children = node.get('dependencies')
        if not isinstance(children, dict):
            continue
        for name, child in children.items():
            if isinstance(child, dict):
                yield name, child
                stack.append(child)


def find_duplicates(tree: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Packages present in the tree at more than one version, sorted by name."""
    versions: Dict[str, Set[str]] = {}
    for name, node in _walk_tree(tree):
        version = node.get('version')
        if isinstance(version, str):
            versions.setdefault(name, set()).add(version)
    return [
        {'package': name, 'versions': sorted(found)}
        for name, found in sorted(versions.items())
        if len(found) > 1
    ]


def find_unmet_peers(tree: Dict[str, Any]) -> List[str]:
    """Names of peer dependencies ``npm ls`` reports as missing."""
    problems: List[str] = []
    for node in (tree, *(child for _, child in _walk_tree(tree))):
        node_problems = node.get('problems')
        if isinstance(node_problems, list):
            problems.extend(p for p in node_problems if isinstance(p, str))

    peers: Dict[str, None] = {}
    for problem in problems:
        lowered = problem.lower()
        for marker in _PEER_MARKERS:
            position = lowered.find(marker)
            if position < 0:
                continue
            match = _PACKAGE_AT_RE.search(problem, position + len(marker))
            if match:
                peers[match.group(1)] = None
            break

    # npm 6 flags the node itself
    for name, node in _walk_tree(tree):
        if node.get('peerMissing') is True:
            peers[name] = None
    return sorted(peers)


async def _load_tree(context: CheckContext) -> Dict[str, Any]:
    result = await context.dependency_tree()
    return parse_json_output(result.stdout, 'npm ls', context.settings.process_max_buffer)


@check('duplicate dependencies')
async def check_duplicate_dependencies(context: CheckContext) -> CheckResult:
    name = 'duplicate dependencies'
    if not context.settings.check_duplicate_dependencies:
        return CheckResult.skipped(name, 'Duplicate dependencies check disabled')
    if not context.has_package_json():
        return CheckResult.skipped(name, 'No package.json found')

    try:
        tree = await _load_tree(context)
    except (ProcessError, OSError, MetadataError) as e:
        logger.warning("npm ls failed", error=str(e))
        return CheckResult.from_exception(name, 'Could not check duplicate dependencies', e)

    duplicates = find_duplicates(tree)
    if duplicates:
        return CheckResult.warning(
            name,
            f"Found {len(duplicates)} packages with multiple versions",
            {'duplicates': duplicates[:MAX_REPORTED], 'total_duplicates': len(duplicates)},
            [
                "Run 'npm dedupe' to reduce duplication",
                'Use consistent version ranges in package.json',
                'Consider npm overrides for conflicting transitive versions',
            ],
        )
    return CheckResult.passed(name, 'No duplicate dependencies found')


@check('peer dependencies')
async def check_peer_dependencies(context: CheckContext) -> CheckResult:
    name = 'peer dependencies'
    if not context.settings.check_peer_dependencies:
        return CheckResult.skipped(name, 'Peer dependencies check disabled')
    if not context.has_package_json():
        return CheckResult.skipped(name, 'No package.json found')

    try:
        tree = await _load_tree(context)
    except (ProcessError, OSError, MetadataError) as e:
        return CheckResult.warning(
            name,
            'Could not check peer dependencies',
            str(e),
            ["Run 'npm ls' to inspect the dependency tree"],
        )

    missing = find_unmet_peers(tree)
    if missing:
        return CheckResult.failure(
            name,
            f"Missing {len(missing)} peer dependencies",
            missing,
            [
                'Install missing peer dependencies',
                f"Run: npm install --save-dev {' '.join(missing[:3])}",
            ],
        )
    return CheckResult.passed(name, 'All peer dependencies satisfied')


QUALITY_CHECKS = [
    check_unused_dependencies,
    check_duplicate_dependencies,
    check_peer_dependencies,
]
