"""Test and build configuration checks."""

import re
from typing import Any, Dict, List, Optional

import anyio

from ..models.checks import CheckResult
from ..scanner.walker import DirectoryWalker
from .base import CheckContext, MetadataError, check

TEST_DIRS = ('test', 'tests', 'src')
TEST_FILE_RE = re.compile(
    r"\.(?:test|spec)\.[cm]?[jt]sx?$"
    r"|^test_[^/]{1,200}\.py$"
    r"|_test\.py$",
    re.IGNORECASE,
)


def is_test_file(name: str) -> bool:
    return TEST_FILE_RE.search(name) is not None


def find_test_files(context: CheckContext) -> List[str]:
    """Collect root-relative test file paths under the usual test directories."""
    walker = DirectoryWalker(
        context.root,
        accept=is_test_file,
        max_depth=context.settings.max_walk_depth,
    )
    found: Dict[str, None] = {}
    for directory in TEST_DIRS:
        if not (context.root / directory).is_dir():
            continue
        for entry in walker.walk(directory):
            found[entry.relative] = None
    return list(found)


def _scripts(package: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    scripts = (package or {}).get('scripts')
    return scripts if isinstance(scripts, dict) else {}


@check('tests')
async def check_tests(context: CheckContext) -> CheckResult:
    if not context.settings.run_tests_check:
        return CheckResult.skipped('tests', 'Test check disabled')

    try:
        package = context.load_package_json()
    except (OSError, MetadataError) as e:
        return CheckResult.warning(
            'tests',
            'Unable to read package.json to determine test configuration',
            str(e),
            ['Ensure package.json is present and valid'],
        )

    test_script = _scripts(package).get('test')
    has_test_script = isinstance(test_script, str) and bool(test_script.strip())
    test_files = await anyio.to_thread.run_sync(find_test_files, context)

    if not has_test_script and not test_files:
        return CheckResult.warning(
            'tests',
            'No tests configured',
            suggestions=[
                'Add a "test" script to package.json',
                'Create test files such as *.test.ts, *.spec.js or test_*.py under test/, tests/ or src/',
            ],
        )

    if not test_files:
        return CheckResult.warning(
            'tests',
            'A "test" script is defined but no test files were found',
            suggestions=['Create test files with .test.ts or .spec.ts extensions'],
        )

    return CheckResult.passed(
        'tests',
        f"Tests configured ({len(test_files)} test file(s) found)",
        {'test_files': test_files[:10]},
    )


@check('build')
async def check_build(context: CheckContext) -> CheckResult:
    try:
        package = context.load_package_json()
    except (OSError, MetadataError) as e:
        return CheckResult.warning(
            'build',
            'Unable to read package.json to determine build script',
            str(e),
            ['Ensure package.json is present and valid'],
        )

    if package is None:
        return CheckResult.skipped('build', 'No package.json found')

    if _scripts(package).get('build'):
        return CheckResult.passed('build', 'Build script configured')
    return CheckResult.warning(
        'build',
        'No build script found',
        suggestions=['Add a "build" script if your project needs compilation'],
    )


TEST_CHECKS = [check_tests, check_build]
