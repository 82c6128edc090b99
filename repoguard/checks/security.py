"""Security checks: dependency audit, secrets, env files and package hygiene."""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import anyio

from ..adapters.process_runner import ProcessError
from ..logging import get_logger
from ..models.checks import CheckResult
from ..scanner.env_files import is_ignored, read_ignore_patterns
from ..scanner.secrets import SECRETS_CHECK_NAME, SecretScanner, summarize
from .base import CheckContext, MetadataError, check, parse_json_output

logger = get_logger(__name__)

AUDIT_LEVELS: Tuple[str, ...] = ('info', 'low', 'moderate', 'high', 'critical')
LOCKFILES: Tuple[str, ...] = ('package-lock.json', 'yarn.lock', 'pnpm-lock.yaml')
LIFECYCLE_SCRIPTS: Tuple[str, ...] = ('preinstall', 'install', 'postinstall', 'prepare')
LICENSE_FILES: Tuple[str, ...] = ('LICENSE', 'LICENSE.md', 'LICENSE.txt', 'LICENCE', 'LICENCE.md')
PACK_OUTPUT_LIMIT = 8000
MAX_FIX_SUGGESTIONS = 5

_VERSION_RE = re.compile(r"(\d{1,10}\.\d{1,10}\.\d{1,10})")


def _count(value: Any) -> int:
    return value if isinstance(value, int) and value > 0 else 0


def audit_fix_suggestions(audit: Dict[str, Any]) -> List[str]:
    """Upgrade commands derived from npm audit ``actions`` and ``advisories``."""
    suggestions: Dict[str, None] = {}

    actions = audit.get('actions')
    if isinstance(actions, list):
        for action in actions:
            if not isinstance(action, dict) or not action.get('module'):
                continue
            resolution = action.get('resolution')
            target = resolution.get('version') if isinstance(resolution, dict) else None
            target = target or action.get('target')
            if target:
                suggestions[f"npm install {action['module']}@{target}"] = None
            else:
                suggestions[f"npm update {action['module']}"] = None

    advisories = audit.get('advisories')
    if isinstance(advisories, dict):
        for advisory in advisories.values():
            if not isinstance(advisory, dict) or not advisory.get('module_name'):
                continue
            fix = advisory.get('fix')
            recommendation = (
                advisory.get('recommendation')
                or (fix.get('version') if isinstance(fix, dict) else None)
                or advisory.get('patched_versions')
            )
            if isinstance(recommendation, str):
                match = _VERSION_RE.search(recommendation)
                if match:
                    suggestions[f"npm install {advisory['module_name']}@{match.group(1)}"] = None

    return list(suggestions)[:MAX_FIX_SUGGESTIONS]


def evaluate_audit(audit: Dict[str, Any], audit_level: str, name: str = 'npm audit') -> CheckResult:
    """Turn parsed ``npm audit --json`` output into a check result."""
    if isinstance(audit.get('error'), dict):
        error = audit['error']
        return CheckResult.failure(
            name,
            'npm audit reported an error',
            {'code': error.get('code'), 'summary': error.get('summary')},
            ['Run npm install to create a lockfile before auditing'],
        )

    metadata = audit.get('metadata')
    vulnerabilities = metadata.get('vulnerabilities') if isinstance(metadata, dict) else None
    if not isinstance(vulnerabilities, dict):
        vulnerabilities = {}
    counts = {level: _count(vulnerabilities.get(level)) for level in AUDIT_LEVELS}
    total = sum(counts.values())

    if total == 0:
        return CheckResult.passed(name, 'No vulnerabilities found', counts)

    threshold = AUDIT_LEVELS.index(audit_level)
    failing = sum(counts[level] for level in AUDIT_LEVELS[threshold:])
    suggestions = audit_fix_suggestions(audit) or ["Run 'npm audit fix' to fix vulnerabilities"]
    message = f"Found {total} vulnerabilities"

    if failing:
        severe = counts['high'] + counts['critical'] > 0
        return CheckResult.failure(
            name, message, counts, suggestions,
            severity='critical' if severe else 'error',
        )
    return CheckResult.warning(name, message, counts, suggestions)


@check('npm audit')
async def check_npm_audit(context: CheckContext) -> CheckResult:
    if not context.has_package_json():
        return CheckResult.skipped('npm audit', 'No package.json found')

    try:
        result = await context.npm.audit(context.root)
        audit = parse_json_output(result.stdout, 'npm audit', context.settings.process_max_buffer)
    except (ProcessError, OSError, MetadataError) as e:
        logger.warning("npm audit failed", error=str(e))
        return CheckResult.from_exception(
            'npm audit',
            'Could not run npm audit',
            e,
            ['Ensure npm is installed and package.json exists'],
        )

    return evaluate_audit(audit, context.settings.audit_level)


@check(SECRETS_CHECK_NAME)
async def check_secrets(context: CheckContext) -> CheckResult:
    if not context.settings.check_secrets:
        return CheckResult.skipped(SECRETS_CHECK_NAME, 'Secrets scanning disabled')

    scanner = SecretScanner(context.root, settings=context.settings)
    matches = await scanner.scan_async()
    return summarize(matches, patterns_checked=len(scanner.patterns))


@check('env files')
async def check_env_files(context: CheckContext) -> CheckResult:
    root = context.root
    if not (root / '.env').is_file():
        return CheckResult.passed('env files', 'No .env file found')

    issues: List[str] = []
    if not is_ignored('.env', read_ignore_patterns(root)):
        issues.append('.env file not in .gitignore')
    if not (root / '.env.example').exists():
        issues.append('Missing .env.example file for documentation')

    if issues:
        return CheckResult.warning(
            'env files',
            'Environment file issues detected',
            issues,
            ['Add .env to .gitignore', 'Create .env.example with dummy values'],
        )
    return CheckResult.passed('env files', 'Environment files properly configured')


def detect_license(text: str) -> Optional[str]:
    """Identify a license from the text of a LICENSE file."""
    if 'MIT License' in text:
        return 'MIT'
    if 'Apache License' in text:
        return 'Apache-2.0'
    if 'BSD 3-Clause' in text:
        return 'BSD-3-Clause'
    if 'ISC License' in text:
        return 'ISC'
    if 'GNU General Public License' in text:
        if 'version 3' in text:
            return 'GPL-3.0'
        if 'version 2' in text:
            return 'GPL-2.0'
    return None


def evaluate_licenses(
    package_license: Optional[str],
    license_file: Optional[str],
    detected: Optional[str],
    allowed: Sequence[str],
    name: str = 'licenses',
) -> CheckResult:
    """Compare the declared and detected licenses against the allow-list."""
    if not package_license and not license_file:
        return CheckResult.failure(
            name,
            'No license found in package.json or LICENSE file',
            suggestions=[
                'Add a license field to package.json',
                'Create a LICENSE file',
            ],
        )

    disallowed = [lic for lic in (package_license, detected) if lic and lic not in allowed]
    if disallowed:
        return CheckResult.failure(
            name,
            f"Disallowed license(s) found: {', '.join(disallowed)}",
            {
                'package_json': package_license,
                'license_file': detected,
                'allowed': list(allowed),
                'disallowed': disallowed,
            },
            [f"Change to an allowed license: {', '.join(allowed)}"],
            severity='critical',
        )

    if package_license and detected and package_license != detected:
        return CheckResult.failure(
            name,
            'License compliance issues detected',
            {
                'issues': [
                    f'License mismatch: package.json says "{package_license}" '
                    f'but {license_file} appears to be "{detected}"'
                ],
                'package_json': package_license,
                'license_file': detected,
            },
            ['Use the same license identifier in package.json and the LICENSE file'],
        )

    warnings: List[str] = []
    if not package_license:
        warnings.append('Missing license field in package.json')
    if not license_file:
        warnings.append('Missing LICENSE file in repository')
    if warnings:
        return CheckResult.warning(
            name,
            'License configuration could be improved',
            {'warnings': warnings, 'package_json': package_license, 'license_file': license_file},
            [f"Fix: {w}" for w in warnings],
        )

    return CheckResult.passed(
        name,
        f"License: {package_license or detected} (allowed)",
        {'package_json': package_license, 'license_file': license_file, 'allowed': list(allowed)},
    )


def _read_license(path: Path, max_size: int) -> str:
    size = path.stat().st_size
    if size > max_size:
        raise MetadataError(f"{path.name} is too large ({size} bytes, limit {max_size})")
    return path.read_text(encoding='utf-8', errors='replace')


@check('licenses')
async def check_licenses(context: CheckContext) -> CheckResult:
    allowed = context.settings.allowed_licenses
    if not allowed:
        return CheckResult.skipped(
            'licenses',
            'License checking disabled (no allowed licenses configured)',
            ['Set REPOGUARD_ALLOWED_LICENSES, e.g. ["MIT", "Apache-2.0"]'],
        )

    try:
        package = context.load_package_json() or {}
    except (OSError, MetadataError) as e:
        return CheckResult.from_exception('licenses', 'Could not read package.json', e)

    package_license = package.get('license')
    if not isinstance(package_license, str):
        package_license = None

    license_file: Optional[str] = None
    detected: Optional[str] = None
    for filename in LICENSE_FILES:
        path = context.root / filename
        if path.is_file():
            license_file = filename
            try:
                text = await anyio.to_thread.run_sync(
                    _read_license, path, context.settings.max_json_size
                )
            except (OSError, MetadataError) as e:
                return CheckResult.from_exception('licenses', f"Could not read {filename}", e)
            detected = detect_license(text)
            break

    return evaluate_licenses(package_license, license_file, detected, allowed)


@check('publish safety')
async def check_publish_safety(context: CheckContext) -> CheckResult:
    try:
        package = context.load_package_json()
    except (OSError, MetadataError) as e:
        return CheckResult.from_exception('publish safety', 'Could not evaluate publish safety', e)

    if package is None:
        return CheckResult.skipped('publish safety', 'No package.json found')
    if package.get('private') is True:
        return CheckResult.passed('publish safety', 'Package is marked private')

    suggestions: List[str] = []
    if not package.get('files'):
        suggestions.append("Add a 'files' allowlist in package.json to control published files")
    if not package.get('name'):
        suggestions.append('Set a package name in package.json before publishing')

    details = {'name': package.get('name'), 'private': package.get('private'), 'files': package.get('files')}
    if suggestions:
        suggestions.append("Run 'npm publish --dry-run' before releasing to verify package contents")
        return CheckResult.warning(
            'publish safety', 'Publish safety checks recommend changes', details, suggestions,
        )
    return CheckResult.passed('publish safety', 'Publish settings look good', details)


@check('lockfile')
async def check_lockfile(context: CheckContext) -> CheckResult:
    found = [name for name in LOCKFILES if (context.root / name).exists()]
    if not found:
        return CheckResult.warning(
            'lockfile',
            'No lockfile found',
            {'checked': list(LOCKFILES)},
            [
                'Commit a lockfile (package-lock.json/yarn.lock/pnpm-lock.yaml)',
                "Use 'npm ci' in CI for reproducible installs",
            ],
        )
    return CheckResult.passed('lockfile', f"Lockfile present: {', '.join(found)}", {'found': found})


@check('npm scripts')
async def check_npm_scripts(context: CheckContext) -> CheckResult:
    try:
        package = context.load_package_json()
    except (OSError, MetadataError) as e:
        return CheckResult.from_exception('npm scripts', 'Could not inspect npm scripts', e)

    if package is None:
        return CheckResult.skipped('npm scripts', 'No package.json found')

    scripts = package.get('scripts')
    if not isinstance(scripts, dict):
        scripts = {}
    risky = [name for name in LIFECYCLE_SCRIPTS if scripts.get(name)]

    if risky:
        return CheckResult.warning(
            'npm scripts',
            f"Found lifecycle scripts: {', '.join(risky)}",
            {'scripts': risky},
            [
                'Avoid running untrusted scripts during install',
                'Consider using --ignore-scripts in CI or allowlist scripts',
            ],
        )
    return CheckResult.passed('npm scripts', 'No risky lifecycle scripts detected')


@check('publish dry-run')
async def check_publish_dry_run(context: CheckContext) -> CheckResult:
    if not context.settings.publish_dry_run:
        return CheckResult.skipped(
            'publish dry-run',
            'Publish dry-run disabled (set REPOGUARD_PUBLISH_DRY_RUN=true to enable)',
        )

    try:
        result = await context.npm.pack_dry_run(context.root)
    except (ProcessError, OSError) as e:
        details = getattr(e, 'stdout', '') or str(e)
        return CheckResult.warning(
            'publish dry-run',
            'Publish dry-run failed or returned warnings',
            details[:PACK_OUTPUT_LIMIT],
            ["Run 'npm pack --dry-run' locally to inspect package contents"],
        )

    # npm prints the tarball listing on stderr
    output = result.stdout + result.stderr
    return CheckResult.passed(
        'publish dry-run',
        'npm pack --dry-run completed',
        output[:PACK_OUTPUT_LIMIT],
        ['Review pack output before publishing'],
    )


def _write_report(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding='utf-8')


@check('sbom')
async def check_sbom(context: CheckContext) -> CheckResult:
    if not context.settings.generate_sbom:
        return CheckResult.skipped(
            'sbom',
            'SBOM generation disabled (set REPOGUARD_GENERATE_SBOM=true to enable)',
        )

    sbom_path = context.root / 'reports' / 'sbom-npm-ls.json'
    try:
        result = await context.dependency_tree()
        await anyio.to_thread.run_sync(_write_report, sbom_path, result.stdout)
    except (ProcessError, OSError) as e:
        return CheckResult.warning(
            'sbom',
            "Could not generate SBOM via 'npm ls'",
            (getattr(e, 'stdout', '') or str(e))[:PACK_OUTPUT_LIMIT],
            ["Run 'npm ls --all --json' manually"],
        )

    return CheckResult.passed(
        'sbom',
        "Basic SBOM generated via 'npm ls'",
        {'path': str(sbom_path)},
        ['Consider generating a CycloneDX SBOM for standards compliance'],
    )


SECURITY_CHECKS = [
    check_npm_audit,
    check_secrets,
    check_env_files,
    check_licenses,
    check_publish_safety,
    check_lockfile,
    check_npm_scripts,
    check_publish_dry_run,
    check_sbom,
]
