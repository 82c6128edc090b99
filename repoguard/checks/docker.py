"""Docker build context checks."""

from ..models.checks import CheckResult
from ..scanner.env_files import is_ignored, read_ignore_patterns
from .base import CheckContext, check

# entry name -> whether it is a directory
DOCKERIGNORE_REQUIRED = {
    'node_modules': True,
    '.env': False,
    '.git': True,
}


@check('docker')
async def check_docker(context: CheckContext) -> CheckResult:
    if not (context.root / 'Dockerfile').is_file():
        return CheckResult.skipped('docker', 'No Dockerfile found - Docker checks skipped')

    rules = read_ignore_patterns(context.root, '.dockerignore')
    missing = [
        name for name, is_dir in DOCKERIGNORE_REQUIRED.items()
        if not is_ignored(name, rules, is_dir=is_dir)
    ]

    if missing:
        return CheckResult.warning(
            'docker',
            f".dockerignore does not exclude: {', '.join(missing)}",
            {'missing': missing, 'has_dockerignore': (context.root / '.dockerignore').is_file()},
            ['Ensure .dockerignore includes node_modules, .env, .git'],
        )
    return CheckResult.passed('docker', 'Dockerfile present and .dockerignore covers sensitive paths')


DOCKER_CHECKS = [check_docker]
