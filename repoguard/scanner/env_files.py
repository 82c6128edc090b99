"""Environment file discovery and ignore-file coverage."""

import fnmatch
import os
from pathlib import Path
from typing import Iterable, List

from .path_guard import PathLike

ENV_TEMPLATE_SUFFIXES = frozenset({'example', 'sample', 'template'})


def read_ignore_patterns(root: PathLike, filename: str = '.gitignore') -> List[str]:
    """Return the rule lines of an ignore file, or [] if it cannot be read."""
    try:
        text = (Path(root) / filename).read_text(encoding='utf-8', errors='replace')
    except OSError:
        return []
    rules = []
    for line in text.splitlines():
        line = line.strip()
        if line and not line.startswith('#'):
            rules.append(line)
    return rules


def is_ignored(name: str, patterns: Iterable[str], is_dir: bool = False) -> bool:
    """Apply gitignore-style rules to a root-level entry name.

    The last matching rule wins and ``!`` rules re-include. Rules ending in
    ``/`` only cover directories; rules naming a nested path do not apply to
    root-level entries.
    """
    ignored = False
    for raw in patterns:
        negated = raw.startswith('!')
        rule = raw[1:] if negated else raw
        rule = rule.lstrip('/')
        if rule.startswith('**/'):
            rule = rule[3:]

        if rule.endswith('/'):
            if not is_dir:
                continue
            rule = rule.rstrip('/')

        if not rule or '/' in rule:
            continue

        if fnmatch.fnmatchcase(name, rule):
            ignored = not negated
    return ignored


def is_env_file(name: str) -> bool:
    """True for ``.env`` and ``.env.*`` names other than documentation templates."""
    if name == '.env':
        return True
    if not name.startswith('.env.'):
        return False
    return name.rsplit('.', 1)[-1].lower() not in ENV_TEMPLATE_SUFFIXES


def find_env_files(root: PathLike) -> List[str]:
    """List the env files at the top level of ``root``, sorted by name."""
    try:
        names = sorted(os.listdir(root))
    except OSError:
        return []
    return [name for name in names if is_env_file(name) and (Path(root) / name).is_file()]


def unignored_env_files(root: PathLike) -> List[str]:
    """Env files at the root that ``.gitignore`` does not cover."""
    rules = read_ignore_patterns(root)
    return [name for name in find_env_files(root) if not is_ignored(name, rules)]
