"""Path containment checks for project traversal."""

import os
from pathlib import Path
from typing import Union

PathLike = Union[str, "os.PathLike[str]"]


def _within(candidate: Path, root: Path) -> bool:
    return candidate == root or root in candidate.parents


def is_contained(path: PathLike, root: PathLike) -> bool:
    """Return True if ``path`` stays inside ``root``.

    The path is checked twice: lexically (``..`` collapsed, nothing followed)
    and after resolving links on disk. Both forms must lie under the matching
    form of the root, compared by path component rather than string prefix.
    Never raises; an unresolvable path is treated as outside.
    """
    try:
        lexical_root = Path(os.path.abspath(root))
        lexical_path = Path(os.path.abspath(path))
        if not _within(lexical_path, lexical_root):
            return False
        return _within(Path(path).resolve(), Path(root).resolve())
    except (OSError, RuntimeError, ValueError, TypeError):
        return False
