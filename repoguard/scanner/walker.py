"""Bounded, cycle-safe directory traversal."""

import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, FrozenSet, Iterable, Iterator, Optional, Set, Tuple, Union

from ..config import get_settings
from ..logging import get_logger
from .path_guard import PathLike, is_contained

logger = get_logger(__name__)

FileFilter = Callable[[str], bool]
DirectoryId = Tuple[int, int]

DEFAULT_EXCLUDED_DIRS: FrozenSet[str] = frozenset({"node_modules"})


@dataclass(frozen=True, slots=True)
class FileEntry:
    """A regular file found during a walk."""

    path: Path
    relative: str
    size: int


def extension_filter(*suffixes: str) -> FileFilter:
    """Accept file names ending in one of ``suffixes`` (case-insensitive)."""
    lowered = tuple(s.lower() for s in suffixes)

    def accept(name: str) -> bool:
        return name.lower().endswith(lowered)

    return accept


def _accept_all(name: str) -> bool:
    return True


def _directory_id(path: Path) -> Optional[DirectoryId]:
    """Physical identity of a directory, or None if it is not a real directory."""
    try:
        info = os.stat(path, follow_symlinks=False)
    except OSError:
        return None
    if not stat.S_ISDIR(info.st_mode):
        return None
    return info.st_dev, info.st_ino


def _within(candidate: Path, prefix: Path) -> bool:
    return candidate == prefix or prefix in candidate.parents


class DirectoryWalker:
    """Lazily yields the regular files under a project root.

    Dot entries, symbolic links and ``exclude_dir_names`` directories are
    never entered; directories deeper than ``max_depth`` below the start of a
    walk are skipped with a warning, and so is any directory whose physical
    identity is already on the current descent path. Unreadable entries are
    skipped silently.
    """

    def __init__(
        self,
        root: PathLike,
        *,
        accept: Optional[FileFilter] = None,
        max_depth: Optional[int] = None,
        exclude_prefixes: Iterable[PathLike] = (),
        exclude_dir_names: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
    ):
        # Only the root itself may be a link; entries below it are never followed
        self.root = Path(root).resolve()
        self.accept = accept or _accept_all
        self.max_depth = get_settings().max_walk_depth if max_depth is None else max_depth
        self.exclude_prefixes = tuple(self._absolute(p) for p in exclude_prefixes)
        self.exclude_dir_names = frozenset(exclude_dir_names)

    def _absolute(self, path: PathLike) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        return Path(os.path.abspath(candidate))

    def _is_excluded(self, path: Path) -> bool:
        return any(_within(path, prefix) for prefix in self.exclude_prefixes)

    def __iter__(self) -> Iterator[FileEntry]:
        return self.walk()

    def walk(self, start: Union[PathLike, None] = None) -> Iterator[FileEntry]:
        """Walk from ``start`` (default: the root); relative paths stay root-relative."""
        start_dir = self.root if start is None else self._absolute(start)
        visited: Set[DirectoryId] = set()
        return self._walk_dir(start_dir, 0, visited)

    def _walk_dir(self, directory: Path, depth: int, visited: Set[DirectoryId]) -> Iterator[FileEntry]:
        if depth > self.max_depth:
            logger.warning(
                "walker.depth_limit",
                directory=self._relative(directory),
                max_depth=self.max_depth,
            )
            return
        if self._is_excluded(directory):
            return
        if not is_contained(directory, self.root):
            logger.warning("walker.outside_root", directory=str(directory))
            return

        dir_id = _directory_id(directory)
        if dir_id is None:
            return
        if dir_id in visited:
            logger.warning("walker.cycle_detected", directory=self._relative(directory))
            return

        visited.add(dir_id)
        try:
            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                logger.debug("walker.unreadable", directory=self._relative(directory), error=str(e))
                return

            for entry in entries:
                if entry.name.startswith("."):
                    continue

                try:
                    if entry.is_symlink():
                        continue
                    is_dir = entry.is_dir(follow_symlinks=False)
                    is_file = not is_dir and entry.is_file(follow_symlinks=False)
                except OSError:
                    continue

                if is_dir:
                    if entry.name in self.exclude_dir_names:
                        continue
                    yield from self._walk_dir(Path(entry.path), depth + 1, visited)
                elif is_file and self.accept(entry.name):
                    path = Path(entry.path)
                    if self._is_excluded(path):
                        continue
                    try:
                        size = entry.stat(follow_symlinks=False).st_size
                    except OSError:
                        continue
                    yield FileEntry(path=path, relative=self._relative(path), size=size)
        finally:
            # Only the current descent path counts as a cycle
            visited.discard(dir_id)

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix() or "."
        except ValueError:
            return str(path)
