"""Validation of paths before anything is moved or removed.

Every path handed to the deletion executor goes through
:meth:`PathValidator.validate` first. A path is accepted only when it has no
``..`` component, is not one of the protected locations, lies strictly below
one of the allowed roots once intermediate symlinks are resolved, and, if it
is itself a symlink, points back into an allowed root.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePath
from typing import Iterable

from tidymac.core.catalog import CategoryCatalog
from tidymac.core.leftovers import SUPPORT_DIRECTORIES
from tidymac.errors import UnsafePath
from tidymac.utils import home_dir, is_within, library_dir, real_path, trash_dir

log = logging.getLogger(__name__)

PROTECTED_SYSTEM_PATHS: tuple[str, ...] = (
    "/",
    "/System",
    "/Library",
    "/Users",
    "/Applications",
    "/bin",
    "/sbin",
    "/usr",
    "/var",
    "/private",
    "/etc",
    "/tmp",
    "/cores",
    "/dev",
    "/opt",
    "/Volumes",
)

# Relative to the home directory.
PROTECTED_HOME_PATHS: tuple[str, ...] = (
    "",
    "Desktop",
    "Documents",
    "Downloads",
    "Movies",
    "Music",
    "Pictures",
    "Public",
    "Library",
)


class PathValidator:
    """Decides whether a path may be deleted.

    *allowed_roots* are directories whose descendants may be deleted. The
    roots themselves never may. *protected* paths are refused outright.
    """

    def __init__(self, allowed_roots: Iterable[Path | str], protected: Iterable[Path | str] = ()) -> None:
        self.allowed_roots = sorted({real_path(root) for root in allowed_roots})
        self.protected = frozenset(real_path(p) for p in protected)

    @classmethod
    def for_catalog(cls, catalog: CategoryCatalog, home: Path | None = None) -> PathValidator:
        """Allow the catalog's roots, the Library support directories and the trash."""
        home = home or catalog.home or home_dir()
        roots: list[Path] = [root for category in catalog for root in category.resolve_paths(home)]
        roots.extend(library_dir(home) / rel for rel, _ in SUPPORT_DIRECTORIES)
        roots.append(trash_dir(home))
        protected = [Path(p) for p in PROTECTED_SYSTEM_PATHS]
        protected.extend(home / rel if rel else home for rel in PROTECTED_HOME_PATHS)
        return cls(roots, protected)

    def validate(self, path: Path | str) -> Path:
        """Return the location *path* refers to, with intermediate symlinks resolved.

        Raises:
            UnsafePath: *path* must not be deleted. ``reason`` says why.
        """
        text = os.fspath(path)
        if not text.strip():
            raise UnsafePath(text, "invalid path")
        if not os.path.isabs(text):
            raise UnsafePath(text, "invalid path: not absolute")
        if ".." in PurePath(text).parts:
            raise UnsafePath(text, f"protected path: path traversal (..) in {text}")

        target = real_path(text)
        if target in self.protected:
            raise UnsafePath(text, f"protected path: {target}")
        if not self._allowed(target):
            raise UnsafePath(text, f"protected path: {target} is outside the cleanable locations")

        if os.path.islink(target):
            destination = Path(os.path.realpath(target))
            if destination in self.protected or not self._allowed(destination):
                raise UnsafePath(text, f"protected path: symlink points to {destination}")
        return target

    def validate_batch(self, paths: Iterable[Path | str]) -> list[tuple[Path, str | None]]:
        """Pair each path with the reason it is refused, or None when it is safe."""
        results = []
        for path in paths:
            try:
                self.validate(path)
            except UnsafePath as exc:
                log.debug("Rejected %s", exc)
                results.append((Path(path), exc.reason))
            else:
                results.append((Path(path), None))
        return results

    def _allowed(self, target: Path) -> bool:
        return any(target != root and is_within(target, root) for root in self.allowed_roots)
