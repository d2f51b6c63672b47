"""Bounded, cooperatively yielding filesystem walks.

Two walks live here. :func:`scan` aggregates size and file count under a
path. :func:`collect_items` lists the cleanable items of one category. Both
stop at a fixed cadence to give other threads a turn and to check their
cancellation token, so a long walk never starves concurrent scans.
"""

from __future__ import annotations

import enum
import logging
import os
import stat
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable

from tidymac.core.cancellation import CancellationToken
from tidymac.errors import ScanCancelled, ScanPermissionDenied
from tidymac.models.category import CleanupCategory
from tidymac.models.scan_result import CleanableItem, DirInfo, ScanResult
from tidymac.utils import allocated_size, is_hidden, is_package

log = logging.getLogger(__name__)

FAST_ITEM_LIMIT = 500
DEFAULT_MAX_DEPTH = 3
MIN_ITEM_SIZE = 1024

CheckpointCallback = Callable[[DirInfo], None]
ProgressCallback = Callable[[float], None]


class ScanMode(enum.Enum):
    """FAST caps the file count and skips packages; FULL only skips hidden entries."""

    FAST = "fast"
    FULL = "full"


_YIELD_EVERY = {ScanMode.FAST: 50, ScanMode.FULL: 100}


def _yield_thread() -> None:
    """Let other threads run; the cooperative yield point of every walk."""
    time.sleep(0)


def scan(
    path: Path | str,
    mode: ScanMode = ScanMode.FULL,
    token: CancellationToken | None = None,
    on_checkpoint: CheckpointCallback | None = None,
    yield_every: int | None = None,
) -> DirInfo:
    """Aggregate the size and file count under *path*.

    Unreadable entries are skipped and counted in ``DirInfo.skipped``. Every
    *yield_every* entries the walk calls *on_checkpoint* with the running
    totals, yields, and checks *token*. A cancelled walk returns the totals
    of exactly the files processed so far, with ``cancelled=True``.

    Returns:
        DirInfo with allocated sizes (logical size where blocks are unknown).
    """
    info = DirInfo()
    every = max(1, yield_every or _YIELD_EVERY[mode])
    limit = FAST_ITEM_LIMIT if mode is ScanMode.FAST else None

    try:
        root_stat = os.lstat(path)
    except OSError as exc:
        log.debug("Cannot stat %s: %s", path, exc)
        info.skipped += 1
        return info
    if not stat.S_ISDIR(root_stat.st_mode):
        if stat.S_ISREG(root_stat.st_mode):
            info.total_bytes = allocated_size(root_stat)
            info.item_count = 1
        return info

    visited = 0
    stack: list[str] = [os.fspath(path)]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                for entry in it:
                    if is_hidden(entry.name):
                        continue
                    try:
                        if entry.is_file(follow_symlinks=False):
                            info.total_bytes += allocated_size(entry.stat(follow_symlinks=False))
                            info.item_count += 1
                        elif entry.is_dir(follow_symlinks=False):
                            if not (mode is ScanMode.FAST and is_package(entry.name)):
                                stack.append(entry.path)
                    except OSError as exc:
                        log.debug("%s", ScanPermissionDenied(entry.path, str(exc)))
                        info.skipped += 1

                    if limit is not None and info.item_count >= limit:
                        return info

                    visited += 1
                    if visited % every == 0:
                        if on_checkpoint:
                            on_checkpoint(info)
                        _yield_thread()
                        if token is not None and token.cancelled:
                            info.cancelled = True
                            return info
        except OSError as exc:
            log.debug("%s", ScanPermissionDenied(current, str(exc)))
            info.skipped += 1

    return info


def _modified(st: os.stat_result) -> datetime | None:
    try:
        return datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


class _ItemWalker:
    """Depth-bounded walk turning files into CleanableItems.

    Directories at the depth limit, and packages at any depth, become one
    item sized with a FULL scan.
    """

    def __init__(
        self,
        category: CleanupCategory,
        token: CancellationToken | None,
        max_depth: int,
        min_size: int,
        yield_every: int,
    ) -> None:
        self.category = category
        self.token = token
        self.max_depth = max(1, max_depth)
        self.min_size = min_size
        self.yield_every = max(1, yield_every)
        self.items: list[CleanableItem] = []
        self.skipped = 0
        self._visited = 0

    def walk_root(self, root: Path) -> None:
        try:
            entries = sorted(os.scandir(root), key=lambda e: e.name)
        except FileNotFoundError:
            return
        except NotADirectoryError:
            st = root.lstat()
            if stat.S_ISREG(st.st_mode):
                self._add(root, allocated_size(st), _modified(st))
            return
        except OSError as exc:
            raise ScanPermissionDenied(root, str(exc)) from exc
        self._walk_entries(entries, depth=1)

    def _walk_dir(self, path: str, depth: int) -> None:
        try:
            entries = sorted(os.scandir(path), key=lambda e: e.name)
        except OSError as exc:
            log.debug("%s", ScanPermissionDenied(path, str(exc)))
            self.skipped += 1
            return
        self._walk_entries(entries, depth)

    def _walk_entries(self, entries: Iterable[os.DirEntry], depth: int) -> None:
        for entry in entries:
            self._checkpoint()
            if is_hidden(entry.name):
                continue
            try:
                if entry.is_dir(follow_symlinks=False):
                    if depth >= self.max_depth or is_package(entry.name):
                        self._add_collapsed(entry)
                    else:
                        self._walk_dir(entry.path, depth + 1)
                elif entry.is_file(follow_symlinks=False):
                    st = entry.stat(follow_symlinks=False)
                    self._add(Path(entry.path), allocated_size(st), _modified(st))
            except OSError as exc:
                log.debug("%s", ScanPermissionDenied(entry.path, str(exc)))
                self.skipped += 1

    def _add_collapsed(self, entry: os.DirEntry) -> None:
        info = scan(entry.path, ScanMode.FULL, token=self.token)
        if info.cancelled:
            raise ScanCancelled(f"Scan of {self.category.id} cancelled")
        self.skipped += info.skipped
        self._add(Path(entry.path), info.total_bytes, _modified(entry.stat(follow_symlinks=False)))

    def _add(self, path: Path, size: int, modified: datetime | None) -> None:
        if size < self.min_size:
            return
        self.items.append(
            CleanableItem(
                path=path,
                name=path.name,
                size_bytes=size,
                category=self.category,
                modified=modified,
            )
        )

    def _checkpoint(self) -> None:
        self._visited += 1
        if self._visited % self.yield_every == 0:
            _yield_thread()
        if self.token is not None:
            self.token.raise_if_cancelled()


def collect_items(
    category: CleanupCategory,
    roots: Iterable[Path],
    token: CancellationToken | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
    min_size: int = MIN_ITEM_SIZE,
    on_progress: ProgressCallback | None = None,
    yield_every: int = _YIELD_EVERY[ScanMode.FULL],
) -> ScanResult:
    """List the cleanable items under a category's roots.

    Missing roots are skipped. *on_progress* gets the fraction of roots done.

    Raises:
        ScanPermissionDenied: An existing root could not be listed at all.
        ScanCancelled: *token* was cancelled during the walk.
    """
    roots = list(roots)
    walker = _ItemWalker(category, token, max_depth, min_size, yield_every)
    for index, root in enumerate(roots, 1):
        if token is not None:
            token.raise_if_cancelled()
        walker.walk_root(root)
        if on_progress:
            on_progress(index / len(roots))

    return ScanResult(category=category, items=walker.items, skipped=walker.skipped)
