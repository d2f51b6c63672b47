"""Shared utility functions."""

from __future__ import annotations

import os
import stat
from pathlib import Path

# Directory suffixes that Finder presents as a single opaque item.
PACKAGE_SUFFIXES = frozenset({
    ".app",
    ".appex",
    ".bundle",
    ".framework",
    ".kext",
    ".photoslibrary",
    ".pkg",
    ".plugin",
    ".prefPane",
    ".qlgenerator",
    ".saver",
    ".xcarchive",
})


def home_dir() -> Path:
    """Return the current user's home directory, honouring $HOME."""
    return Path(os.environ.get("HOME") or Path.home())


def library_dir(home: Path | None = None) -> Path:
    """Return ~/Library."""
    return (home or home_dir()) / "Library"


def trash_dir(home: Path | None = None) -> Path:
    """Return the per-user trash (~/.Trash)."""
    return (home or home_dir()) / ".Trash"


def config_home() -> Path:
    """Return the directory holding tidymac's settings."""
    override = os.environ.get("TIDYMAC_CONFIG_HOME")
    if override:
        return Path(override)
    return library_dir() / "Application Support" / "tidymac"


def is_hidden(name: str) -> bool:
    return name.startswith(".")


def is_package(name: str) -> bool:
    """Check whether a directory name looks like a bundle/package."""
    return os.path.splitext(name)[1] in PACKAGE_SUFFIXES


def normalize_path(path: Path | str) -> Path:
    """Absolute form of *path* with ``.`` and ``..`` collapsed. No filesystem access."""
    return Path(os.path.normpath(os.path.abspath(os.fspath(path))))


def real_path(path: Path | str) -> Path:
    """Resolve symlinks in every component of *path* except the last one."""
    path = normalize_path(path)
    if path.name == "":
        return path
    return Path(os.path.realpath(path.parent)) / path.name


def is_within(path: Path | str, root: Path | str) -> bool:
    """Check if *path* is *root* or lies below it, after normalizing both."""
    try:
        normalize_path(path).relative_to(normalize_path(root))
    except ValueError:
        return False
    return True


def allocated_size(st: os.stat_result) -> int:
    """Size on disk of a stat result, falling back to the logical size."""
    blocks = getattr(st, "st_blocks", None)
    if blocks is not None and stat.S_ISREG(st.st_mode) and blocks > 0:
        return blocks * 512
    return max(st.st_size, 0)


def path_size(path: Path) -> int:
    """Snapshot the size of a file or directory tree (allocated when available)."""
    from tidymac.core.scanner import ScanMode, scan

    st = path.lstat()
    if stat.S_ISDIR(st.st_mode):
        return scan(path, ScanMode.FULL).total_bytes
    return allocated_size(st)


def bytes_to_human(size_bytes: int) -> str:
    """Convert byte count to a human-readable string."""
    if size_bytes < 0:
        return f"-{bytes_to_human(-size_bytes)}"
    if size_bytes == 0:
        return "0 B"

    units = ("B", "KB", "MB", "GB", "TB")
    value = float(size_bytes)
    for unit in units[:-1]:
        if abs(value) < 1024:
            return f"{value:.1f} {unit}" if unit != "B" else f"{int(value)} B"
        value /= 1024
    return f"{value:.1f} {units[-1]}"


def format_elapsed(seconds: float) -> str:
    """Format an elapsed time as a human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds) // 60
    secs = seconds - minutes * 60
    return f"{minutes}m {secs:.0f}s"
