"""Scan result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from tidymac.models.category import CleanupCategory


@dataclass(slots=True)
class DirInfo:
    """Aggregate size of a directory walk.

    A ``cancelled`` result holds a partial total and is not authoritative.
    ``skipped`` counts entries that could not be read.
    """

    total_bytes: int = 0
    item_count: int = 0
    cancelled: bool = False
    skipped: int = 0


@dataclass(slots=True)
class CleanableItem:
    """Single file or directory that can be cleaned."""

    path: Path
    name: str
    size_bytes: int
    category: CleanupCategory
    modified: datetime | None = None
    is_selected: bool = True

    def __post_init__(self) -> None:
        if self.size_bytes < 0:
            raise ValueError(f"Negative size for {self.path}: {self.size_bytes}")


@dataclass(slots=True)
class ScanResult:
    """Items found for one cleanup category.

    Only selection flags change after a scan. A new scan replaces the
    result entirely.
    """

    category: CleanupCategory
    items: list[CleanableItem] = field(default_factory=list)
    is_selected: bool = True
    skipped: int = 0

    @property
    def total_bytes(self) -> int:
        return sum(item.size_bytes for item in self.items)

    @property
    def selected_bytes(self) -> int:
        return sum(item.size_bytes for item in self.items if item.is_selected)

    @property
    def item_count(self) -> int:
        return len(self.items)

    def selected_paths(self) -> list[Path]:
        if not self.is_selected:
            return []
        return [item.path for item in self.items if item.is_selected]

    def set_selected(self, selected: bool) -> None:
        """Toggle the category and all of its items."""
        self.is_selected = selected
        for item in self.items:
            item.is_selected = selected
