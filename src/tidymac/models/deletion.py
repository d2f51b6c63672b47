"""Deletion outcome dataclasses."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path


class DeletionStatus(enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # not attempted, the batch was cancelled first


@dataclass(slots=True)
class DeletionOutcome:
    """Result for one requested path. ``size_bytes`` is the pre-deletion snapshot."""

    path: Path
    status: DeletionStatus
    size_bytes: int = 0
    reason: str = ""
    privileged: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status is DeletionStatus.SUCCEEDED


@dataclass(slots=True)
class DeletionSummary:
    """Outcomes of one deletion batch, in submission order."""

    outcomes: list[DeletionOutcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.status is DeletionStatus.SUCCEEDED)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status is DeletionStatus.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status is DeletionStatus.SKIPPED)

    @property
    def bytes_freed(self) -> int:
        return sum(o.size_bytes for o in self.outcomes if o.status is DeletionStatus.SUCCEEDED)

    @property
    def failures(self) -> list[tuple[Path, str]]:
        return [(o.path, o.reason) for o in self.outcomes if o.status is DeletionStatus.FAILED]

    @property
    def failed_paths(self) -> list[Path]:
        return [o.path for o in self.outcomes if o.status is DeletionStatus.FAILED]

    @property
    def kind(self) -> str:
        """'empty', 'complete', 'partial' or 'failed'."""
        if not self.outcomes:
            return "empty"
        if self.succeeded == len(self.outcomes):
            return "complete"
        if self.succeeded == 0:
            return "failed"
        return "partial"

    def describe(self) -> str:
        """Human-readable summary, e.g. '12 of 15 items removed, 3 require permission'."""
        total = len(self.outcomes)
        if total == 0:
            return "Nothing to remove"
        parts = [f"{self.succeeded} of {total} items removed"]
        permission = sum(
            1 for o in self.outcomes
            if o.status is DeletionStatus.FAILED and "permission" in o.reason.lower()
        )
        other = self.failed - permission
        if permission:
            parts.append(f"{permission} require permission")
        if other:
            parts.append(f"{other} failed")
        if self.skipped:
            parts.append(f"{self.skipped} skipped")
        return ", ".join(parts)
