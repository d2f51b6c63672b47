"""Application identity and leftover file dataclasses."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path


class Confidence(enum.Enum):
    """How certain it is that a leftover belongs to an application.

    HIGH: the name contains the bundle identifier.
    MEDIUM: the name contains only the display name.
    LOW: kept for pattern-based matchers; no current rule produces it.
    """

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class AppIdentity:
    """An installed application to look for leftovers of.

    ``size_bytes`` is None until the install size has been computed.
    """

    bundle_id: str | None
    name: str
    path: Path | None = None
    size_bytes: int | None = None


@dataclass(slots=True)
class LeftoverFile:
    """Candidate leftover artifact. Confidence never changes after discovery."""

    path: Path
    category: str
    size_bytes: int
    confidence: Confidence
    is_selected: bool = True

    @property
    def name(self) -> str:
        return self.path.name
