"""Cleanup category dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CleanupCategory:
    """A named group of filesystem locations that are safe to offer for deletion.

    Path templates may start with ``~`` or contain ``{home}``; both expand to
    the current user's home directory. Expansion is pure string substitution,
    nothing is checked on disk.
    """

    id: str
    name: str
    description: str
    icon: str
    path_templates: tuple[str, ...]
    requires_elevated_access: bool = False
    requires_full_disk_access: bool = False
    requires_user_consent: bool = False
    sort_order: int = 50

    def resolve_paths(self, home: Path | str) -> list[Path]:
        """Expand every path template against *home*."""
        home_str = str(home).rstrip("/") or "/"
        resolved = []
        for template in self.path_templates:
            if template == "~":
                expanded = home_str
            elif template.startswith("~/"):
                expanded = home_str.rstrip("/") + template[1:]
            else:
                expanded = template.replace("{home}", home_str.rstrip("/"))
            resolved.append(Path(expanded))
        return resolved
