"""Discovery of files an application leaves behind outside its bundle."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from tidymac.core.cancellation import CancellationToken
from tidymac.core.scanner import ScanMode, scan
from tidymac.errors import ScanCancelled
from tidymac.models.leftover import AppIdentity, Confidence, LeftoverFile
from tidymac.utils import home_dir, is_within

log = logging.getLogger(__name__)

# (path relative to ~/Library, category label)
SUPPORT_DIRECTORIES: tuple[tuple[str, str], ...] = (
    ("Application Support", "Application Support"),
    ("Preferences", "Preferences"),
    ("Caches", "Caches"),
    ("Containers", "Containers"),
    ("Group Containers", "Group Containers"),
    ("Logs", "Logs"),
    ("Saved Application State", "Saved State"),
    ("HTTPStorages", "HTTP Storage"),
    ("WebKit", "WebKit"),
    ("LaunchAgents", "Launch Agents"),
)


def classify(name: str, identity: AppIdentity) -> Confidence | None:
    """Classify a support-directory entry name against *identity*.

    A case-insensitive match on the bundle identifier gives HIGH. A match on
    the display name alone gives MEDIUM. Empty identifiers never match. LOW
    is not produced here.
    """
    folded = name.casefold()
    bundle_id = (identity.bundle_id or "").strip().casefold()
    if bundle_id and bundle_id in folded:
        return Confidence.HIGH
    display = identity.name.strip().casefold()
    if display and display in folded:
        return Confidence.MEDIUM
    return None


class LeftoverFinder:
    """Read-only search of the user's Library for an application's leftovers."""

    def __init__(self, home: Path | None = None) -> None:
        self.home = home

    def support_roots(self) -> list[tuple[Path, str]]:
        library = (self.home or home_dir()) / "Library"
        return [(library / rel, label) for rel, label in SUPPORT_DIRECTORIES]

    def discover(self, identity: AppIdentity, token: CancellationToken | None = None) -> list[LeftoverFile]:
        """Return leftover candidates for *identity*, ordered by root then name.

        Raises:
            ScanCancelled: *token* was cancelled.
        """
        leftovers: list[LeftoverFile] = []
        for root, label in self.support_roots():
            if token is not None:
                token.raise_if_cancelled()
            try:
                names = sorted(os.listdir(root))
            except FileNotFoundError:
                continue
            except OSError as exc:
                log.debug("Skipping unreadable support directory %s: %s", root, exc)
                continue

            for name in names:
                confidence = classify(name, identity)
                if confidence is None:
                    continue
                path = root / name
                if identity.path is not None and is_within(path, identity.path):
                    continue
                info = scan(path, ScanMode.FULL, token=token)
                if info.cancelled:
                    raise ScanCancelled(f"Leftover search for {identity.name} cancelled")
                leftovers.append(
                    LeftoverFile(path=path, category=label, size_bytes=info.total_bytes, confidence=confidence)
                )

        log.info("Found %d leftover candidates for %s", len(leftovers), identity.name)
        return leftovers
