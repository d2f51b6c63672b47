"""Error taxonomy shared by the scan, authorization and deletion layers."""

from __future__ import annotations

from pathlib import Path


class MaintenanceError(Exception):
    """Base class for every error raised by tidymac."""


class AuthorizationDenied(MaintenanceError):
    """Raised when the user declines or fails administrator authentication."""

    def __init__(self, message: str = "Authentication dismissed by user") -> None:
        super().__init__(message)


class CommandExecutionFailed(MaintenanceError):
    """Raised when a privileged command could not be run or exited non-zero."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ScanPermissionDenied(MaintenanceError):
    """Raised when a path cannot be enumerated."""

    def __init__(self, path: Path | str, reason: str = "permission denied") -> None:
        super().__init__(f"{path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class DeletionFailed(MaintenanceError):
    """A single item could not be moved to the trash.

    Never leaves the executor: it is turned into a failed outcome.
    """

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class UnsafePath(DeletionFailed):
    """A path failed validation and must not be deleted."""


class ScanCancelled(MaintenanceError):
    """Raised when a scan was cancelled or superseded by a newer one."""
