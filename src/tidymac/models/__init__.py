"""tidymac data models."""

from tidymac.models.category import CleanupCategory
from tidymac.models.scan_result import CleanableItem, DirInfo, ScanResult
from tidymac.models.leftover import AppIdentity, Confidence, LeftoverFile
from tidymac.models.deletion import DeletionOutcome, DeletionStatus, DeletionSummary

__all__ = [
    "AppIdentity",
    "CleanableItem",
    "CleanupCategory",
    "Confidence",
    "DeletionOutcome",
    "DeletionStatus",
    "DeletionSummary",
    "DirInfo",
    "LeftoverFile",
    "ScanResult",
]
