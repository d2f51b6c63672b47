"""Cooperative cancellation shared between a caller and its worker threads."""

from __future__ import annotations

import threading

from tidymac.errors import ScanCancelled


class CancellationToken:
    """A one-way flag that long-running loops check at their yield points."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ScanCancelled("Operation cancelled")

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"
