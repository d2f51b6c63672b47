"""Scanning, discovery and deletion orchestration engine."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable

from tidymac.core.cancellation import CancellationToken
from tidymac.core.catalog import CategoryCatalog, default_catalog
from tidymac.core.deletion import DeletionExecutor
from tidymac.core.leftovers import LeftoverFinder
from tidymac.core.privileges import AuthorizationSession, PrivilegeBroker
from tidymac.core.scanner import ScanMode, collect_items, scan
from tidymac.errors import AuthorizationDenied, ScanCancelled, ScanPermissionDenied
from tidymac.models.category import CleanupCategory
from tidymac.models.deletion import DeletionSummary
from tidymac.models.leftover import AppIdentity, LeftoverFile
from tidymac.models.scan_result import DirInfo, ScanResult
from tidymac.settings import Settings

log = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float, float], None]  # (category_id, category_fraction, overall)
ResultCallback = Callable[[ScanResult], None]


class ProgressAggregator:
    """Combines per-task progress fractions into one overall value."""

    def __init__(self, keys: Iterable[str]) -> None:
        self._lock = threading.Lock()
        self._fractions: dict[str, float] = {key: 0.0 for key in keys}

    def update(self, key: str, fraction: float) -> float:
        """Record *fraction* for *key* and return the overall progress."""
        with self._lock:
            self._fractions[key] = min(1.0, max(0.0, fraction))
            return self._overall()

    @property
    def overall(self) -> float:
        with self._lock:
            return self._overall()

    def _overall(self) -> float:
        if not self._fractions:
            return 1.0
        return sum(self._fractions.values()) / len(self._fractions)


class MaintenanceEngine:
    """Entry point for the UI layer: scans, leftover discovery and deletion.

    Every call to :meth:`scan_all_categories` starts a new generation and
    cancels the previous one. Results from a superseded generation are never
    handed back. Deletions use their own tokens, so cancelling a scan never
    cancels a deletion, and cancelling a deletion never cancels a scan.
    """

    def __init__(
        self,
        catalog: CategoryCatalog | None = None,
        broker: PrivilegeBroker | None = None,
        executor: DeletionExecutor | None = None,
        finder: LeftoverFinder | None = None,
        settings: Settings | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.settings = settings
        self._catalog = catalog or default_catalog()
        self.broker = broker
        self.executor = executor or DeletionExecutor(self._catalog, broker=broker, home=self._catalog.home)
        self.finder = finder or LeftoverFinder(home=self._catalog.home)
        self.max_workers = max_workers or self._setting("scan.max_workers", 4)

        self._lock = threading.Lock()
        self._generation = 0
        self._scan_token = CancellationToken()

    def _setting(self, key: str, default):
        if self.settings is None:
            return default
        return self.settings.get(key, default)

    # ── catalog ──────────────────────────────────────────────────────────

    def catalog(self) -> list[CleanupCategory]:
        """All categories in display order."""
        return self._catalog.all()

    def get_category(self, category_id: str) -> CleanupCategory | None:
        return self._catalog.get(category_id)

    # ── generations ──────────────────────────────────────────────────────

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _start_generation(self) -> tuple[int, CancellationToken]:
        with self._lock:
            self._scan_token.cancel()
            self._generation += 1
            self._scan_token = CancellationToken()
            return self._generation, self._scan_token

    def cancel_scan(self) -> None:
        """Cancel every in-flight scan of the current generation."""
        with self._lock:
            self._scan_token.cancel()

    # ── scanning ─────────────────────────────────────────────────────────

    def scan_category(
        self,
        category: CleanupCategory | str,
        token: CancellationToken | None = None,
        on_progress: Callable[[float], None] | None = None,
    ) -> ScanResult:
        """Scan one category and return its items.

        Raises:
            ScanPermissionDenied: A category root exists but cannot be listed.
            ScanCancelled: *token* was cancelled.
        """
        category = self._require_category(category)
        return collect_items(
            category,
            self._catalog.resolve(category),
            token=token,
            max_depth=self._setting("scan.max_depth", 3),
            min_size=self._setting("scan.min_item_size", 1024),
            on_progress=on_progress,
        )

    def scan_all_categories(
        self,
        include_consent: bool | None = None,
        on_progress: ProgressCallback | None = None,
        on_result: ResultCallback | None = None,
    ) -> list[ScanResult]:
        """Scan every category concurrently.

        Categories that need explicit user consent are skipped unless
        *include_consent* is set. Categories finish in any order. A category
        that fails is logged and skipped; empty categories are omitted.

        Raises:
            ScanCancelled: The scan was cancelled or superseded by a newer one.
        """
        if include_consent is None:
            include_consent = self._setting("scan.include_consent_categories", False)
        categories = [c for c in self._catalog if include_consent or not c.requires_user_consent]
        generation, token = self._start_generation()
        progress = ProgressAggregator(c.id for c in categories)
        results: list[ScanResult] = []
        lock = threading.Lock()

        def _scan(category: CleanupCategory) -> None:
            def report(fraction: float) -> None:
                overall = progress.update(category.id, fraction)
                if on_progress and self.is_current(generation):
                    on_progress(category.id, fraction, overall)

            try:
                result = self.scan_category(category, token=token, on_progress=report)
            except ScanCancelled:
                log.debug("Scan of '%s' cancelled", category.id)
                return
            except ScanPermissionDenied as exc:
                log.warning("Skipping category '%s': %s", category.id, exc)
                report(1.0)
                return
            except Exception:
                log.exception("Category '%s' failed during scan", category.id)
                report(1.0)
                return

            report(1.0)
            if not result.items or not self.is_current(generation):
                return
            with lock:
                results.append(result)
            if on_result:
                on_result(result)

        if categories:
            workers = min(self.max_workers, len(categories))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [pool.submit(_scan, category) for category in categories]
                for future in futures:
                    future.result()

        if token.cancelled or not self.is_current(generation):
            log.info("Discarding results of scan generation %d", generation)
            raise ScanCancelled(f"Scan generation {generation} was cancelled or superseded")
        return results

    def quick_estimate(self, include_consent: bool = False) -> dict[str, DirInfo]:
        """Capped FAST-mode size preview for every category."""
        estimates: dict[str, DirInfo] = {}
        for category in self._catalog:
            if category.requires_user_consent and not include_consent:
                continue
            total = DirInfo()
            for root in self._catalog.resolve(category):
                info = scan(root, ScanMode.FAST)
                total.total_bytes += info.total_bytes
                total.item_count += info.item_count
                total.skipped += info.skipped
            estimates[category.id] = total
        return estimates

    def rescan_after_deletion(self, summary: DeletionSummary) -> list[ScanResult]:
        """Re-scan every category touched by *summary* and return fresh results."""
        touched: dict[str, CleanupCategory] = {}
        for outcome in summary.outcomes:
            category = self._catalog.category_for_path(outcome.path)
            if category is not None:
                touched[category.id] = category
        return [self.scan_category(category) for category in touched.values()]

    # ── leftovers ────────────────────────────────────────────────────────

    def discover_leftovers(self, identity: AppIdentity, token: CancellationToken | None = None) -> list[LeftoverFile]:
        """Find files *identity* left in the user's Library. Read-only."""
        return self.finder.discover(identity, token=token)

    # ── authorization & deletion ─────────────────────────────────────────

    def request_elevation(self) -> AuthorizationSession:
        """Obtain (or reuse) an administrator session.

        Raises:
            AuthorizationDenied: No broker is configured or the user refused.
        """
        if self.broker is None:
            raise AuthorizationDenied("Privilege escalation is not available on this system")
        return self.broker.request_elevation()

    def delete_items(
        self,
        paths: Iterable[Path | str],
        session: AuthorizationSession | None = None,
        token: CancellationToken | None = None,
    ) -> DeletionSummary:
        """Move *paths* to the trash and report every outcome."""
        return self.executor.delete(paths, session=session, token=token)

    def validate_paths(self, paths: Iterable[Path | str]) -> list[tuple[Path, str | None]]:
        """Check *paths* without deleting anything; a reason is given for each refused path."""
        return self.executor.validator.validate_batch(paths)

    def empty_trash(self) -> DeletionSummary:
        return self.executor.empty_trash()

    def _require_category(self, category: CleanupCategory | str) -> CleanupCategory:
        if isinstance(category, CleanupCategory):
            return category
        found = self._catalog.get(category)
        if found is None:
            raise KeyError(f"Unknown category '{category}'")
        return found
