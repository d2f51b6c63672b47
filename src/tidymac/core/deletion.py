"""Recoverable deletion of a confirmed selection."""

from __future__ import annotations

import logging
import os
import shutil
import time
from pathlib import Path
from typing import Callable, Iterable

from send2trash import send2trash

from tidymac.core.cancellation import CancellationToken
from tidymac.core.catalog import CategoryCatalog
from tidymac.core.privileges import AuthorizationSession, PrivilegeBroker, is_root
from tidymac.core.validation import PathValidator
from tidymac.errors import AuthorizationDenied, DeletionFailed
from tidymac.models.deletion import DeletionOutcome, DeletionStatus, DeletionSummary
from tidymac.utils import home_dir, is_within, path_size, real_path, trash_dir

log = logging.getLogger(__name__)

Trasher = Callable[[str], None]

_MOVE = "/bin/mv"
_REMOVE = "/bin/rm"


def _reason(exc: OSError) -> str:
    if isinstance(exc, FileNotFoundError):
        return "no such file"
    if isinstance(exc, PermissionError):
        return f"insufficient permission: {exc.strerror or exc}"
    return exc.strerror or str(exc)


def _remove_permanently(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def _owned_by_other_user(path: Path) -> bool:
    try:
        return os.lstat(path).st_uid != os.geteuid()
    except OSError:
        return False


class DeletionExecutor:
    """Moves selected paths to the trash and reports an outcome for each.

    Every path is checked by *validator* first and refused paths fail with a
    "protected path" reason. Paths under a category that requires elevated
    access are moved by one privileged ``mv`` batch, unless the process
    already runs as root. Every other path goes through *trasher* (send2trash
    by default). Paths already in the trash are removed for good, through the
    privileged batch when another user owns them.
    One failure never stops the rest of the batch.
    """

    def __init__(
        self,
        catalog: CategoryCatalog,
        broker: PrivilegeBroker | None = None,
        trasher: Trasher | None = None,
        home: Path | None = None,
        validator: PathValidator | None = None,
    ) -> None:
        self.catalog = catalog
        self.broker = broker
        self._trash = trasher or send2trash
        self.home = home
        self._validator = validator

    @property
    def trash_dir(self) -> Path:
        return trash_dir(self.home or home_dir())

    @property
    def validator(self) -> PathValidator:
        """The configured validator, or one built from the catalog for the current home."""
        return self._validator or PathValidator.for_catalog(self.catalog, self.home)

    def delete(
        self,
        paths: Iterable[Path | str],
        session: AuthorizationSession | None = None,
        token: CancellationToken | None = None,
    ) -> DeletionSummary:
        """Delete *paths*; outcomes come back in submission order.

        *token* is checked before every item and before the privileged
        batch. Items not reached are reported as SKIPPED.
        """
        paths = [Path(p) for p in paths]
        outcomes: list[DeletionOutcome | None] = [None] * len(paths)
        privileged: list[tuple[int, Path, Path, int]] = []
        cancelled = False
        as_root = is_root()
        validator = self.validator

        for index, path in enumerate(paths):
            if token is not None and token.cancelled:
                cancelled = True
                break
            needs_root = False
            try:
                target = validator.validate(path)
                if not as_root:
                    needs_root = self.catalog.requires_elevation(target) or (
                        self._in_trash(target) and _owned_by_other_user(target)
                    )
                size = self._snapshot(target, needs_root)
            except DeletionFailed as exc:
                outcomes[index] = DeletionOutcome(path, DeletionStatus.FAILED, reason=exc.reason, privileged=needs_root)
                continue
            if needs_root:
                privileged.append((index, path, target, size))
            else:
                outcomes[index] = self._delete_one(path, target, size)

        if privileged and not cancelled and token is not None and token.cancelled:
            cancelled = True
        if privileged and not cancelled:
            batch = self._delete_privileged([(path, target, size) for _, path, target, size in privileged], session)
            for (index, _, _, _), outcome in zip(privileged, batch):
                outcomes[index] = outcome

        pending = {index for index, _, _, _ in privileged}
        summary = DeletionSummary(cancelled=cancelled)
        for index, (path, outcome) in enumerate(zip(paths, outcomes)):
            if outcome is None:
                outcome = DeletionOutcome(path, DeletionStatus.SKIPPED, privileged=index in pending)
            summary.outcomes.append(outcome)

        log.info("Deletion finished: %s", summary.describe())
        return summary

    def empty_trash(self, token: CancellationToken | None = None) -> DeletionSummary:
        """Permanently remove everything in the user's trash."""
        trash = self.trash_dir
        try:
            children = sorted(trash.iterdir())
        except FileNotFoundError:
            return DeletionSummary()
        except OSError as exc:
            log.warning("Cannot read trash %s: %s", trash, exc)
            return DeletionSummary(
                outcomes=[DeletionOutcome(trash, DeletionStatus.FAILED, reason=_reason(exc))]
            )
        return self.delete(children, token=token)

    def _in_trash(self, target: Path) -> bool:
        trash = real_path(self.trash_dir)
        return target != trash and is_within(target, trash)

    def _snapshot(self, path: Path, needs_root: bool) -> int:
        try:
            return path_size(path)
        except FileNotFoundError:
            raise DeletionFailed(path, "no such file")
        except OSError as exc:
            if needs_root:
                return 0
            raise DeletionFailed(path, _reason(exc))

    def _delete_one(self, path: Path, target: Path, size: int) -> DeletionOutcome:
        try:
            if self._in_trash(target):
                _remove_permanently(target)
            else:
                self._trash(str(target))
        except OSError as exc:
            log.debug("Failed to delete %s: %s", target, exc)
            return DeletionOutcome(path, DeletionStatus.FAILED, size, reason=_reason(exc))
        return DeletionOutcome(path, DeletionStatus.SUCCEEDED, size)

    def _delete_privileged(
        self,
        items: list[tuple[Path, Path, int]],
        session: AuthorizationSession | None,
    ) -> list[DeletionOutcome]:
        def fail_all(reason: str) -> list[DeletionOutcome]:
            return [
                DeletionOutcome(path, DeletionStatus.FAILED, size, reason=reason, privileged=True)
                for path, _, size in items
            ]

        if self.broker is None:
            return fail_all("insufficient permission: administrator rights required")

        try:
            if session is None or not session.is_valid:
                session = self.broker.request_elevation()
            commands = []
            reserved: set[Path] = set()
            for _, target, _ in items:
                if self._in_trash(target):
                    commands.append((_REMOVE, ["-rf", "--", str(target)]))
                else:
                    dest = self._trash_destination(target, reserved)
                    commands.append((_MOVE, ["-f", "--", str(target), str(dest)]))
            self.trash_dir.mkdir(parents=True, exist_ok=True)
            results = self.broker.run_privileged_batch(session, commands)
        except AuthorizationDenied as exc:
            log.warning("Privilege escalation failed: %s", exc)
            return fail_all("insufficient permission: authorization denied")
        except OSError as exc:
            return fail_all(f"cannot prepare trash: {_reason(exc)}")

        outcomes = []
        for (path, _, size), result in zip(items, results):
            if result.ok:
                outcomes.append(DeletionOutcome(path, DeletionStatus.SUCCEEDED, size, privileged=True))
            else:
                outcomes.append(
                    DeletionOutcome(path, DeletionStatus.FAILED, size, reason=result.reason, privileged=True)
                )
        return outcomes

    def _trash_destination(self, path: Path, reserved: set[Path]) -> Path:
        """Pick a name in the trash that is neither taken nor already planned."""
        trash = self.trash_dir
        candidate = trash / path.name
        if candidate.exists() or candidate in reserved:
            stamp = time.strftime("%H.%M.%S")
            candidate = trash / f"{path.stem} {stamp}{path.suffix}"
            counter = 2
            while candidate.exists() or candidate in reserved:
                candidate = trash / f"{path.stem} {stamp} {counter}{path.suffix}"
                counter += 1
        reserved.add(candidate)
        return candidate
