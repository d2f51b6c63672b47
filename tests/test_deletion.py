"""Tests for the deletion executor."""

from __future__ import annotations

import os
import shlex
from pathlib import Path

import pytest

from conftest import FakeBackend, make_file
from tidymac.core.cancellation import CancellationToken
from tidymac.core.deletion import DeletionExecutor
from tidymac.core.privileges import PrivilegeBroker
from tidymac.core.validation import PathValidator
from tidymac.models.deletion import DeletionStatus
from tidymac.utils import path_size


@pytest.fixture
def caches(fake_home):
    return fake_home / "Library" / "Caches"


def _files(root, count, size=8192):
    return [make_file(root / f"item{i}.bin", size) for i in range(count)]


class TestUnprivilegedDeletion:
    def test_all_succeed(self, catalog, caches, trasher):
        paths = _files(caches, 3)
        sizes = [path_size(p) for p in paths]

        summary = DeletionExecutor(catalog, trasher=trasher).delete(paths)

        assert summary.kind == "complete"
        assert summary.succeeded == 3
        assert summary.bytes_freed == sum(sizes)
        assert trasher.calls == [str(p) for p in paths]
        assert not any(p.exists() for p in paths)

    def test_one_failure_does_not_stop_batch(self, catalog, caches, trasher):
        paths = _files(caches, 5)
        sizes = [path_size(p) for p in paths]
        trasher.fail.add(paths[2].name)

        summary = DeletionExecutor(catalog, trasher=trasher).delete(paths)

        assert summary.succeeded == 4
        assert summary.failed == 1
        assert summary.kind == "partial"
        assert summary.bytes_freed == sum(sizes) - sizes[2]
        assert summary.failed_paths == [paths[2]]
        assert [o.path for o in summary.outcomes] == paths
        assert summary.outcomes[2].reason.startswith("insufficient permission")
        assert paths[2].exists()
        assert summary.describe() == "4 of 5 items removed, 1 require permission"

    def test_missing_path_fails_without_trashing(self, catalog, caches, trasher):
        present = make_file(caches / "present.bin")
        missing = caches / "missing.bin"

        summary = DeletionExecutor(catalog, trasher=trasher).delete([missing, present])

        assert [o.status for o in summary.outcomes] == [DeletionStatus.FAILED, DeletionStatus.SUCCEEDED]
        assert summary.outcomes[0].reason == "no such file"
        assert trasher.calls == [str(present)]

    def test_directory_size_snapshot(self, catalog, caches, trasher):
        folder = caches / "com.example.App"
        _files(folder, 3)
        size = path_size(folder)

        summary = DeletionExecutor(catalog, trasher=trasher).delete([folder])

        assert summary.outcomes[0].size_bytes == size
        assert not folder.exists()

    def test_cancel_marks_rest_skipped(self, catalog, caches, trasher):
        paths = _files(caches, 4)
        token = CancellationToken()

        def trash_then_cancel(path):
            trasher(path)
            if len(trasher.calls) == 2:
                token.cancel()

        summary = DeletionExecutor(catalog, trasher=trash_then_cancel).delete(paths, token=token)

        assert summary.cancelled
        assert [o.status for o in summary.outcomes] == [
            DeletionStatus.SUCCEEDED,
            DeletionStatus.SUCCEEDED,
            DeletionStatus.SKIPPED,
            DeletionStatus.SKIPPED,
        ]
        assert paths[2].exists() and paths[3].exists()
        assert summary.describe() == "2 of 4 items removed, 2 skipped"

    def test_empty_request(self, catalog, trasher):
        summary = DeletionExecutor(catalog, trasher=trasher).delete([])
        assert summary.kind == "empty"
        assert summary.describe() == "Nothing to remove"


class TestPrivilegedDeletion:
    @pytest.fixture(autouse=True)
    def _not_root(self, monkeypatch):
        monkeypatch.setattr("tidymac.core.deletion.is_root", lambda: False)

    def test_batch_moves_to_trash(self, catalog, caches, system_root, trasher, fake_home):
        user = make_file(caches / "user.bin")
        system = [make_file(system_root / "a.bin"), make_file(system_root / "b c.bin")]
        backend = FakeBackend()
        broker = PrivilegeBroker(backend)

        summary = DeletionExecutor(catalog, broker=broker, trasher=trasher).delete([system[0], user, system[1]])

        assert summary.succeeded == 3
        assert [o.privileged for o in summary.outcomes] == [True, False, True]
        assert trasher.calls == [str(user)]
        assert backend.auth_calls == 1
        assert len(backend.scripts) == 1
        script = backend.scripts[0]
        assert f"/bin/mv -f -- {system[0]} {fake_home / '.Trash' / 'a.bin'}" in script
        assert f"'{system[1]}'" in script
        assert (fake_home / ".Trash").is_dir()

    def test_privileged_failure_per_item(self, catalog, system_root, trasher):
        paths = [make_file(system_root / f"s{i}.bin") for i in range(3)]
        broker = PrivilegeBroker(FakeBackend(fail_indices={1}))

        summary = DeletionExecutor(catalog, broker=broker, trasher=trasher).delete(paths)

        assert [o.status for o in summary.outcomes] == [
            DeletionStatus.SUCCEEDED,
            DeletionStatus.FAILED,
            DeletionStatus.SUCCEEDED,
        ]
        assert "exited with status 1" in summary.outcomes[1].reason

    def test_authorization_denied_fails_privileged_items_only(self, catalog, caches, system_root, trasher):
        user = make_file(caches / "user.bin")
        system = make_file(system_root / "root.bin")
        broker = PrivilegeBroker(FakeBackend(deny=True))

        summary = DeletionExecutor(catalog, broker=broker, trasher=trasher).delete([user, system])

        assert summary.outcomes[0].succeeded
        assert summary.outcomes[1].status is DeletionStatus.FAILED
        assert summary.outcomes[1].reason == "insufficient permission: authorization denied"
        assert system.exists()
        assert summary.describe() == "1 of 2 items removed, 1 require permission"

    def test_no_broker(self, catalog, system_root, trasher):
        system = make_file(system_root / "root.bin")

        summary = DeletionExecutor(catalog, trasher=trasher).delete([system])

        assert summary.failed == 1
        assert "administrator rights required" in summary.outcomes[0].reason
        assert trasher.calls == []

    def test_reuses_given_session(self, catalog, system_root, trasher):
        backend = FakeBackend()
        broker = PrivilegeBroker(backend)
        session = broker.request_elevation()
        executor = DeletionExecutor(catalog, broker=broker, trasher=trasher)

        executor.delete([make_file(system_root / "one.bin")], session=session)
        executor.delete([make_file(system_root / "two.bin")], session=session)

        assert backend.auth_calls == 1
        assert session.commands and len(session.commands) == 2

    def test_trash_name_collisions(self, catalog, system_root, trasher, fake_home):
        trash = fake_home / ".Trash"
        make_file(trash / "dup.bin")
        first = make_file(system_root / "x" / "dup.bin")
        second = make_file(system_root / "y" / "dup.bin")
        backend = FakeBackend()

        DeletionExecutor(catalog, broker=PrivilegeBroker(backend), trasher=trasher).delete([first, second])

        destinations = [
            shlex.split(line)[-1] for line in backend.scripts[0].split("; ") if line.startswith("/bin/mv")
        ]
        assert len(destinations) == 2
        assert len(set(destinations)) == 2
        assert str(trash / "dup.bin") not in destinations

    def test_root_process_skips_broker(self, catalog, system_root, trasher, monkeypatch):
        monkeypatch.setattr("tidymac.core.deletion.is_root", lambda: True)
        system = make_file(system_root / "root.bin")
        backend = FakeBackend()

        summary = DeletionExecutor(catalog, broker=PrivilegeBroker(backend), trasher=trasher).delete([system])

        assert summary.succeeded == 1
        assert not summary.outcomes[0].privileged
        assert trasher.calls == [str(system)]
        assert backend.auth_calls == 0


class TestEmptyTrash:
    def test_removes_permanently(self, catalog, fake_home, trasher):
        trash = fake_home / ".Trash"
        files = [make_file(trash / "old.bin"), make_file(trash / "folder" / "nested.bin")]
        sizes = [path_size(files[0]), path_size(trash / "folder")]

        summary = DeletionExecutor(catalog, trasher=trasher).empty_trash()

        assert summary.succeeded == 2
        assert summary.bytes_freed == sum(sizes)
        assert trasher.calls == []
        assert list(trash.iterdir()) == []

    def test_missing_trash(self, catalog, trasher):
        assert DeletionExecutor(catalog, trasher=trasher).empty_trash().kind == "empty"


class TestUnsafePaths:
    @pytest.fixture(autouse=True)
    def _not_root(self, monkeypatch):
        monkeypatch.setattr("tidymac.core.deletion.is_root", lambda: False)

    def test_traversal_out_of_system_root_never_reaches_broker(self, catalog, system_root, trasher):
        backend = FakeBackend()
        escaping = Path(f"{system_root}/../../etc")

        summary = DeletionExecutor(catalog, broker=PrivilegeBroker(backend), trasher=trasher).delete([escaping])

        assert summary.outcomes[0].status is DeletionStatus.FAILED
        assert summary.outcomes[0].reason.startswith("protected path")
        assert summary.outcomes[0].path == escaping
        assert backend.auth_calls == 0
        assert backend.scripts == []

    def test_traversal_out_of_caches_is_not_trashed(self, catalog, caches, fake_home, trasher):
        document = make_file(fake_home / "Documents" / "thesis.pdf")
        kept = make_file(caches / "blob.bin")

        summary = DeletionExecutor(catalog, trasher=trasher).delete(
            [Path(f"{caches}/../../Documents"), kept]
        )

        assert [o.status for o in summary.outcomes] == [DeletionStatus.FAILED, DeletionStatus.SUCCEEDED]
        assert summary.outcomes[0].reason.startswith("protected path")
        assert trasher.calls == [str(kept)]
        assert document.exists()
        assert summary.describe() == "1 of 2 items removed, 1 failed"

    def test_traversal_out_of_trash_is_not_removed(self, catalog, fake_home, trasher):
        document = make_file(fake_home / "Documents" / "thesis.pdf")

        summary = DeletionExecutor(catalog, trasher=trasher).delete([Path(f"{fake_home}/.Trash/../Documents")])

        assert summary.failed == 1
        assert document.exists()
        assert trasher.calls == []

    def test_protected_and_outside_paths_fail(self, catalog, fake_home, tmp_path, trasher):
        outside = make_file(tmp_path / "elsewhere" / "keep.bin")
        (fake_home / "Documents").mkdir()

        summary = DeletionExecutor(catalog, trasher=trasher).delete(
            [fake_home / "Documents", fake_home / "Library" / "Caches", outside, Path("/etc")]
        )

        assert summary.failed == 4
        assert all(o.reason.startswith("protected path") for o in summary.outcomes)
        assert trasher.calls == []
        assert outside.exists()

    def test_symlink_to_protected_location_fails(self, catalog, caches, fake_home, trasher):
        document = make_file(fake_home / "Documents" / "thesis.pdf")
        caches.mkdir(parents=True)
        link = caches / "docs"
        os.symlink(fake_home / "Documents", link)

        summary = DeletionExecutor(catalog, trasher=trasher).delete([link])

        assert "symlink points to" in summary.outcomes[0].reason
        assert os.path.islink(link)
        assert document.exists()

    def test_symlinked_parent_does_not_escape(self, catalog, caches, fake_home, trasher):
        document = make_file(fake_home / "Documents" / "thesis.pdf")
        caches.mkdir(parents=True)
        os.symlink(fake_home / "Documents", caches / "escape")

        summary = DeletionExecutor(catalog, trasher=trasher).delete([caches / "escape" / "thesis.pdf"])

        assert summary.failed == 1
        assert document.exists()

    def test_custom_validator(self, catalog, caches, trasher):
        path = make_file(caches / "blob.bin")
        executor = DeletionExecutor(catalog, trasher=trasher, validator=PathValidator([caches / "other"]))

        summary = executor.delete([path])

        assert summary.failed == 1
        assert path.exists()


class TestForeignOwnedTrash:
    @pytest.fixture(autouse=True)
    def _not_root(self, monkeypatch):
        monkeypatch.setattr("tidymac.core.deletion.is_root", lambda: False)

    def test_root_owned_trash_entry_removed_through_broker(self, catalog, fake_home, trasher, monkeypatch):
        trash = fake_home / ".Trash"
        mine = make_file(trash / "mine.bin")
        theirs = make_file(trash / "theirs.bin")
        monkeypatch.setattr(
            "tidymac.core.deletion._owned_by_other_user", lambda path: path.name == "theirs.bin"
        )
        backend = FakeBackend()

        summary = DeletionExecutor(catalog, broker=PrivilegeBroker(backend), trasher=trasher).empty_trash()

        assert summary.succeeded == 2
        assert [o.privileged for o in summary.outcomes] == [False, True]
        assert not mine.exists()
        assert f"/bin/rm -rf -- {theirs}" in backend.scripts[0]
        assert "/bin/mv" not in backend.scripts[0]

    def test_root_owned_trash_entry_without_broker(self, catalog, fake_home, trasher, monkeypatch):
        theirs = make_file(fake_home / ".Trash" / "theirs.bin")
        monkeypatch.setattr("tidymac.core.deletion._owned_by_other_user", lambda path: True)

        summary = DeletionExecutor(catalog, trasher=trasher).empty_trash()

        assert summary.failed == 1
        assert "administrator rights required" in summary.outcomes[0].reason
        assert theirs.exists()
