"""Shared test fixtures."""

from __future__ import annotations

import os
import re
import shutil
import threading
import time
from pathlib import Path

import pytest

from tidymac.core.catalog import CategoryCatalog
from tidymac.core.privileges import PrivilegeBackend
from tidymac.errors import AuthorizationDenied
from tidymac.models.category import CleanupCategory
from tidymac.settings import Settings

_SENTINEL_INDEX = re.compile(r"__TIDYMAC_CMD_(\d+)_EXIT")


def make_file(path: Path, size: int = 4096) -> Path:
    """Create *path* (and its parents) with *size* bytes of incompressible data."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(os.urandom(size))
    return path


class FakeBackend(PrivilegeBackend):
    """Backend that never prompts. Commands at *fail_indices* exit with status 1."""

    def __init__(
        self,
        deny: bool = False,
        fail_indices: set[int] | None = None,
        error: Exception | None = None,
        report: int | None = None,
        auth_delay: float = 0,
    ) -> None:
        self.deny = deny
        self.fail_indices = fail_indices or set()
        self.error = error
        self.report = report
        self.auth_delay = auth_delay
        self.auth_calls = 0
        self.scripts: list[str] = []
        self._lock = threading.Lock()

    def authenticate(self) -> None:
        with self._lock:
            self.auth_calls += 1
        if self.auth_delay:
            time.sleep(self.auth_delay)
        if self.deny:
            raise AuthorizationDenied()

    def run_script(self, command_line: str) -> str:
        self.scripts.append(command_line)
        if self.error is not None:
            raise self.error
        indices = [int(i) for i in _SENTINEL_INDEX.findall(command_line)]
        if self.report is not None:
            indices = indices[: self.report]
        lines = []
        for index in indices:
            status = 1 if index in self.fail_indices else 0
            lines.append(f"__TIDYMAC_CMD_{index}_EXIT:{status}")
        return "\n".join(lines) + "\n"


class FakeTrasher:
    """Stand-in for send2trash that moves files into *bin_dir*."""

    def __init__(self, bin_dir: Path) -> None:
        self.bin_dir = bin_dir
        self.calls: list[str] = []
        self.fail: set[str] = set()

    def __call__(self, path: str) -> None:
        self.calls.append(path)
        if Path(path).name in self.fail:
            raise PermissionError(13, "Permission denied", path)
        if not os.path.lexists(path):
            raise FileNotFoundError(2, "No such file or directory", path)
        self.bin_dir.mkdir(parents=True, exist_ok=True)
        shutil.move(path, self.bin_dir / f"{len(self.calls)}-{Path(path).name}")


@pytest.fixture
def fake_home(tmp_path, monkeypatch):
    """Point $HOME and the config directory at a temp directory."""
    home = tmp_path.resolve() / "home"
    (home / "Library").mkdir(parents=True)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("TIDYMAC_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setattr(Settings, "_instance", None)
    return home


@pytest.fixture
def trasher(tmp_path):
    return FakeTrasher(tmp_path / "trashed")


@pytest.fixture
def system_root(tmp_path):
    """Stand-in for an administrator-owned location such as /Library/Caches."""
    root = tmp_path.resolve() / "system" / "Caches"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def catalog(fake_home, system_root):
    return CategoryCatalog(
        [
            CleanupCategory(
                id="user_cache",
                name="User Caches",
                description="Per-user caches",
                icon="person.fill",
                path_templates=("~/Library/Caches",),
                sort_order=10,
            ),
            CleanupCategory(
                id="logs",
                name="Logs",
                description="Per-user logs",
                icon="doc.text.fill",
                path_templates=("~/Library/Logs",),
                sort_order=20,
            ),
            CleanupCategory(
                id="system_cache",
                name="System Caches",
                description="Shared caches",
                icon="gearshape.fill",
                path_templates=(str(system_root),),
                requires_elevated_access=True,
                sort_order=30,
            ),
            CleanupCategory(
                id="downloads",
                name="Downloads",
                description="Downloaded files",
                icon="arrow.down.circle.fill",
                path_templates=("~/Downloads",),
                requires_user_consent=True,
                sort_order=40,
            ),
        ],
        home=fake_home,
    )
