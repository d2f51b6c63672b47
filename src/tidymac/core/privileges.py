"""Privilege escalation via AppleScript's ``do shell script ... with administrator privileges``."""

from __future__ import annotations

import logging
import os
import re
import secrets
import shutil
import subprocess
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from tidymac.core.escaping import build_command, build_privileged_script
from tidymac.errors import AuthorizationDenied, CommandExecutionFailed

log = logging.getLogger(__name__)

# AppleScript error numbers reported on stderr as "... (-128)".
_USER_CANCELED = -128
_AUTH_FAILURES = {-60005, -60006, -60007}
_ERROR_NUMBER = re.compile(r"\((-?\d+)\)\s*$")

_SENTINEL = "__TIDYMAC_CMD_"
_SENTINEL_LINE = re.compile(rf"^{_SENTINEL}(\d+)_EXIT:(\d+)$")

Command = tuple[str, Sequence[str]]


def is_root() -> bool:
    """Check if the current process is running as root."""
    return os.geteuid() == 0


def osascript_available() -> bool:
    """Check if osascript is available on the system."""
    return shutil.which("osascript") is not None


@dataclass(slots=True)
class CommandResult:
    """Outcome of one privileged command."""

    command: str
    args: tuple[str, ...]
    exit_code: int | None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass
class AuthorizationSession:
    """Handle for one user consent to run commands as administrator.

    ``commands`` records every command line run under this session.
    """

    token: str = field(default_factory=lambda: secrets.token_hex(16))
    is_valid: bool = True
    commands: list[str] = field(default_factory=list)


class PrivilegeBackend(ABC):
    """Executes scripts with administrator rights."""

    @abstractmethod
    def authenticate(self) -> None:
        """Ask the OS for administrator rights.

        Raises:
            AuthorizationDenied: The user cancelled or authentication failed.
        """

    @abstractmethod
    def run_script(self, command_line: str) -> str:
        """Run a shell command line with administrator rights and return its stdout.

        Raises:
            AuthorizationDenied: The OS refused the elevation.
            CommandExecutionFailed: The script could not be run.
        """


class AppleScriptBackend(PrivilegeBackend):
    """Backend that shells out to ``osascript``.

    Each call blocks until the user answers the authentication dialog. There
    is no timeout, the wait mirrors a modal decision.
    """

    def __init__(self, osascript: str = "osascript") -> None:
        self._osascript = osascript

    def authenticate(self) -> None:
        self.run_script(build_command("/usr/bin/true"))

    def run_script(self, command_line: str) -> str:
        script = build_privileged_script(command_line)
        try:
            proc = subprocess.run(
                [self._osascript, "-e", script],
                capture_output=True,
                text=True,
            )
        except OSError as exc:
            raise CommandExecutionFailed(f"Could not run osascript: {exc}")

        if proc.returncode == 0:
            return proc.stdout

        stderr = proc.stderr.strip()
        match = _ERROR_NUMBER.search(stderr)
        number = int(match.group(1)) if match else None
        if number == _USER_CANCELED:
            raise AuthorizationDenied("Authentication dismissed by user")
        if number in _AUTH_FAILURES:
            raise AuthorizationDenied("Authentication denied")
        raise CommandExecutionFailed(f"Privileged script failed (exit {proc.returncode}): {stderr}")


class PrivilegeBroker:
    """Hands out one authorization session and runs privileged commands under it.

    The broker is the only place that creates or invalidates a session. A
    lock makes concurrent ``request_elevation`` calls share one prompt. The
    broker keeps no timeout of its own. The session stays valid until
    :meth:`invalidate` is called or the OS refuses a later run.
    """

    def __init__(self, backend: PrivilegeBackend | None = None) -> None:
        self.backend = backend or AppleScriptBackend()
        self._lock = threading.Lock()
        self._session: AuthorizationSession | None = None

    @property
    def session(self) -> AuthorizationSession | None:
        """The current valid session, if any."""
        with self._lock:
            if self._session is not None and self._session.is_valid:
                return self._session
            return None

    def request_elevation(self) -> AuthorizationSession:
        """Return the current session, prompting the user only if there is none.

        Raises:
            AuthorizationDenied: The user cancelled or failed to authenticate.
        """
        with self._lock:
            if self._session is not None and self._session.is_valid:
                return self._session
            log.info("Requesting administrator authorization")
            self.backend.authenticate()
            self._session = AuthorizationSession()
            return self._session

    def invalidate(self) -> None:
        """Drop the current session; the next request will prompt again."""
        with self._lock:
            if self._session is not None:
                self._session.is_valid = False
            self._session = None

    def run_privileged(self, session: AuthorizationSession, command: str, args: Iterable[str] = ()) -> CommandResult:
        """Run one command as administrator. Never prompts for a new session."""
        return self.run_privileged_batch(session, [(command, list(args))])[0]

    def run_privileged_batch(
        self,
        session: AuthorizationSession,
        commands: Sequence[Command],
    ) -> list[CommandResult]:
        """Run several commands in one privileged script.

        Each command is followed by a sentinel line carrying its exit status,
        so every command gets its own result even when an earlier one fails.

        Raises:
            AuthorizationDenied: *session* is not the broker's valid session,
                or the OS refused the elevation. The session is invalidated in
                the second case.
        """
        if not commands:
            return []
        self._check_session(session)

        lines = [build_command(command, args) for command, args in commands]
        script = "; ".join(
            f'{line}; echo "{_SENTINEL}{index}_EXIT:$?"' for index, line in enumerate(lines)
        )

        try:
            output = self.backend.run_script(script)
        except AuthorizationDenied:
            log.warning("Authorization was revoked, invalidating session")
            self.invalidate()
            raise
        except CommandExecutionFailed as exc:
            log.warning("Privileged batch could not be run: %s", exc.reason)
            session.commands.extend(lines)
            return [
                CommandResult(command=command, args=tuple(args), exit_code=None, reason=exc.reason)
                for command, args in commands
            ]

        session.commands.extend(lines)
        statuses = _parse_exit_statuses(output)

        results = []
        for index, (command, args) in enumerate(commands):
            code = statuses.get(index)
            if code is None:
                reason = "no exit status reported"
            elif code != 0:
                reason = f"{command} exited with status {code}"
            else:
                reason = ""
            results.append(CommandResult(command=command, args=tuple(args), exit_code=code, reason=reason))
        return results

    def _check_session(self, session: AuthorizationSession) -> None:
        with self._lock:
            if session is None or not session.is_valid or session is not self._session:
                raise AuthorizationDenied("Authorization session is no longer valid")


def _parse_exit_statuses(output: str) -> dict[int, int]:
    """Map command index to exit status from the sentinel lines in *output*."""
    statuses: dict[int, int] = {}
    for line in output.splitlines():
        match = _SENTINEL_LINE.match(line.strip())
        if match:
            statuses[int(match.group(1))] = int(match.group(2))
    return statuses
