"""Escaping for commands run through AppleScript's ``do shell script``.

A privileged command passes through two parsers. The shell splits the
command line into words, so every word is single-quoted with
:func:`quote_argument`. AppleScript then reads the whole line as a string
literal, so the line is escaped with :func:`escape_for_applescript`.
"""

from __future__ import annotations

import shlex
from typing import Iterable

_APPLESCRIPT_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def escape_for_applescript(text: str) -> str:
    """Escape *text* for use inside an AppleScript double-quoted string.

    Backslash and double quote are escaped. Newline, carriage return and tab
    become ``\\n``, ``\\r`` and ``\\t``. Any other ASCII control character
    (0-31) is dropped. Never raises.
    """
    out = []
    for char in str(text):
        escaped = _APPLESCRIPT_ESCAPES.get(char)
        if escaped is not None:
            out.append(escaped)
        elif ord(char) < 32:
            continue
        else:
            out.append(char)
    return "".join(out)


def quote_argument(arg: str) -> str:
    """Quote one shell word so the shell reads it back as a single literal."""
    return shlex.quote(str(arg))


def build_command(command: str, args: Iterable[str] = ()) -> str:
    """Join *command* and *args* into one shell command line."""
    return " ".join(quote_argument(part) for part in (command, *args))


def build_privileged_script(command_line: str) -> str:
    """Wrap a shell command line in an elevated ``do shell script`` statement."""
    return f'do shell script "{escape_for_applescript(command_line)}" with administrator privileges'
