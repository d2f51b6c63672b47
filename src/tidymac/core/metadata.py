"""Reading identifiers out of key-value manifests (property lists, JSON)."""

from __future__ import annotations

import json
import logging
import plistlib
from pathlib import Path
from typing import Any
from xml.parsers.expat import ExpatError

from tidymac.models.leftover import AppIdentity

log = logging.getLogger(__name__)

_BUNDLE_ID_KEY = "CFBundleIdentifier"
_BUNDLE_NAME_KEYS = ("CFBundleDisplayName", "CFBundleName")


def read_manifest(path: Path | str) -> dict[str, Any] | None:
    """Parse a property list (XML or binary) or JSON manifest into a dict.

    A missing, unreadable or malformed manifest gives None, never an error.
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        log.debug("Cannot read manifest %s: %s", path, exc)
        return None

    data: Any = None
    if path.suffix.lower() == ".json":
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            log.debug("Malformed JSON manifest %s: %s", path, exc)
            return None
    else:
        try:
            data = plistlib.loads(raw)
        except (plistlib.InvalidFileException, ExpatError, ValueError, TypeError, OverflowError) as exc:
            log.debug("Malformed property list %s: %s", path, exc)
            return None

    return data if isinstance(data, dict) else None


def _string_value(manifest: dict[str, Any] | None, *keys: str) -> str | None:
    if not manifest:
        return None
    for key in keys:
        value = manifest.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def read_bundle_identifier(app_path: Path | str) -> str | None:
    """Return CFBundleIdentifier from an application bundle's Info.plist."""
    manifest = read_manifest(Path(app_path) / "Contents" / "Info.plist")
    return _string_value(manifest, _BUNDLE_ID_KEY)


def identity_from_bundle(app_path: Path | str) -> AppIdentity:
    """Build an AppIdentity for an installed ``.app`` bundle.

    The display name falls back to the bundle's file name without ``.app``.
    The install size is left uncomputed.
    """
    app_path = Path(app_path)
    manifest = read_manifest(app_path / "Contents" / "Info.plist")
    return AppIdentity(
        bundle_id=_string_value(manifest, _BUNDLE_ID_KEY),
        name=_string_value(manifest, *_BUNDLE_NAME_KEYS) or app_path.stem,
        path=app_path,
    )
