"""Per-source cookie storage backed by a JSON file."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

logger = logging.getLogger(__name__)


class CredentialStore:
    """Read-mostly map of source id to cookie string.

    The map is never mutated in place. ``load`` and ``replace`` build a new
    mapping and swap the reference, so a reader holding a snapshot never sees
    a half-written credential set.
    """

    def __init__(self, path: Path | str | None = None, initial: Mapping[str, str] | None = None) -> None:
        self.path = Path(path) if path else None
        self._lock = threading.Lock()
        self._cookies: Mapping[str, str] = MappingProxyType(_clean(initial or {}))

    def load(self) -> None:
        """Reload from disk. A missing or unreadable file leaves the store empty."""
        cookies: dict[str, str] = {}
        if self.path and self.path.is_file():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    raw = json.load(f)
            except (OSError, ValueError):
                logger.exception("Failed to read cookie file %s", self.path)
                raw = {}
            if isinstance(raw, dict):
                cookies = _clean(raw)
            else:
                logger.warning("Ignoring cookie file %s: expected a JSON object", self.path)
        with self._lock:
            self._cookies = MappingProxyType(cookies)
        logger.info("Loaded cookies for %d source(s)", len(cookies))

    def replace(self, cookies: Mapping[str, str], *, persist: bool = True) -> None:
        """Swap in a whole new credential set, writing it to disk first."""
        cleaned = _clean(cookies)
        with self._lock:
            if persist and self.path:
                _atomic_write_json(self.path, cleaned)
            self._cookies = MappingProxyType(cleaned)

    def get(self, source: str) -> str:
        return self._cookies.get(source, "")

    def snapshot(self) -> Mapping[str, str]:
        return self._cookies


def _clean(raw: Mapping) -> dict[str, str]:
    out = {}
    for key, value in raw.items():
        if value is None:
            continue
        out[str(key)] = str(value)
    return out


def _atomic_write_json(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".cookies.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
