"""Keyring backend selection with a JSON file fallback for headless hosts."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple

import keyring
from keyring.errors import KeyringError, PasswordDeleteError, PasswordSetError

from .paths import state_dir

logger = logging.getLogger(__name__)

KEYRING_PATH_ENV = "CREDINDEX_KEYRING_PATH"


class KeyringLike(Protocol):
    """The subset of the :mod:`keyring` API credindex relies on."""

    def get_password(self, service: str, username: str) -> Optional[str]:
        ...

    def set_password(self, service: str, username: str, password: str) -> None:
        ...

    def delete_password(self, service: str, username: str) -> None:
        ...


def _default_storage_path() -> Path:
    """Return the path used by :class:`FileKeyring` when none is provided."""

    override = os.getenv(KEYRING_PATH_ENV)
    if override:
        return Path(override).expanduser()
    return state_dir() / "keyring.json"


class FileKeyring:
    """JSON file standing in for a keyring on hosts without a usable one.

    The file holds a flat list of ``{"service", "username", "password"}``
    entries. Failures surface as :mod:`keyring.errors` exceptions, the same
    ones a native backend raises, so callers handle both alike.
    """

    def __init__(self, storage_path: Optional[Path | str] = None) -> None:
        self.storage_path = Path(storage_path).expanduser() if storage_path else _default_storage_path()
        self._lock = threading.Lock()

    def _load(self) -> Dict[Tuple[str, str], str]:
        if not self.storage_path.exists():
            return {}
        try:
            entries = json.loads(self.storage_path.read_text(encoding="utf-8"))
            return {(entry["service"], entry["username"]): entry["password"] for entry in entries}
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise KeyringError(f"unreadable keyring file {self.storage_path}") from exc

    def _dump(self, entries: Dict[Tuple[str, str], str]) -> None:
        if not entries:
            self.storage_path.unlink(missing_ok=True)
            return
        payload = [
            {"service": service, "username": username, "password": password}
            for (service, username), password in sorted(entries.items())
        ]
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.storage_path.with_suffix(self.storage_path.suffix + ".tmp")
        try:
            tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self.storage_path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise KeyringError(f"failed to write keyring file {self.storage_path}") from exc

    # -- public API ---------------------------------------------------------
    def get_password(self, service: str, username: str) -> Optional[str]:
        with self._lock:
            return self._load().get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        if not service or not username:
            raise PasswordSetError("service and username must be non-empty")
        with self._lock:
            entries = self._load()
            entries[(service, username)] = password
            self._dump(entries)

    def delete_password(self, service: str, username: str) -> None:
        with self._lock:
            entries = self._load()
            if entries.pop((service, username), None) is None:
                raise PasswordDeleteError(f"no keyring entry for {service}/{username}")
            self._dump(entries)


def _try_native_keyring() -> Optional[KeyringLike]:
    """Return the real keyring backend when usable, otherwise ``None``."""

    try:
        backend = keyring.get_keyring()
    except KeyringError:
        return None

    module_name = backend.__class__.__module__
    if module_name.startswith("keyring.backends.fail"):
        return None

    priority = getattr(backend, "priority", None)
    if isinstance(priority, (int, float)) and priority <= 0:
        return None

    try:
        keyring.get_password("__credindex_check__", "__credindex_check__")
    except KeyringError:
        return None

    return keyring  # type: ignore[return-value]


def load_keyring_backend(storage_path: Optional[Path | str] = None) -> KeyringLike:
    """Return a keyring backend, preferring the system one when available."""

    backend = _try_native_keyring()
    if backend is not None:
        logger.debug("Using native keyring backend: %s", backend)
        return backend

    fallback = FileKeyring(storage_path=storage_path)
    logger.info("Using file-based fallback keyring located at %s", fallback.storage_path)
    return fallback


__all__ = ["FileKeyring", "KeyringLike", "load_keyring_backend"]
