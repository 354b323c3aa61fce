"""Credential records kept in the platform keyring."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from keyring.errors import KeyringError, PasswordDeleteError

from ..errors import PersistenceError
from ..records import CredentialRecord
from ..utils.keyring_compat import KeyringLike, load_keyring_backend
from ..utils.paths import state_dir

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "credindex"


class KeyringStorage:
    """Adapter built on top of :mod:`keyring` with a deterministic index.

    Each record is serialised (secret and history) into one keyring password
    stored under ``<namespace>:<service>`` / ``<username>``. A JSON index file
    remembers which entries exist and in what order, since keyrings cannot be
    enumerated portably. ``write_all`` stores every entry first, swaps the
    index in atomically and only then deletes entries the new set dropped.
    When any step before the index swap fails, the entries already
    overwritten are put back so the old index still reads the old secrets.
    """

    def __init__(
        self,
        index_path: Optional[Path] = None,
        *,
        backend: Optional[KeyringLike] = None,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        self._index_path = Path(index_path or (state_dir() / "keyring_index.json"))
        self._backend = backend if backend is not None else load_keyring_backend()
        self._namespace = namespace

    @property
    def index_path(self) -> Path:
        return self._index_path

    def _keyring_service(self, service: str) -> str:
        return f"{self._namespace}:{service}"

    # -- index ----------------------------------------------------------
    def _load_index(self) -> List[Tuple[str, str]]:
        if not self._index_path.exists():
            return []
        try:
            data = json.loads(self._index_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"failed to read keyring index {self._index_path}") from exc
        if not isinstance(data, list):
            raise PersistenceError(f"keyring index {self._index_path} is not a list")
        index: List[Tuple[str, str]] = []
        for entry in data:
            if isinstance(entry, dict) and "service" in entry:
                index.append((str(entry["service"]), str(entry.get("username", ""))))
        return index

    def _save_index(self, index: List[Tuple[str, str]]) -> None:
        payload = [{"service": service, "username": username} for service, username in index]
        self._index_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._index_path.with_suffix(self._index_path.suffix + ".tmp")
        try:
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._index_path)
        except OSError as exc:
            raise PersistenceError(f"failed to write keyring index {self._index_path}") from exc
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    # -- persistence port -----------------------------------------------
    def read_all(self) -> List[CredentialRecord]:
        records: List[CredentialRecord] = []
        for service, username in self._load_index():
            try:
                raw = self._backend.get_password(self._keyring_service(service), username)
            except (KeyringError, RuntimeError) as exc:
                raise PersistenceError(f"keyring read failed for {service!r}") from exc
            if raw is None:
                logger.warning("Keyring entry for %s/%s is missing; skipping", service, username)
                continue
            try:
                payload = json.loads(raw)
                records.append(CredentialRecord.from_dict({**payload, "service": service, "username": username}))
            except (KeyError, TypeError, ValueError) as exc:
                raise PersistenceError(f"malformed keyring entry for {service!r}") from exc
        return records

    def write_all(self, records: Iterable[CredentialRecord]) -> None:
        previous = self._load_index()
        index: List[Tuple[str, str]] = []
        displaced: List[Tuple[str, str, Optional[str]]] = []
        try:
            for record in records:
                payload: Dict[str, object] = record.to_dict()
                del payload["service"], payload["username"]
                name = self._keyring_service(record.service)
                displaced.append((name, record.username, self._backend.get_password(name, record.username)))
                self._backend.set_password(name, record.username, json.dumps(payload, sort_keys=True))
                index.append((record.service, record.username))
            self._save_index(index)
        except (KeyringError, RuntimeError, ValueError) as exc:
            logger.error("Failed to store credentials in the keyring", exc_info=True)
            self._restore(displaced)
            raise PersistenceError("keyring write failed") from exc
        except PersistenceError:
            self._restore(displaced)
            raise
        kept = set(index)
        for service, username in previous:
            if (service, username) in kept:
                continue
            try:
                self._backend.delete_password(self._keyring_service(service), username)
            except PasswordDeleteError:
                logger.debug("Keyring entry %s/%s already gone", service, username)
            except (KeyringError, RuntimeError):
                logger.warning("Could not delete stale keyring entry %s/%s", service, username, exc_info=True)

    def _restore(self, displaced: List[Tuple[str, str, Optional[str]]]) -> None:
        """Put back the keyring entries a failed ``write_all`` overwrote."""

        for name, username, raw in reversed(displaced):
            try:
                if raw is None:
                    self._backend.delete_password(name, username)
                else:
                    self._backend.set_password(name, username, raw)
            except PasswordDeleteError:
                continue
            except (KeyringError, RuntimeError, ValueError):
                logger.warning("Could not restore keyring entry %s/%s", name, username, exc_info=True)


__all__ = ["DEFAULT_NAMESPACE", "KeyringStorage"]
