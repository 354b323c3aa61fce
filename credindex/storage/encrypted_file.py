"""Credential records sealed in a single AES-GCM encrypted file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..errors import PersistenceError
from ..records import CredentialRecord
from ..security import EncryptedJSONStore, EncryptedStoreError

logger = logging.getLogger(__name__)

PAYLOAD_VERSION = 1


class EncryptedFileStorage:
    """Persist the full record list through :class:`EncryptedJSONStore`."""

    def __init__(
        self,
        path: Optional[Path] = None,
        *,
        passphrase_resolver: Callable[[], str],
        iterations: Optional[int] = None,
    ) -> None:
        options = {} if iterations is None else {"iterations": iterations}
        self._store = EncryptedJSONStore(path=path, passphrase_resolver=passphrase_resolver, **options)

    @property
    def path(self) -> Path:
        return self._store.resolved_path

    def read_all(self) -> List[CredentialRecord]:
        payload = self._store.load(None)
        if payload is None:
            return []
        if not isinstance(payload, dict) or not isinstance(payload.get("records"), list):
            raise PersistenceError(f"{self.path} does not contain a credential list")
        try:
            return [CredentialRecord.from_dict(item) for item in payload["records"]]
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(f"malformed credential record in {self.path}") from exc

    def write_all(self, records: Iterable[CredentialRecord]) -> None:
        payload = {
            "version": PAYLOAD_VERSION,
            "records": [record.to_dict() for record in records],
        }
        try:
            self._store.save(payload)
        except EncryptedStoreError:
            logger.error("Failed to persist credentials to %s", self.path, exc_info=True)
            raise
        logger.debug("Persisted %d credential records to %s", len(payload["records"]), self.path)

    def rotate_master_password(self, new_password: str) -> None:
        self._store.rotate_passphrase(new_password)


__all__ = ["EncryptedFileStorage"]
