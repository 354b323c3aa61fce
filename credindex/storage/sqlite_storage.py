"""SQLite backend with per-field AES-GCM sealing."""

from __future__ import annotations

import base64
import json
import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..errors import PersistenceError
from ..records import CredentialRecord, HistoryEntry
from ..security import FieldCipher
from ..security.encrypted_store import DEFAULT_ITERATIONS
from ..utils.paths import state_dir

logger = logging.getLogger(__name__)

_VERIFIER = "credindex"

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL)",
    """
    CREATE TABLE IF NOT EXISTS credentials (
        position INTEGER PRIMARY KEY,
        service TEXT NOT NULL,
        username TEXT NOT NULL,
        secret TEXT NOT NULL,
        history TEXT NOT NULL
    )
    """,
)


class SqliteStorage:
    """Store credential records as rows of a local SQLite database.

    Service and username columns stay readable; the secret and its history
    are sealed with a :class:`FieldCipher` whose salt lives in the ``meta``
    table together with a sealed verifier used to reject a wrong master
    password up front. ``write_all`` swaps every row inside one transaction.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        *,
        passphrase_resolver: Callable[[], str],
        iterations: int = DEFAULT_ITERATIONS,
    ) -> None:
        self.path = Path(path or (state_dir() / "credentials.sqlite3"))
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._passphrase_resolver = passphrase_resolver
        self._iterations = iterations
        self._cipher: Optional[FieldCipher] = None

    # -- helpers --------------------------------------------------------
    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(str(self.path))
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"failed to open {self.path}") from exc
        return conn

    def _get_cipher(self, conn: sqlite3.Connection) -> FieldCipher:
        if self._cipher is not None:
            return self._cipher
        rows = dict(conn.execute("SELECT key, value FROM meta").fetchall())
        passphrase = self._passphrase_resolver()
        if "salt" in rows:
            salt = base64.b64decode(rows["salt"])
            cipher = FieldCipher(passphrase, salt, iterations=int(rows.get("iterations", self._iterations)))
            # raises EncryptedStoreError for a wrong master password
            cipher.open(rows["verifier"])
        else:
            salt = FieldCipher.new_salt()
            cipher = FieldCipher(passphrase, salt, iterations=self._iterations)
            with conn:
                conn.executemany(
                    "INSERT INTO meta (key, value) VALUES (?, ?)",
                    [
                        ("salt", base64.b64encode(salt).decode("ascii")),
                        ("iterations", str(self._iterations)),
                        ("verifier", cipher.seal(_VERIFIER)),
                    ],
                )
        self._cipher = cipher
        return cipher

    # -- persistence port -----------------------------------------------
    def read_all(self) -> List[CredentialRecord]:
        with closing(self._connect()) as conn:
            try:
                cipher = self._get_cipher(conn)
                rows = conn.execute(
                    "SELECT service, username, secret, history FROM credentials ORDER BY position"
                ).fetchall()
            except sqlite3.Error as exc:
                raise PersistenceError(f"failed to read {self.path}") from exc
            records: List[CredentialRecord] = []
            for service, username, secret, history in rows:
                try:
                    entries = json.loads(cipher.open(history))
                except ValueError as exc:
                    raise PersistenceError(f"malformed history for {service!r} in {self.path}") from exc
                records.append(
                    CredentialRecord(
                        service=service,
                        username=username,
                        secret=cipher.open(secret),
                        history=[HistoryEntry.from_dict(item) for item in entries],
                    )
                )
        return records

    def write_all(self, records: Iterable[CredentialRecord]) -> None:
        with closing(self._connect()) as conn:
            try:
                cipher = self._get_cipher(conn)
            except sqlite3.Error as exc:
                raise PersistenceError(f"failed to initialise {self.path}") from exc
            rows = [
                (
                    position,
                    record.service,
                    record.username,
                    cipher.seal(record.secret),
                    cipher.seal(json.dumps([entry.to_dict() for entry in record.history])),
                )
                for position, record in enumerate(records)
            ]
            try:
                with conn:
                    conn.execute("DELETE FROM credentials")
                    conn.executemany(
                        "INSERT INTO credentials (position, service, username, secret, history) "
                        "VALUES (?, ?, ?, ?, ?)",
                        rows,
                    )
            except sqlite3.Error as exc:
                logger.error("Failed to persist credentials to %s", self.path, exc_info=True)
                raise PersistenceError(f"failed to write {self.path}") from exc
        logger.debug("Persisted %d credential records to %s", len(rows), self.path)


__all__ = ["SqliteStorage"]
