"""Credential store façade tying the index, history and analytics together."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from . import generator
from .analytics import AccessTracker
from .errors import PersistenceError
from .history import Command, CommandLog, Mutation, command_for
from .index import HashIndex, Index
from .ranking import HeapRanker, Ranker, RankingEntry
from .records import DEFAULT_USERNAME, CredentialRecord, HistoryEntry
from .storage.base import PersistencePort
from .utils import logbook

logger = logging.getLogger(__name__)


class CredentialStore:
    """Session-scoped credential store over a persistence backend.

    Writes go through the backend immediately and are recorded as undoable
    commands; reads reload the whole index from the backend first so that
    edits made by other code paths are always visible. Each write is
    all-or-nothing: when the backend refuses it, the in-memory index is put
    back the way it was and :class:`PersistenceError` reaches the caller.

    Audit records go to the forensic log under *audit_home* (the state
    directory by default). An audit write that fails is logged and never
    changes the outcome of the operation it describes.

    Keys are compared exactly unless ``case_sensitive=False``, in which case
    every key is casefolded before it reaches the index, the access tracker
    or the backend.
    """

    def __init__(
        self,
        backend: PersistencePort,
        *,
        index: Optional[Index[str]] = None,
        log: Optional[CommandLog] = None,
        tracker: Optional[AccessTracker] = None,
        ranker: Optional[Ranker] = None,
        clock: Callable[[], datetime] = datetime.now,
        default_username: str = DEFAULT_USERNAME,
        case_sensitive: bool = True,
        audit: bool = True,
        audit_home: Optional[Path] = None,
    ) -> None:
        self._backend = backend
        self._index: Index[str] = index if index is not None else HashIndex()
        self._log = log if log is not None else CommandLog()
        self._log.attach(self._apply)
        self._tracker = tracker if tracker is not None else AccessTracker()
        self._ranker: Ranker = ranker if ranker is not None else HeapRanker()
        self._clock = clock
        self._default_username = default_username
        self._case_sensitive = case_sensitive
        self._audit_enabled = audit
        self._audit_home = audit_home
        self._loaded = False
        self.reload()

    # -- state ------------------------------------------------------------
    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def case_sensitive(self) -> bool:
        return self._case_sensitive

    def reload(self) -> None:
        """Replace the index contents with what the backend currently holds."""

        records = self._read_records()
        self._index.clear()
        for record in records:
            self._index.put(self._key(record.service), record.secret)
        self._loaded = True
        logger.debug("Reloaded %d credentials from backend", len(records))

    def services(self) -> List[str]:
        return sorted(self._index.keys())

    # -- credentials ------------------------------------------------------
    def add_credential(self, key: str, value: str, *, username: Optional[str] = None) -> Command:
        """Store *value* under *key*, returning the recorded command."""

        return self._store(key, value, username=username, action="credential_add")

    def get_credential(self, key: Optional[str]) -> Optional[str]:
        self.reload()
        normalised = self._key(key)
        self._tracker.record_access(normalised, self._clock().hour)
        return self._index.get(normalised)

    def generate_credential(self, key: str, length: int = 16, *, username: Optional[str] = None) -> str:
        """Generate a random secret for *key*, store it and return it."""

        secret = generator.generate_password(length)
        self._store(key, secret, username=username, action="credential_generate")
        return secret

    def get_secret_history(self, key: Optional[str]) -> List[HistoryEntry]:
        normalised = self._key(key)
        for record in self._read_records():
            if self._key(record.service) == normalised:
                return record.secret_history()
        return []

    # -- history ----------------------------------------------------------
    def undo(self) -> bool:
        return self._replay(self._log.undo, self._log.peek_undo(), "credential_undo")

    def redo(self) -> bool:
        return self._replay(self._log.redo, self._log.peek_redo(), "credential_redo")

    def can_undo(self) -> bool:
        return self._log.can_undo()

    def can_redo(self) -> bool:
        return self._log.can_redo()

    # -- analytics --------------------------------------------------------
    def get_access_pattern(self, key: Optional[str]) -> Dict[int, int]:
        return self._tracker.get_pattern(self._key(key))

    def get_total_access_count(self, key: Optional[str]) -> int:
        return self._tracker.get_total_access_count(self._key(key))

    def get_most_accessed_services(self, top_n: int) -> List[str]:
        return self._tracker.get_most_accessed(top_n)

    def rank(self, top_n: Optional[int] = None) -> List[RankingEntry]:
        return self._ranker.rank(self._tracker.snapshot(), top_n)

    def get_most_used_by_rank(self) -> List[str]:
        return [entry.render() for entry in self.rank()]

    # -- internals --------------------------------------------------------
    def _key(self, key: Optional[str]) -> Optional[str]:
        if key is None or self._case_sensitive:
            return key
        return key.casefold()

    def _store(self, key: str, value: str, *, username: Optional[str], action: str) -> Command:
        if key is None:
            raise ValueError("credential key must not be None")
        if value is None:
            raise ValueError("credential value must not be None")
        normalised = self._key(key)
        command = command_for(normalised, self._index.get(normalised), value)
        try:
            self._apply(command.forward(), username=username)
        except PersistenceError:
            self._audit(action, key=normalised, kind=command.kind, status="failed")
            raise
        self._log.record(command)
        self._audit(action, key=normalised, kind=command.kind, status="stored")
        return command

    def _replay(self, step: Callable[[], bool], command: Optional[Command], action: str) -> bool:
        try:
            done = step()
        except PersistenceError:
            self._audit(action, key=command.key if command else None, status="failed")
            raise
        if done and command is not None:
            self._audit(action, key=command.key, kind=command.kind, status="stored")
        return done

    def _apply(self, mutation: Mutation, username: Optional[str] = None) -> None:
        key, value = mutation
        previous = self._index.get(key)
        if value is None:
            self._index.remove(key)
        else:
            self._index.put(key, value)
        try:
            self._persist(key, value, username)
        except PersistenceError:
            if previous is None:
                self._index.remove(key)
            else:
                self._index.put(key, previous)
            logger.error("Persisting %r failed; index rolled back", key, exc_info=True)
            raise

    def _persist(self, key: str, value: Optional[str], username: Optional[str]) -> None:
        records = self._read_records()
        position = next(
            (number for number, record in enumerate(records) if self._key(record.service) == key),
            None,
        )
        if value is None:
            if position is not None:
                del records[position]
        elif position is not None:
            records[position].set_secret_with_history(value)
            if username:
                records[position].username = username
        else:
            records.append(
                CredentialRecord(service=key, username=username or self._default_username, secret=value)
            )
        self._write_records(records)

    def _read_records(self) -> List[CredentialRecord]:
        try:
            return list(self._backend.read_all())
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError("credential backend read failed") from exc

    def _write_records(self, records: List[CredentialRecord]) -> None:
        try:
            self._backend.write_all(records)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError("credential backend write failed") from exc

    def _audit(self, action: str, **fields: object) -> None:
        if not self._audit_enabled:
            return
        try:
            logbook.info({"action": action, **fields, "value": logbook.MASK}, home=self._audit_home)
        except OSError:
            logger.warning("Audit record for %s could not be written", action, exc_info=True)


__all__ = ["CredentialStore"]
