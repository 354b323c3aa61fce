"""Persistence port contract and the in-memory backend."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Protocol

from ..errors import PersistenceError
from ..records import CredentialRecord


class StorageType(str, Enum):
    """Backends :func:`credindex.storage.create_storage` knows how to build."""

    MEMORY = "memory"
    FILE = "file"
    SQLITE = "sqlite"
    KEYRING = "keyring"

    @classmethod
    def parse(cls, value: str) -> "StorageType":
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            choices = ", ".join(member.value for member in cls)
            raise ValueError(f"unknown storage type {value!r} (expected one of: {choices})") from exc


class PersistencePort(Protocol):
    """Whole-set storage of credential records.

    ``read_all`` returns an empty list when nothing has been stored yet and
    raises :class:`PersistenceError` only for genuine failures. ``write_all``
    replaces the stored set; a subsequent ``read_all`` must never observe a
    partially applied write.
    """

    def read_all(self) -> List[CredentialRecord]:
        ...

    def write_all(self, records: Iterable[CredentialRecord]) -> None:
        ...


class MemoryStorage:
    """Keep serialised records in process memory.

    Records are copied on the way in and out so callers never share mutable
    state with the backend. ``fail_reads`` / ``fail_writes`` make the next
    operations raise :class:`PersistenceError`, which lets callers exercise
    their failure handling.
    """

    def __init__(self, records: Iterable[CredentialRecord] = ()) -> None:
        self._payload = [record.to_dict() for record in records]
        self.fail_reads = False
        self.fail_writes = False
        self.reads = 0
        self.writes = 0

    def read_all(self) -> List[CredentialRecord]:
        if self.fail_reads:
            raise PersistenceError("memory storage read failure")
        self.reads += 1
        return [CredentialRecord.from_dict(item) for item in self._payload]

    def write_all(self, records: Iterable[CredentialRecord]) -> None:
        if self.fail_writes:
            raise PersistenceError("memory storage write failure")
        self._payload = [record.to_dict() for record in records]
        self.writes += 1


__all__ = ["MemoryStorage", "PersistenceError", "PersistencePort", "StorageType"]
