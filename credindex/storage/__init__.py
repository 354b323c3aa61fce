"""Persistence backends implementing the credential record port."""

from ..errors import PersistenceError
from .base import MemoryStorage, PersistencePort, StorageType
from .encrypted_file import EncryptedFileStorage
from .keyring_storage import KeyringStorage
from .sqlite_storage import SqliteStorage

__all__ = [
    "EncryptedFileStorage",
    "KeyringStorage",
    "MemoryStorage",
    "PersistenceError",
    "PersistencePort",
    "SqliteStorage",
    "StorageType",
]
