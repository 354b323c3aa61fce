"""Build persistence backends from a :class:`StorageType`."""

from __future__ import annotations

from typing import Callable, Optional, Union

from ..config import Settings, load_settings
from ..utils.keyring_compat import FileKeyring, KeyringLike, load_keyring_backend
from .base import MemoryStorage, PersistencePort, StorageType
from .encrypted_file import EncryptedFileStorage
from .keyring_storage import KeyringStorage
from .sqlite_storage import SqliteStorage

MasterPassword = Union[str, Callable[[], str]]


def _resolver(master_password: MasterPassword) -> Callable[[], str]:
    if callable(master_password):
        return master_password
    return lambda: master_password


def create_storage(
    storage_type: Optional[Union[StorageType, str]] = None,
    *,
    master_password: MasterPassword = "",
    settings: Optional[Settings] = None,
    keyring_backend: Optional[KeyringLike] = None,
) -> PersistencePort:
    """Return the backend for *storage_type* rooted in the settings' home.

    *master_password* may be the password itself or a zero-argument callable
    returning it; encrypted backends resolve it lazily on each access.
    """

    settings = settings or load_settings()
    if storage_type is None:
        kind = settings.storage_type
    elif isinstance(storage_type, StorageType):
        kind = storage_type
    else:
        kind = StorageType.parse(storage_type)

    if kind is StorageType.MEMORY:
        return MemoryStorage()
    if kind is StorageType.FILE:
        return EncryptedFileStorage(settings.credentials_file, passphrase_resolver=_resolver(master_password))
    if kind is StorageType.SQLITE:
        return SqliteStorage(settings.sqlite_file, passphrase_resolver=_resolver(master_password))
    if kind is StorageType.KEYRING:
        if keyring_backend is None:
            keyring_backend = (
                FileKeyring(settings.keyring_path) if settings.keyring_path else load_keyring_backend()
            )
        return KeyringStorage(settings.keyring_index, backend=keyring_backend)
    raise ValueError(f"unsupported storage type {kind!r}")  # pragma: no cover - enum is closed


__all__ = ["MasterPassword", "create_storage"]
