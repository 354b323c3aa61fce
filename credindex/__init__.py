"""In-process credential index with undo/redo history and access analytics."""

from __future__ import annotations

from typing import Optional

from .analytics import AccessTracker
from .config import Settings, load_settings
from .errors import PersistenceError
from .history import Add, CommandLog, Mutation, Update
from .index import HashIndex
from .ranking import HeapRanker, RankingEntry
from .records import CredentialRecord, HistoryEntry
from .storage import StorageType
from .storage.factory import MasterPassword, create_storage
from .store import CredentialStore

__version__ = "0.1.0"


def open_store(master_password: MasterPassword, settings: Optional[Settings] = None) -> CredentialStore:
    """Open a :class:`CredentialStore` on the configured backend."""

    settings = settings or load_settings()
    backend = create_storage(settings.storage_type, master_password=master_password, settings=settings)
    return CredentialStore(
        backend,
        default_username=settings.default_username,
        case_sensitive=settings.case_sensitive,
        audit=settings.audit,
        audit_home=settings.home,
    )


__all__ = [
    "AccessTracker",
    "Add",
    "CommandLog",
    "CredentialRecord",
    "CredentialStore",
    "HashIndex",
    "HeapRanker",
    "HistoryEntry",
    "Mutation",
    "PersistenceError",
    "RankingEntry",
    "Settings",
    "StorageType",
    "Update",
    "__version__",
    "create_storage",
    "load_settings",
    "open_store",
]
