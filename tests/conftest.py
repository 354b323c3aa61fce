from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import Callable

import keyring
import keyring.backend
import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from credindex.storage import MemoryStorage  # noqa: E402
from credindex.store import CredentialStore  # noqa: E402


class MemoryKeyring(keyring.backend.KeyringBackend):
    priority = 1

    def __init__(self) -> None:
        self._data: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        return self._data.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self._data[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        self._data.pop((service, username), None)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    monkeypatch.setenv("CREDINDEX_HOME", str(home))
    for name in (
        "CREDINDEX_STORAGE",
        "CREDINDEX_DEFAULT_USERNAME",
        "CREDINDEX_CASE_SENSITIVE",
        "CREDINDEX_AUDIT",
        "CREDINDEX_KEYRING_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    keyring.set_keyring(MemoryKeyring())
    return home


@pytest.fixture()
def memory_keyring() -> MemoryKeyring:
    return MemoryKeyring()


@pytest.fixture()
def fixed_clock() -> Callable[[], datetime]:
    return lambda: datetime(2024, 5, 17, 14, 30)


@pytest.fixture()
def backend() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def store(backend: MemoryStorage, fixed_clock: Callable[[], datetime]) -> CredentialStore:
    return CredentialStore(backend, clock=fixed_clock, audit=False)
