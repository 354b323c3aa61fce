"""Environment driven configuration for credindex."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .records import DEFAULT_USERNAME
from .storage.base import StorageType
from .utils.paths import state_dir

STORAGE_ENV = "CREDINDEX_STORAGE"
USERNAME_ENV = "CREDINDEX_DEFAULT_USERNAME"
CASE_SENSITIVE_ENV = "CREDINDEX_CASE_SENSITIVE"
AUDIT_ENV = "CREDINDEX_AUDIT"
KEYRING_PATH_ENV = "CREDINDEX_KEYRING_PATH"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _flag(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """Resolved runtime options for a credential store session."""

    home: Path
    storage_type: StorageType = StorageType.FILE
    default_username: str = DEFAULT_USERNAME
    case_sensitive: bool = True
    audit: bool = True
    keyring_path: Optional[Path] = None

    @property
    def credentials_file(self) -> Path:
        return self.home / "credentials.enc"

    @property
    def sqlite_file(self) -> Path:
        return self.home / "credentials.sqlite3"

    @property
    def keyring_index(self) -> Path:
        return self.home / "keyring_index.json"


def load_settings(env_file: Optional[Path] = None, *, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from the environment.

    When *env_file* is given (or a ``.env`` exists in the working directory)
    it is loaded first with :func:`dotenv.load_dotenv`; variables already
    present in the process environment win. Passing *environ* skips the
    ``.env`` lookup entirely and reads only from that mapping.
    """

    if environ is None:
        load_dotenv(dotenv_path=env_file, override=False)
        environ = os.environ
    home = state_dir(environ)
    keyring_path = environ.get(KEYRING_PATH_ENV)
    return Settings(
        home=home,
        storage_type=StorageType.parse(environ.get(STORAGE_ENV, StorageType.FILE.value)),
        default_username=environ.get(USERNAME_ENV) or DEFAULT_USERNAME,
        case_sensitive=_flag(environ, CASE_SENSITIVE_ENV, True),
        audit=_flag(environ, AUDIT_ENV, True),
        keyring_path=Path(keyring_path).expanduser() if keyring_path else None,
    )


__all__ = ["Settings", "load_settings"]
