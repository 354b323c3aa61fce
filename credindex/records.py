"""Persisted credential records and their secret history."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

DEFAULT_USERNAME = "default_user"


@dataclass(frozen=True)
class HistoryEntry:
    """A secret that was assigned to a record, stamped in epoch milliseconds."""

    secret: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {"secret": self.secret, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "HistoryEntry":
        return cls(secret=str(payload["secret"]), timestamp=int(payload["timestamp"]))


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class CredentialRecord:
    """A service/username/secret triple as stored by a persistence backend.

    A new record starts with its initial secret as the only history entry.
    :meth:`set_secret` replaces the secret silently while
    :meth:`set_secret_with_history` also appends it to the history, oldest
    first.
    """

    service: str
    username: str
    secret: str
    history: Optional[List[HistoryEntry]] = None

    def __post_init__(self) -> None:
        if self.history is None:
            self.history = [HistoryEntry(self.secret, _now_ms())]

    def set_secret(self, secret: str) -> None:
        self.secret = secret

    def set_secret_with_history(self, secret: str) -> None:
        self.secret = secret
        self.history.append(HistoryEntry(secret, _now_ms()))

    def clear_history(self) -> None:
        self.history.clear()

    @property
    def history_size(self) -> int:
        return len(self.history)

    def secret_history(self) -> List[HistoryEntry]:
        return list(self.history)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "username": self.username,
            "secret": self.secret,
            "history": [entry.to_dict() for entry in self.history],
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "CredentialRecord":
        history = payload.get("history")
        return cls(
            service=str(payload["service"]),
            username=str(payload.get("username", DEFAULT_USERNAME)),
            secret=str(payload["secret"]),
            history=[HistoryEntry.from_dict(item) for item in history] if isinstance(history, list) else None,
        )

    def __repr__(self) -> str:
        return f"CredentialRecord(service={self.service!r}, username={self.username!r}, secret='***')"


__all__ = ["CredentialRecord", "DEFAULT_USERNAME", "HistoryEntry"]
