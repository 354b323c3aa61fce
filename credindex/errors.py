"""Exception types shared across credindex."""

from __future__ import annotations


class PersistenceError(RuntimeError):
    """Raised when a persistence backend cannot read or write credential records."""


__all__ = ["PersistenceError"]
