"""Chained hash index mapping service keys to secrets."""

from __future__ import annotations

from typing import Callable, Generic, Iterator, List, Optional, Protocol, Tuple, TypeVar

V = TypeVar("V")

DEFAULT_CAPACITY = 16
LOAD_FACTOR = 0.75

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193


def fnv1a_32(key: str) -> int:
    """Return the 32-bit FNV-1a hash of *key* encoded as UTF-8.

    Python's builtin :func:`hash` is salted per process, so the index uses a
    stable function instead. Bucket placement is therefore reproducible
    between runs.
    """

    value = _FNV_OFFSET
    for byte in key.encode("utf-8"):
        value ^= byte
        value = (value * _FNV_PRIME) & 0xFFFFFFFF
    return value


class Index(Protocol[V]):
    """Minimal associative contract the credential store relies on."""

    def put(self, key: str, value: V) -> Optional[V]:
        ...

    def get(self, key: Optional[str]) -> Optional[V]:
        ...

    def remove(self, key: Optional[str]) -> Optional[V]:
        ...

    def contains_key(self, key: Optional[str]) -> bool:
        ...

    def size(self) -> int:
        ...

    def keys(self) -> List[str]:
        ...

    def values(self) -> List[V]:
        ...

    def clear(self) -> None:
        ...


class _Entry(Generic[V]):
    __slots__ = ("key", "value", "next")

    def __init__(self, key: str, value: V, next: Optional["_Entry[V]"]) -> None:
        self.key = key
        self.value = value
        self.next = next


class HashIndex(Generic[V]):
    """Separate-chaining hash table with load-factor driven doubling.

    New entries are linked at the head of their bucket chain. Before a new
    key is inserted the table checks ``size / capacity`` against
    :data:`LOAD_FACTOR` and, when reached, doubles the bucket array and
    rehashes every entry synchronously.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        *,
        hasher: Callable[[str], int] = fnv1a_32,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._hasher = hasher
        self._buckets: List[Optional[_Entry[V]]] = [None] * capacity
        self._size = 0

    # -- helpers --------------------------------------------------------
    def _slot(self, key: str, capacity: Optional[int] = None) -> int:
        # Python's modulo keeps the slot non-negative even for negative hashes.
        return self._hasher(key) % (capacity or len(self._buckets))

    def _find(self, key: str) -> Optional[_Entry[V]]:
        entry = self._buckets[self._slot(key)]
        while entry is not None:
            if entry.key == key:
                return entry
            entry = entry.next
        return None

    def _resize(self) -> None:
        capacity = len(self._buckets) * 2
        buckets: List[Optional[_Entry[V]]] = [None] * capacity
        for head in self._buckets:
            entry = head
            while entry is not None:
                following = entry.next
                slot = self._slot(entry.key, capacity)
                entry.next = buckets[slot]
                buckets[slot] = entry
                entry = following
        self._buckets = buckets

    # -- public API -----------------------------------------------------
    @property
    def capacity(self) -> int:
        return len(self._buckets)

    def put(self, key: str, value: V) -> Optional[V]:
        """Store *value* under *key* and return the value it replaced."""

        if key is None:
            raise ValueError("key must not be None")
        existing = self._find(key)
        if existing is not None:
            previous = existing.value
            existing.value = value
            return previous
        if self._size / len(self._buckets) >= LOAD_FACTOR:
            self._resize()
        slot = self._slot(key)
        self._buckets[slot] = _Entry(key, value, self._buckets[slot])
        self._size += 1
        return None

    def get(self, key: Optional[str]) -> Optional[V]:
        if key is None:
            return None
        entry = self._find(key)
        return entry.value if entry is not None else None

    def remove(self, key: Optional[str]) -> Optional[V]:
        if key is None:
            return None
        slot = self._slot(key)
        previous: Optional[_Entry[V]] = None
        entry = self._buckets[slot]
        while entry is not None:
            if entry.key == key:
                if previous is None:
                    self._buckets[slot] = entry.next
                else:
                    previous.next = entry.next
                self._size -= 1
                return entry.value
            previous = entry
            entry = entry.next
        return None

    def contains_key(self, key: Optional[str]) -> bool:
        if key is None:
            return False
        return self._find(key) is not None

    def size(self) -> int:
        return self._size

    def items(self) -> List[Tuple[str, V]]:
        pairs: List[Tuple[str, V]] = []
        for head in self._buckets:
            entry = head
            while entry is not None:
                pairs.append((entry.key, entry.value))
                entry = entry.next
        return pairs

    def keys(self) -> List[str]:
        return [key for key, _ in self.items()]

    def values(self) -> List[V]:
        return [value for _, value in self.items()]

    def clear(self) -> None:
        self._buckets = [None] * len(self._buckets)
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.contains_key(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __repr__(self) -> str:
        return f"HashIndex(size={self._size}, capacity={len(self._buckets)})"


__all__ = ["DEFAULT_CAPACITY", "HashIndex", "Index", "LOAD_FACTOR", "fnv1a_32"]
