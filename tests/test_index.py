"""Tests for the chained hash index."""

from __future__ import annotations

import pytest

from credindex.index import DEFAULT_CAPACITY, HashIndex, fnv1a_32


def test_put_get_remove_roundtrip() -> None:
    index: HashIndex[str] = HashIndex()
    assert index.put("gmail", "pass1") is None
    assert index.get("gmail") == "pass1"
    assert index.put("gmail", "pass2") == "pass1"
    assert index.get("gmail") == "pass2"
    assert index.size() == 1

    assert index.remove("gmail") == "pass2"
    assert index.get("gmail") is None
    assert index.remove("gmail") is None
    assert index.size() == 0


def test_none_key_handling() -> None:
    index: HashIndex[str] = HashIndex()
    with pytest.raises(ValueError):
        index.put(None, "value")  # type: ignore[arg-type]
    assert index.get(None) is None
    assert index.remove(None) is None
    assert index.contains_key(None) is False


def test_keys_are_case_sensitive() -> None:
    index: HashIndex[str] = HashIndex()
    index.put("GitHub", "upper")
    index.put("github", "lower")
    assert index.get("GitHub") == "upper"
    assert index.get("github") == "lower"
    assert index.size() == 2


def test_empty_string_key_is_valid() -> None:
    index: HashIndex[str] = HashIndex()
    index.put("", "empty")
    assert index.contains_key("")
    assert index.get("") == "empty"


def test_colliding_keys_survive_resize() -> None:
    index: HashIndex[str] = HashIndex(capacity=2, hasher=lambda key: 7)
    for number in range(25):
        index.put(f"service{number}", f"pass{number}")
    assert index.capacity > 2
    for number in range(25):
        assert index.get(f"service{number}") == f"pass{number}"
    assert index.remove("service12") == "pass12"
    assert index.get("service13") == "pass13"
    assert index.size() == 24


def test_resize_doubles_capacity_at_load_factor() -> None:
    index: HashIndex[str] = HashIndex()
    for number in range(12):
        index.put(f"k{number}", "v")
    assert index.capacity == DEFAULT_CAPACITY
    index.put("k12", "v")
    assert index.capacity == DEFAULT_CAPACITY * 2


def test_resize_transparency_across_two_growths() -> None:
    index: HashIndex[str] = HashIndex()
    total = 100
    for number in range(total):
        index.put(f"service{number}", f"password{number}")
    assert index.size() == total
    assert index.capacity >= DEFAULT_CAPACITY * 4
    for number in range(total):
        assert index.get(f"service{number}") == f"password{number}"
    assert index.get(f"service{total}") is None


def test_overwrite_does_not_grow() -> None:
    index: HashIndex[str] = HashIndex(capacity=4)
    for _ in range(10):
        index.put("same", "value")
    assert index.size() == 1
    assert index.capacity == 4


def test_keys_values_and_clear() -> None:
    index: HashIndex[str] = HashIndex()
    for key in ("abc", "acb", "bac", "bca", "cab", "cba"):
        index.put(key, key.upper())
    assert sorted(index.keys()) == ["abc", "acb", "bac", "bca", "cab", "cba"]
    assert sorted(index.values()) == ["ABC", "ACB", "BAC", "BCA", "CAB", "CBA"]
    assert "bca" in index
    assert len(index) == 6

    capacity = index.capacity
    index.clear()
    assert index.size() == 0
    assert index.keys() == []
    assert index.capacity == capacity


def test_negative_hashes_map_to_valid_slots() -> None:
    index: HashIndex[str] = HashIndex(hasher=lambda key: -len(key) * 31)
    for key in ("a", "bb", "ccc"):
        index.put(key, key)
    assert [index.get(key) for key in ("a", "bb", "ccc")] == ["a", "bb", "ccc"]


def test_fnv1a_is_stable() -> None:
    assert fnv1a_32("") == 0x811C9DC5
    assert fnv1a_32("a") == 0xE40C292C
    assert fnv1a_32("service") == fnv1a_32("service")
