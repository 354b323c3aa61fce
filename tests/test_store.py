"""Behavioural tests for the credential store façade."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Iterable, List

import pytest

from credindex.errors import PersistenceError
from credindex.history import Add, Update
from credindex.index import HashIndex
from credindex.records import CredentialRecord
from credindex.storage import MemoryStorage
from credindex.store import CredentialStore
from credindex.utils import logbook


def _access(store: CredentialStore, key: str, times: int) -> None:
    for _ in range(times):
        store.get_credential(key)


def test_add_and_get(store: CredentialStore, backend: MemoryStorage) -> None:
    assert store.loaded is True
    command = store.add_credential("gmail", "pass123")
    assert command == Add("gmail", "pass123")
    assert store.get_credential("gmail") == "pass123"
    assert store.get_credential("nonexistent") is None

    [record] = backend.read_all()
    assert record.service == "gmail"
    assert record.username == "default_user"
    assert record.secret == "pass123"


def test_add_existing_key_updates_in_place(store: CredentialStore, backend: MemoryStorage) -> None:
    store.add_credential("service", "pass1")
    command = store.add_credential("service", "pass2")
    assert command == Update("service", "pass1", "pass2")
    assert store.get_credential("service") == "pass2"
    assert len(backend.read_all()) == 1


def test_add_none_key_is_rejected(store: CredentialStore, backend: MemoryStorage) -> None:
    with pytest.raises(ValueError):
        store.add_credential(None, "value")  # type: ignore[arg-type]
    assert backend.writes == 0
    assert store.can_undo() is False


def test_special_character_keys(store: CredentialStore) -> None:
    keys = ["service@domain.com", "user name with spaces", "service/with/slashes", "", "ünïcødé"]
    for number, key in enumerate(keys):
        store.add_credential(key, f"pass{number}")
    for number, key in enumerate(keys):
        assert store.get_credential(key) == f"pass{number}"


def test_many_credentials_survive_index_growth(backend: MemoryStorage, fixed_clock) -> None:
    store = CredentialStore(backend, index=HashIndex(capacity=2), clock=fixed_clock, audit=False)
    for number in range(30):
        store.add_credential(f"service{number}", f"pass{number}")
    for number in range(30):
        assert store.get_credential(f"service{number}") == f"pass{number}"
    assert len(store.services()) == 30


def test_undo_add_removes_credential(store: CredentialStore, backend: MemoryStorage) -> None:
    store.add_credential("testservice", "testpass")
    assert store.can_undo() is True
    assert store.undo() is True
    assert store.get_credential("testservice") is None
    assert backend.read_all() == []


def test_undo_redo_inverse_law(store: CredentialStore) -> None:
    store.add_credential("k", "v1")
    store.add_credential("k", "v2")
    assert store.undo() is True
    assert store.get_credential("k") == "v1"
    assert store.redo() is True
    assert store.get_credential("k") == "v2"

    store.undo()
    store.add_credential("other", "x")
    assert store.can_redo() is False


def test_undo_redo_symmetry(store: CredentialStore) -> None:
    pairs = [(f"s{n}", f"p{n}") for n in range(6)]
    for key, value in pairs:
        store.add_credential(key, value)
    for _ in pairs:
        assert store.undo() is True
    assert store.services() == []
    for _ in pairs:
        assert store.redo() is True
    for key, value in pairs:
        assert store.get_credential(key) == value
    assert store.redo() is False


def test_mixed_undo_redo_sequence(store: CredentialStore) -> None:
    store.add_credential("service", "pass1")
    store.add_credential("service", "pass2")
    store.add_credential("service", "pass3")
    store.undo()
    assert store.get_credential("service") == "pass2"
    store.undo()
    assert store.get_credential("service") == "pass1"
    store.redo()
    assert store.get_credential("service") == "pass2"


def test_new_action_after_undo_clears_redo(store: CredentialStore) -> None:
    store.add_credential("s1", "p1")
    store.add_credential("s2", "p2")
    store.add_credential("s3", "p3")
    store.undo()
    store.undo()
    store.redo()
    store.add_credential("s4", "p4")
    assert store.get_credential("s1") == "p1"
    assert store.get_credential("s2") == "p2"
    assert store.get_credential("s3") is None
    assert store.get_credential("s4") == "p4"
    assert store.can_redo() is False


def test_can_undo_can_redo_flags(store: CredentialStore) -> None:
    assert (store.can_undo(), store.can_redo()) == (False, False)
    store.add_credential("test", "pass")
    assert (store.can_undo(), store.can_redo()) == (True, False)
    store.undo()
    assert (store.can_undo(), store.can_redo()) == (False, True)


def test_empty_undo_redo_change_nothing(store: CredentialStore, backend: MemoryStorage) -> None:
    store.add_credential("a", "1")
    store.get_credential("a")
    store.undo()
    store.redo()
    store.undo()
    store.undo()  # nothing left
    services = store.services()
    pattern = store.get_access_pattern("a")
    writes = backend.writes

    fresh = CredentialStore(MemoryStorage(), audit=False)
    assert fresh.undo() is False
    assert fresh.redo() is False

    assert store.undo() is False
    assert store.services() == services
    assert store.get_access_pattern("a") == pattern
    assert backend.writes == writes


def test_get_reloads_external_changes(store: CredentialStore, backend: MemoryStorage) -> None:
    store.add_credential("gmail", "old")
    records = backend.read_all()
    records[0].set_secret("rotated-elsewhere")
    records.append(CredentialRecord("dropbox", "u2", "p2"))
    backend.write_all(records)

    assert store.get_credential("gmail") == "rotated-elsewhere"
    assert store.get_credential("dropbox") == "p2"


def test_store_loads_existing_records_on_construction(fixed_clock) -> None:
    backend = MemoryStorage([CredentialRecord("github", "dev", "secure")])
    store = CredentialStore(backend, clock=fixed_clock, audit=False)
    assert store.services() == ["github"]
    store.add_credential("github", "rotated")
    assert store.can_undo()
    store.undo()
    assert store.get_credential("github") == "secure"


def test_access_is_recorded_at_clock_hour(store: CredentialStore) -> None:
    store.add_credential("gmail", "pass123")
    _access(store, "gmail", 3)
    assert store.get_access_pattern("gmail") == {14: 3}
    assert store.get_total_access_count("gmail") == 3
    assert store.get_access_pattern("nonexistent") == {}
    assert store.get_total_access_count("nonexistent") == 0


def test_access_pattern_spreads_across_hours(backend: MemoryStorage) -> None:
    hours = iter([8, 8, 22])
    store = CredentialStore(backend, clock=lambda: datetime(2024, 1, 1, next(hours)), audit=False)
    store.add_credential("svc", "x")
    _access(store, "svc", 3)
    assert store.get_access_pattern("svc") == {8: 2, 22: 1}


def test_most_accessed_services(store: CredentialStore) -> None:
    for key in ("gmail", "facebook", "twitter"):
        store.add_credential(key, "pw")
    _access(store, "gmail", 5)
    _access(store, "facebook", 3)
    _access(store, "twitter", 1)
    assert store.get_most_accessed_services(2) == ["gmail", "facebook"]
    assert store.get_most_accessed_services(0) == []


def test_most_accessed_with_large_limit(store: CredentialStore) -> None:
    store.add_credential("service1", "pass1")
    store.get_credential("service1")
    assert store.get_most_accessed_services(10) == ["service1"]


def test_most_used_by_rank_end_to_end(store: CredentialStore) -> None:
    counts = {"low": 1, "medium": 3, "high": 5, "veryHigh": 7}
    for key in counts:
        store.add_credential(key, f"pw-{key}")
    for key, times in counts.items():
        _access(store, key, times)
    assert store.get_most_used_by_rank() == [
        "veryHigh (7 accesses)",
        "high (5 accesses)",
        "medium (3 accesses)",
        "low (1 accesses)",
    ]
    assert [entry.key for entry in store.rank(2)] == ["veryHigh", "high"]


def test_most_used_by_rank_empty_and_single(store: CredentialStore) -> None:
    assert store.get_most_used_by_rank() == []
    store.add_credential("onlyService", "pass")
    store.get_credential("onlyService")
    assert store.get_most_used_by_rank() == ["onlyService (1 accesses)"]


def test_rank_large_dataset(store: CredentialStore) -> None:
    for number in range(20):
        store.add_credential(f"service{number}", f"pass{number}")
        _access(store, f"service{number}", number + 1)
    ranked = store.get_most_used_by_rank()
    assert len(ranked) == 20
    assert ranked[0] == "service19 (20 accesses)"
    assert ranked[-1] == "service0 (1 accesses)"


def test_add_write_failure_rolls_back(store: CredentialStore, backend: MemoryStorage) -> None:
    store.add_credential("kept", "v1")
    backend.fail_writes = True
    with pytest.raises(PersistenceError):
        store.add_credential("new", "value")
    with pytest.raises(PersistenceError):
        store.add_credential("kept", "v2")
    assert store.services() == ["kept"]
    assert store.can_undo() is True
    assert store.can_redo() is False

    backend.fail_writes = False
    assert store.get_credential("kept") == "v1"
    assert store.get_credential("new") is None
    store.undo()
    assert store.get_credential("kept") is None


def test_undo_failure_leaves_state_fully_applied(store: CredentialStore, backend: MemoryStorage) -> None:
    store.add_credential("a", "1")
    store.add_credential("a", "2")
    backend.fail_writes = True
    with pytest.raises(PersistenceError):
        store.undo()
    assert store.can_undo() is True
    assert store.can_redo() is False

    backend.fail_writes = False
    assert store.get_credential("a") == "2"
    assert store.undo() is True
    assert store.get_credential("a") == "1"


def test_redo_failure_keeps_command_on_redo_stack(store: CredentialStore, backend: MemoryStorage) -> None:
    store.add_credential("a", "1")
    store.undo()
    backend.fail_writes = True
    with pytest.raises(PersistenceError):
        store.redo()
    assert store.can_redo() is True
    assert store.services() == []
    backend.fail_writes = False
    assert store.redo() is True
    assert store.get_credential("a") == "1"


def test_read_failure_surfaces_from_get(store: CredentialStore, backend: MemoryStorage) -> None:
    store.add_credential("a", "1")
    backend.fail_reads = True
    with pytest.raises(PersistenceError):
        store.get_credential("a")
    assert store.get_total_access_count("a") == 0


class BrokenBackend:
    def __init__(self) -> None:
        self.records: List[CredentialRecord] = []

    def read_all(self) -> List[CredentialRecord]:
        return list(self.records)

    def write_all(self, records: Iterable[CredentialRecord]) -> None:
        raise OSError("disk full")


def test_unexpected_backend_errors_are_wrapped() -> None:
    store = CredentialStore(BrokenBackend(), audit=False)
    with pytest.raises(PersistenceError) as excinfo:
        store.add_credential("a", "1")
    assert isinstance(excinfo.value.__cause__, OSError)
    assert store.services() == []


def test_case_insensitive_policy(backend: MemoryStorage, fixed_clock) -> None:
    store = CredentialStore(backend, clock=fixed_clock, case_sensitive=False, audit=False)
    store.add_credential("GitHub", "one")
    store.add_credential("github", "two")
    assert store.get_credential("GITHUB") == "two"
    assert [record.service for record in backend.read_all()] == ["github"]
    assert store.get_total_access_count("GitHub") == 1
    store.undo()
    assert store.get_credential("github") == "one"


def test_case_sensitive_policy_keeps_records_apart(store: CredentialStore, backend: MemoryStorage) -> None:
    store.add_credential("GitHub", "one")
    store.add_credential("github", "two")
    assert store.get_credential("GitHub") == "one"
    assert store.get_credential("github") == "two"
    assert sorted(record.service for record in backend.read_all()) == ["GitHub", "github"]


def test_updates_extend_secret_history(store: CredentialStore) -> None:
    store.add_credential("svc", "p1")
    store.add_credential("svc", "p2")
    store.add_credential("svc", "p3")
    assert [entry.secret for entry in store.get_secret_history("svc")] == ["p1", "p2", "p3"]
    assert store.get_secret_history("missing") == []


def test_generate_credential(store: CredentialStore, backend: MemoryStorage) -> None:
    secret = store.generate_credential("bank", 24, username="alice")
    assert len(secret) == 24
    assert store.get_credential("bank") == secret
    [record] = backend.read_all()
    assert record.username == "alice"

    store.undo()
    assert store.get_credential("bank") is None

    with pytest.raises(ValueError):
        store.generate_credential("bank", 0)
    with pytest.raises(ValueError):
        store.generate_credential("bank", -5)


def test_audit_trail_masks_secrets(backend: MemoryStorage, isolated_home) -> None:
    store = CredentialStore(backend, audit=True)
    store.add_credential("gmail", "hunter2")
    store.undo()
    store.redo()

    audit_path = logbook.audit_log()
    lines = audit_path.read_text(encoding="utf-8").strip().splitlines()
    actions = [json.loads(line)["record"]["action"] for line in lines]
    assert actions == ["credential_add", "credential_undo", "credential_redo"]
    assert "hunter2" not in audit_path.read_text(encoding="utf-8")
    assert logbook.verify_chain() == 3


def test_unwritable_audit_directory_does_not_mask_outcome(
    backend: MemoryStorage, tmp_path, monkeypatch: pytest.MonkeyPatch
) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    monkeypatch.setenv("CREDINDEX_HOME", str(blocker / "home"))
    store = CredentialStore(backend, audit=True)

    store.add_credential("a", "v1")
    assert [(record.service, record.secret) for record in backend.read_all()] == [("a", "v1")]
    assert store.can_undo() is True

    backend.fail_writes = True
    with pytest.raises(PersistenceError):
        store.add_credential("a", "v2")
    with pytest.raises(PersistenceError):
        store.undo()
    backend.fail_writes = False

    assert store.get_credential("a") == "v1"
    assert store.undo() is True
    assert store.get_credential("a") is None


def test_audit_records_follow_audit_home(backend: MemoryStorage, tmp_path, isolated_home) -> None:
    audit_home = tmp_path / "elsewhere"
    store = CredentialStore(backend, audit=True, audit_home=audit_home)
    store.add_credential("gmail", "hunter2")

    assert logbook.verify_chain(logbook.audit_log(audit_home)) == 1
    assert not logbook.audit_log(isolated_home).exists()
