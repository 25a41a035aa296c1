"""Tests for the key-value stores and schema versioning."""

import json

import pytest

from src.personalization.storage import (
    SCHEMA_VERSION,
    InMemoryStore,
    JsonFileStore,
    StorageError,
    StorageKeys,
    check_schema_version,
    mark_schema_version,
)


def test_in_memory_store_basic_operations():
    """Test get, set, remove and keys on the in-memory store."""
    store = InMemoryStore()
    assert store.get("missing") is None

    store.set("a", "1")
    store.set("b", "2")
    assert store.get("a") == "1"
    assert sorted(store.keys()) == ["a", "b"]

    store.remove("a")
    store.remove("never-set")
    assert store.get("a") is None
    assert store.keys() == ["b"]


def test_store_rejects_non_string_values():
    """Test that stores only accept string values."""
    with pytest.raises(StorageError):
        InMemoryStore().set("a", 1)


def test_read_json_returns_default_for_corrupted_value():
    """Test that corrupted JSON reads as the default instead of raising."""
    store = InMemoryStore({"history": "{not json"})
    assert store.read_json("history", default=[]) == []
    assert store.read_json("missing", default={}) == {}


def test_write_json_round_trip_and_unserializable_value():
    """Test JSON helpers store decodable values and reject unserializable ones."""
    store = InMemoryStore()
    store.write_json("counts", {"P1": 3})
    assert json.loads(store.get("counts")) == {"P1": 3}
    assert store.read_json("counts") == {"P1": 3}

    with pytest.raises(StorageError):
        store.write_json("bad", {"value": object()})


def test_lock_is_reentrant():
    """Test that the per-key lock can be re-acquired by the same thread."""
    store = InMemoryStore()
    with store.lock("key"):
        with store.lock("key"):
            store.set("key", "value")
    assert store.get("key") == "value"


def test_json_file_store_persists_across_instances(tmp_path):
    """Test that a second store over the same file sees earlier writes."""
    path = tmp_path / "nested" / "store.json"
    first = JsonFileStore(str(path))
    first.write_json("product_view_count", {"P1": 2})

    assert path.exists()
    second = JsonFileStore(str(path))
    assert second.read_json("product_view_count") == {"P1": 2}

    second.remove("product_view_count")
    assert first.get("product_view_count") is None


def test_json_file_store_starts_empty_on_corrupted_file(tmp_path):
    """Test that an unreadable store file is treated as empty."""
    path = tmp_path / "store.json"
    path.write_text("[1, 2", encoding="utf-8")

    store = JsonFileStore(str(path))
    assert store.keys() == []

    store.set("a", "1")
    assert json.loads(path.read_text(encoding="utf-8")) == {"a": "1"}


def test_schema_version_checks():
    """Test that missing and current versions are readable, newer ones are not."""
    store = InMemoryStore()
    assert check_schema_version(store) is True

    mark_schema_version(store)
    assert store.read_json(StorageKeys.SCHEMA_VERSION) == SCHEMA_VERSION
    assert check_schema_version(store) is True

    store.write_json(StorageKeys.SCHEMA_VERSION, SCHEMA_VERSION + 1)
    assert check_schema_version(store) is False

    store.write_json(StorageKeys.SCHEMA_VERSION, "one")
    assert check_schema_version(store) is False


def test_mark_schema_version_keeps_existing_marker():
    """Test that marking does not overwrite a version already stored."""
    store = InMemoryStore({StorageKeys.SCHEMA_VERSION: "7"})
    mark_schema_version(store)
    assert store.get(StorageKeys.SCHEMA_VERSION) == "7"


def test_personalization_keys_lists_eight_keys():
    """Test that the clearable key set is the eight personalization keys."""
    keys = StorageKeys.personalization_keys()
    assert len(keys) == 8
    assert StorageKeys.PERFORMANCE_DATA not in keys
    assert StorageKeys.SCHEMA_VERSION not in keys
