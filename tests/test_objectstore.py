"""Unit tests for the object stores behind the sync endpoint."""

import pytest

from pomotrack.server.objectstore import (
    DirectoryObjectStore,
    MemoryObjectStore,
    ObjectNotFound,
    date_of_key,
    daily_key,
)


@pytest.fixture(params=["memory", "directory"])
def object_store(request, tmp_path):
    if request.param == "memory":
        return MemoryObjectStore()
    return DirectoryObjectStore(tmp_path / "objects")


def test_daily_key_format():
    assert daily_key("2025-03-10") == "daily-logs/2025-03-10.json"


def test_date_of_key():
    assert date_of_key("daily-logs/2025-03-10.json") == "2025-03-10"
    assert date_of_key("daily-logs/notes.txt") is None


def test_put_get(object_store):
    object_store.put("daily-logs/2025-03-10.json", b"{}")
    assert object_store.get("daily-logs/2025-03-10.json") == b"{}"


def test_get_missing_raises(object_store):
    with pytest.raises(ObjectNotFound):
        object_store.get("daily-logs/2025-03-10.json")


def test_json_helpers(object_store):
    object_store.put_json("a/b.json", {"name": "Café"})
    assert object_store.get_json("a/b.json") == {"name": "Café"}


def test_list_keys_sorted_by_prefix(object_store):
    for key in ("daily-logs/2025-03-02.json", "daily-logs/2025-03-01.json", "other/x.json"):
        object_store.put(key, b"{}")
    assert object_store.list_keys("daily-logs/") == [
        "daily-logs/2025-03-01.json",
        "daily-logs/2025-03-02.json",
    ]


def test_directory_store_rejects_escaping_keys(tmp_path):
    store = DirectoryObjectStore(tmp_path)
    with pytest.raises(ValueError):
        store.put("../outside.json", b"{}")


def test_directory_store_empty_root(tmp_path):
    assert DirectoryObjectStore(tmp_path / "missing").list_keys() == []
