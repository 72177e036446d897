import json
from pathlib import Path

from src.taskmemo.core.local_store import (
    ROOMS_CACHE_KEY,
    ROOMS_CACHE_TIMESTAMP_KEY,
    TOKEN_KEY,
    JsonFileStore,
    MemoryStore,
)


def test_memory_store_set_get_delete():
    store = MemoryStore()
    assert store.get(TOKEN_KEY) is None
    store.set(TOKEN_KEY, "tok")
    assert store.get(TOKEN_KEY) == "tok"
    store.delete(TOKEN_KEY)
    assert store.get(TOKEN_KEY) is None
    store.delete("never-set")


def test_json_file_store_persists_across_instances(tmp_path: Path):
    path = tmp_path / "state" / "taskmemo.json"
    JsonFileStore(path).set(TOKEN_KEY, "tok")

    reopened = JsonFileStore(path)
    assert reopened.get(TOKEN_KEY) == "tok"
    assert json.loads(path.read_text(encoding="utf-8")) == {TOKEN_KEY: "tok"}


def test_json_file_store_set_many_writes_pair_in_one_replace(tmp_path: Path):
    path = tmp_path / "state.json"
    store = JsonFileStore(path)
    store.set(TOKEN_KEY, "tok")
    store.set_many({ROOMS_CACHE_KEY: "[]", ROOMS_CACHE_TIMESTAMP_KEY: "1000"})

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload == {TOKEN_KEY: "tok", ROOMS_CACHE_KEY: "[]", ROOMS_CACHE_TIMESTAMP_KEY: "1000"}
    assert not path.with_name("state.json.tmp").exists()


def test_json_file_store_missing_file_reads_empty(tmp_path: Path):
    store = JsonFileStore(tmp_path / "absent.json")
    assert store.get(TOKEN_KEY) is None
    store.delete(TOKEN_KEY)
    assert not (tmp_path / "absent.json").exists()


def test_json_file_store_corrupted_file_reads_empty_and_recovers(tmp_path: Path):
    path = tmp_path / "state.json"
    path.write_text("{ not json", encoding="utf-8")
    store = JsonFileStore(path)
    assert store.get(TOKEN_KEY) is None

    store.set(TOKEN_KEY, "fresh")
    assert store.get(TOKEN_KEY) == "fresh"


def test_json_file_store_ignores_non_object_root(tmp_path: Path):
    path = tmp_path / "state.json"
    path.write_text("[1, 2]", encoding="utf-8")
    assert JsonFileStore(path).get(TOKEN_KEY) is None
