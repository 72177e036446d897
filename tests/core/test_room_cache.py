import json

import pytest

from src.taskmemo.core.local_store import ROOMS_CACHE_KEY, ROOMS_CACHE_TIMESTAMP_KEY, MemoryStore
from src.taskmemo.core.memo_types import Room
from src.taskmemo.core.room_cache import CACHE_DURATION_MS, RoomListCache

NOW_MS = 1_700_000_000_000


def _store_with(payload: str | None, timestamp: str | None) -> MemoryStore:
    store = MemoryStore()
    if payload is not None:
        store.set(ROOMS_CACHE_KEY, payload)
    if timestamp is not None:
        store.set(ROOMS_CACHE_TIMESTAMP_KEY, timestamp)
    return store


@pytest.mark.parametrize(
    ("age_ms", "expected"),
    [
        (0, "fresh"),
        (60 * 60 * 1000, "fresh"),
        (CACHE_DURATION_MS - 1, "fresh"),
        (CACHE_DURATION_MS, "expired"),
        (CACHE_DURATION_MS + 1, "expired"),
    ],
)
def test_lookup_freshness_boundary(age_ms: int, expected: str):
    store = _store_with('[{"room_id": 1, "name": "General"}]', str(NOW_MS - age_ms))
    assert RoomListCache(store).lookup(NOW_MS).state == expected


def test_lookup_fresh_returns_rooms():
    store = _store_with('[{"room_id": 1, "name": "General", "unread_num": 3}]', str(NOW_MS - 1000))
    lookup = RoomListCache(store).lookup(NOW_MS)
    assert lookup.rooms == [Room(id=1, name="General")]
    assert lookup.fetched_at_ms == NOW_MS - 1000


def test_lookup_absent_when_either_key_missing():
    assert RoomListCache(_store_with(None, None)).lookup(NOW_MS).state == "absent"
    assert RoomListCache(_store_with("[]", None)).lookup(NOW_MS).state == "absent"
    assert RoomListCache(_store_with(None, str(NOW_MS))).lookup(NOW_MS).state == "absent"


@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        '{"room_id": 1}',
        '[{"room_id": "1", "name": "General"}]',
        '[{"room_id": 1}]',
    ],
)
def test_lookup_corrupt_payload_never_raises(payload: str):
    lookup = RoomListCache(_store_with(payload, str(NOW_MS))).lookup(NOW_MS)
    assert lookup.state == "corrupt"
    assert lookup.rooms is None


def test_lookup_corrupt_timestamp():
    lookup = RoomListCache(_store_with("[]", "yesterday")).lookup(NOW_MS)
    assert lookup.state == "corrupt"


def test_write_stores_upstream_shape_and_timestamp():
    store = MemoryStore()
    cache = RoomListCache(store)
    cache.write([Room(id=1, name="General"), Room(id=2, name="Dev")], NOW_MS)

    assert json.loads(store.get(ROOMS_CACHE_KEY)) == [
        {"room_id": 1, "name": "General"},
        {"room_id": 2, "name": "Dev"},
    ]
    assert store.get(ROOMS_CACHE_TIMESTAMP_KEY) == str(NOW_MS)
    assert cache.age_ms(NOW_MS + 500) == 500
