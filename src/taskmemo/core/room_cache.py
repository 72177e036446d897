"""Read-through cache of the room list with a fixed 24 hour lifetime."""

from __future__ import annotations

import json
import logging

from .local_store import ROOMS_CACHE_KEY, ROOMS_CACHE_TIMESTAMP_KEY, KeyValueStore
from .memo_types import CacheLookup, Room, parse_room_list

logger = logging.getLogger("taskmemo.room_cache")

CACHE_DURATION_MS = 24 * 60 * 60 * 1000


class RoomListCache:
    def __init__(self, store: KeyValueStore, *, duration_ms: int = CACHE_DURATION_MS) -> None:
        self._store = store
        self.duration_ms = duration_ms

    def lookup(self, now_ms: int) -> CacheLookup:
        """Classify the stored pair as fresh, expired, absent or corrupt.

        Never raises: anything that does not parse is reported as `corrupt`.
        """
        payload = self._store.get(ROOMS_CACHE_KEY)
        raw_timestamp = self._store.get(ROOMS_CACHE_TIMESTAMP_KEY)
        if not payload or not raw_timestamp:
            return CacheLookup(state="absent")

        try:
            fetched_at_ms = int(raw_timestamp.strip())
        except ValueError:
            logger.warning("Room cache timestamp is not an integer: %r", raw_timestamp)
            return CacheLookup(state="corrupt")

        if now_ms - fetched_at_ms >= self.duration_ms:
            return CacheLookup(state="expired", fetched_at_ms=fetched_at_ms)

        try:
            rooms = parse_room_list(json.loads(payload))
        except ValueError as exc:
            # json.JSONDecodeError is a ValueError as well.
            logger.warning("Cached room list is corrupted: %s", exc)
            return CacheLookup(state="corrupt", fetched_at_ms=fetched_at_ms)
        return CacheLookup(state="fresh", rooms=rooms, fetched_at_ms=fetched_at_ms)

    def write(self, rooms: list[Room], now_ms: int) -> None:
        payload = json.dumps([room.to_upstream() for room in rooms], ensure_ascii=False)
        self._store.set_many({ROOMS_CACHE_KEY: payload, ROOMS_CACHE_TIMESTAMP_KEY: str(int(now_ms))})

    def age_ms(self, now_ms: int) -> int | None:
        raw_timestamp = self._store.get(ROOMS_CACHE_TIMESTAMP_KEY)
        if not raw_timestamp:
            return None
        try:
            return now_ms - int(raw_timestamp.strip())
        except ValueError:
            return None
