"""Core types shared by the flow controller, cache and clients."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

StatusKind = Literal["success", "error", "neutral"]
RoomsState = Literal["uninitialized", "token_missing", "loading", "ready", "error"]
TaskState = Literal["idle", "sending", "sent", "error"]
CacheState = Literal["fresh", "expired", "absent", "corrupt"]


@dataclass(frozen=True, slots=True)
class Room:
    """Destination room as shown in the room picker."""

    id: int
    name: str

    @classmethod
    def from_upstream(cls, item: Any) -> "Room":
        if not isinstance(item, dict):
            raise ValueError("Room entry must be a JSON object.")
        room_id = item.get("room_id")
        name = item.get("name")
        if isinstance(room_id, bool) or not isinstance(room_id, int):
            raise ValueError("Room entry requires integer `room_id`.")
        if not isinstance(name, str):
            raise ValueError("Room entry requires string `name`.")
        return cls(id=room_id, name=name)

    def to_upstream(self) -> dict[str, Any]:
        return {"room_id": self.id, "name": self.name}


def parse_room_list(payload: Any) -> list[Room]:
    """Convert an upstream room-list payload; raise `ValueError` when malformed."""
    if not isinstance(payload, list):
        raise ValueError("Room list must be a JSON array.")
    return [Room.from_upstream(item) for item in payload]


@dataclass(frozen=True, slots=True)
class StatusMessage:
    text: str = ""
    kind: StatusKind = "neutral"

    @classmethod
    def success(cls, text: str) -> "StatusMessage":
        return cls(text=text, kind="success")

    @classmethod
    def error(cls, text: str) -> "StatusMessage":
        return cls(text=text, kind="error")

    @classmethod
    def neutral(cls, text: str) -> "StatusMessage":
        return cls(text=text, kind="neutral")

    @property
    def is_error(self) -> bool:
        return self.kind == "error"


@dataclass(frozen=True, slots=True)
class CacheLookup:
    state: CacheState
    rooms: list[Room] | None = None
    fetched_at_ms: int | None = None
