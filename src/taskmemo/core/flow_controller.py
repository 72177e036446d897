"""Client-side flow: credential, cached room list and task submission."""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from threading import Lock
from typing import Any, Callable, Iterator, Protocol

from .local_store import TOKEN_KEY, KeyValueStore
from .memo_types import Room, RoomsState, StatusMessage, TaskState, parse_room_list
from .proxy_client import ProxyError, ProxyResponse
from .room_cache import RoomListCache

logger = logging.getLogger("taskmemo.flow_controller")

TASK_DUE_OFFSET_SEC = 7 * 24 * 60 * 60
STATUS_MAX_CHARS = 100


class ForwardingClient(Protocol):
    def get_identity(self, token: str) -> ProxyResponse: ...

    def get_rooms(self, token: str) -> ProxyResponse: ...

    def create_task(self, token: str, room_id: str, *, body: str, to_ids: str, limit: str) -> ProxyResponse: ...


class UpstreamCallError(RuntimeError):
    """A forwarding endpoint answered with a non-2xx status or an unusable body."""

    def __init__(self, message: str, *, status_code: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class SubmissionError(UpstreamCallError):
    """A step of task submission failed."""


class ActionInProgress(RuntimeError):
    pass


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


def _describe(label: str, response: ProxyResponse) -> str:
    return f"Chatwork API error ({label}): {response.status_code} - {json.dumps(response.payload, ensure_ascii=False)}"


def truncate_status(text: str, limit: int = STATUS_MAX_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def compute_due_time(now_ms: int) -> int:
    """Unix seconds one week after `now_ms`."""
    return now_ms // 1000 + TASK_DUE_OFFSET_SEC


class TaskMemoController:
    """Owns UI state and orchestrates the forwarding-endpoint calls.

    Rooms and task submission are tracked as two independent states. Each
    action kind allows one call in flight at a time; a second call of the same
    kind is refused without issuing a request.
    """

    def __init__(
        self,
        client: ForwardingClient,
        store: KeyValueStore,
        *,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.cache = RoomListCache(store)
        self._clock_ms = clock_ms or _wall_clock_ms

        self.token_input = ""
        self.rooms: list[Room] = []
        self.selected_room_id = ""
        self.memo_text = ""
        self.status = StatusMessage()
        self.rooms_state: RoomsState = "uninitialized"
        self.task_state: TaskState = "idle"

        self._rooms_lock = Lock()
        self._task_lock = Lock()

    # ---- helpers ----
    def _set_status(self, status: StatusMessage) -> StatusMessage:
        self.status = status
        return status

    @contextmanager
    def _exclusive(self, lock: Lock, busy_text: str) -> Iterator[None]:
        if not lock.acquire(blocking=False):
            raise ActionInProgress(busy_text)
        try:
            yield
        finally:
            lock.release()

    def stored_token(self) -> str | None:
        value = self.store.get(TOKEN_KEY)
        return value if value and value.strip() else None

    # ---- actions ----
    def startup(self) -> StatusMessage:
        token = self.stored_token()
        if token is None:
            self.rooms = []
            self.rooms_state = "token_missing"
            return self._set_status(StatusMessage.neutral("Enter your Chatwork API token."))
        self.token_input = token
        return self.load_rooms(token)

    def load_rooms(self, token: str, force_fetch: bool = False) -> StatusMessage:
        try:
            with self._exclusive(self._rooms_lock, "Room list request already in progress."):
                return self._load_rooms(token, force_fetch)
        except ActionInProgress as exc:
            return self._set_status(StatusMessage.error(str(exc)))

    def _load_rooms(self, token: str, force_fetch: bool) -> StatusMessage:
        if not token or not token.strip():
            self.rooms = []
            self.selected_room_id = ""
            self.rooms_state = "token_missing"
            return self._set_status(StatusMessage.error("API token is not set."))

        if not force_fetch:
            lookup = self.cache.lookup(self._clock_ms())
            if lookup.state == "fresh" and lookup.rooms is not None:
                self.rooms = lookup.rooms
                self.rooms_state = "ready"
                return self._set_status(StatusMessage.success("Loaded room list from cache."))
            if lookup.state == "corrupt":
                logger.warning("Cached room list is corrupted, fetching new data.")
            elif lookup.state == "expired":
                self._set_status(StatusMessage.neutral("Room list cache expired. Refreshing..."))

        self.rooms = []
        self.rooms_state = "loading"
        self._set_status(StatusMessage.neutral("Fetching room list from Chatwork API..."))
        try:
            response = self.client.get_rooms(token)
            if not response.ok:
                raise UpstreamCallError(_describe("room list", response), status_code=response.status_code, payload=response.payload)
            rooms = parse_room_list(response.payload)
        except (ProxyError, UpstreamCallError, ValueError) as exc:
            logger.error("Room list fetch failed: %s", exc)
            self.rooms = []
            self.rooms_state = "error"
            return self._set_status(StatusMessage.error(f"Failed to load room list: {exc}"))

        try:
            self.cache.write(rooms, self._clock_ms())
        except OSError as exc:
            logger.warning("Could not cache room list: %s", exc)
        self.rooms = rooms
        self.rooms_state = "ready"
        return self._set_status(StatusMessage.success("Room list loaded."))

    def save_token(self, raw: str | None = None) -> StatusMessage:
        token = (self.token_input if raw is None else raw).strip()
        if not token:
            return self._set_status(StatusMessage.error("Enter an API token."))
        try:
            self.store.set(TOKEN_KEY, token)
        except OSError as exc:
            logger.error("Could not save API token: %s", exc)
            return self._set_status(StatusMessage.error(f"Failed to save API token: {exc}"))
        self.token_input = token
        return self.load_rooms(token, force_fetch=True)

    def refresh_rooms(self) -> StatusMessage:
        token = self.stored_token()
        if token is None:
            return self._set_status(StatusMessage.error("API token is not set. Save a token first."))
        return self.load_rooms(token, force_fetch=True)

    def select_room(self, room_id: str | int) -> None:
        self.selected_room_id = str(room_id).strip()

    def set_memo(self, text: str) -> None:
        self.memo_text = text

    def submit(self) -> StatusMessage:
        try:
            with self._exclusive(self._task_lock, "Task submission already in progress."):
                return self._submit()
        except ActionInProgress as exc:
            return self._set_status(StatusMessage.error(str(exc)))

    def _fail_task(self, text: str) -> StatusMessage:
        self.task_state = "error"
        return self._set_status(StatusMessage.error(text))

    def _submit(self) -> StatusMessage:
        token = self.token_input.strip()
        room_id = self.selected_room_id.strip()
        message = self.memo_text.strip()
        if not token:
            return self._fail_task("API token is not set.")
        if not room_id:
            return self._fail_task("Select a room to send the task to.")
        if not message:
            return self._fail_task("Memo is empty. Enter some text.")

        self.task_state = "sending"
        self._set_status(StatusMessage.neutral("Sending task..."))
        try:
            account_id = self._resolve_assignee(token)
            limit = compute_due_time(self._clock_ms())
            response = self.client.create_task(
                token,
                room_id,
                body=message,
                to_ids=str(account_id),
                limit=str(limit),
            )
            if not response.ok:
                raise SubmissionError(_describe("task", response), status_code=response.status_code, payload=response.payload)
        except (ProxyError, SubmissionError) as exc:
            full_text = f"Failed to send task: {exc}"
            logger.error("Task submission failed: %s", full_text)
            return self._fail_task(truncate_status(full_text))

        self.memo_text = ""
        self.task_state = "sent"
        return self._set_status(StatusMessage.success("Task sent."))

    def _resolve_assignee(self, token: str) -> int:
        response = self.client.get_identity(token)
        if not response.ok:
            raise SubmissionError(_describe("identity", response), status_code=response.status_code, payload=response.payload)
        payload = response.payload if isinstance(response.payload, dict) else {}
        account_id = payload.get("account_id")
        if isinstance(account_id, bool) or not isinstance(account_id, int):
            raise SubmissionError("Identity response has no account_id.", status_code=response.status_code, payload=response.payload)
        logger.debug("Resolved assignee account_id=%s", account_id)
        return account_id
