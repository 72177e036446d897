"""Relay requests to the Chatwork REST API and normalize its responses.

Each forwarding endpoint performs exactly one upstream call through this
module. Upstream status codes and JSON bodies pass through unchanged; a body
that is not JSON becomes a structured error with a short excerpt, and a
transport failure becomes a generic connection error.
"""

from __future__ import annotations

import json
import logging
from http.client import HTTPException
from dataclasses import dataclass
from typing import Any
from urllib.error import HTTPError
from urllib.parse import parse_qs, quote, urlencode
from urllib.request import Request, urlopen

from .config_loader import get_relay_settings
from .log_setup import mask_token

logger = logging.getLogger("taskmemo.upstream_relay")

TOKEN_HEADER = "X-ChatWorkToken"
TASK_FIELDS = ("body", "to_ids", "limit")
DETAILS_MAX_CHARS = 200
NON_JSON_ERROR = "Chatwork API returned non-JSON response."
CONNECTION_ERROR = "Failed to connect to Chatwork API."


@dataclass(frozen=True, slots=True)
class RelayResult:
    status_code: int
    payload: Any


def _error(status_code: int, message: str) -> RelayResult:
    return RelayResult(status_code=status_code, payload={"error": message})


def _send(req: Request, timeout_sec: float | None = None) -> tuple[int, str]:
    """Issue one request; non-2xx statuses are returned, not raised."""
    try:
        if timeout_sec is None:
            response_cm = urlopen(req)
        else:
            response_cm = urlopen(req, timeout=timeout_sec)
        with response_cm as response:
            return int(response.status), response.read().decode("utf-8", errors="replace")
    except HTTPError as exc:
        body = exc.read().decode("utf-8", errors="replace") if exc.fp is not None else ""
        return int(exc.code), body


def truncate_details(text: str, limit: int = DETAILS_MAX_CHARS) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def _status_for_malformed(status_code: int | None) -> int:
    if status_code is None or status_code < 200 or status_code in (204, 304):
        return 500
    return status_code


def _relay(req: Request, *, label: str, token: str, timeout_sec: float | None) -> RelayResult:
    logger.info("%s %s token=%s", req.get_method(), label, mask_token(token))
    try:
        status_code, text = _send(req, timeout_sec=timeout_sec)
    except (OSError, HTTPException) as exc:
        logger.error("Chatwork API call failed for %s: %s", label, exc)
        return _error(500, CONNECTION_ERROR)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Chatwork API returned non-JSON body for %s (status %s): %r", label, status_code, text[:DETAILS_MAX_CHARS])
        return RelayResult(
            status_code=_status_for_malformed(status_code),
            payload={
                "error": NON_JSON_ERROR,
                "details": truncate_details(text),
                "upstream_status": status_code,
            },
        )

    if 200 <= status_code < 300:
        logger.info("Chatwork API %s -> %s", label, status_code)
    else:
        logger.warning("Chatwork API error for %s -> %s: %s", label, status_code, payload)
    return RelayResult(status_code=status_code, payload=payload)


def _get(path: str, token: str, settings: dict[str, Any]) -> RelayResult:
    req = Request(
        f"{settings['base_url']}{path}",
        headers={TOKEN_HEADER: token, "Accept": "application/json"},
        method="GET",
    )
    return _relay(req, label=path, token=token, timeout_sec=settings["timeout_sec"])


def _has_token(token: str | None) -> bool:
    return bool(token and token.strip())


def fetch_identity(token: str | None, *, settings: dict[str, Any] | None = None) -> RelayResult:
    """Relay `GET /me`; a missing token is rejected with 401."""
    if not _has_token(token):
        logger.warning("Identity request rejected: token header missing.")
        return _error(401, "Chatwork API token is missing.")
    return _get("/me", str(token), settings or get_relay_settings())


def fetch_rooms(token: str | None, *, settings: dict[str, Any] | None = None) -> RelayResult:
    """Relay `GET /rooms`; a missing token is rejected with 400."""
    if not _has_token(token):
        logger.warning("Room list request rejected: token header missing.")
        return _error(400, "Chatwork API token is missing.")
    return _get("/rooms", str(token), settings or get_relay_settings())


def parse_task_form(raw_body: bytes) -> dict[str, str] | None:
    """Decode an urlencoded body into single values; `None` when undecodable."""
    try:
        text = raw_body.decode("utf-8")
        parsed = parse_qs(text, keep_blank_values=True, strict_parsing=False)
    except (UnicodeDecodeError, ValueError):
        return None
    return {key: values[0] for key, values in parsed.items() if values}


def create_task(
    token: str | None,
    room_id: str | None,
    fields: dict[str, str] | None,
    *,
    settings: dict[str, Any] | None = None,
) -> RelayResult:
    """Validate and relay `POST /rooms/{room_id}/tasks` as form data."""
    if not _has_token(token):
        logger.warning("Task request rejected: token header missing.")
        return _error(400, "Chatwork API token is missing.")
    if not room_id or not str(room_id).strip():
        logger.warning("Task request rejected: room id missing.")
        return _error(400, "Room ID is missing from URL.")
    if fields is None:
        logger.warning("Task request rejected: form body could not be decoded.")
        return _error(400, "Invalid form data format.")
    for name in TASK_FIELDS:
        value = fields.get(name)
        if value is None or not value.strip():
            logger.warning("Task request rejected: parameter %r missing.", name)
            return _error(400, f"Parameter '{name}' is required.")

    resolved = settings or get_relay_settings()
    path = f"/rooms/{quote(str(room_id).strip(), safe='')}/tasks"
    req = Request(
        f"{resolved['base_url']}{path}",
        data=urlencode({name: fields[name] for name in TASK_FIELDS}).encode("utf-8"),
        headers={
            TOKEN_HEADER: str(token),
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        },
        method="POST",
    )
    return _relay(req, label=path, token=str(token), timeout_sec=resolved["timeout_sec"])
