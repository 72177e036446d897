"""HTTP client for the same-origin forwarding endpoints."""

from __future__ import annotations

import json
from dataclasses import dataclass
from http.client import HTTPException
from typing import Any
from urllib.error import HTTPError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from .upstream_relay import truncate_details

TOKEN_HEADER = "X-ChatWorkToken"


class ProxyError(RuntimeError):
    """Base error for calls to the forwarding endpoints."""


class ProxyConnectionError(ProxyError):
    """The forwarding endpoint could not be reached."""


class ProxyResponseError(ProxyError):
    """The forwarding endpoint answered with a body that is not JSON."""

    def __init__(self, status_code: int, text: str) -> None:
        super().__init__(f"HTTP {status_code}: non-JSON response: {truncate_details(text)}")
        self.status_code = status_code
        self.text = text


@dataclass(frozen=True, slots=True)
class ProxyResponse:
    status_code: int
    payload: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def _open(req: Request, timeout_sec: float | None = None) -> tuple[int, str]:
    try:
        response_cm = urlopen(req) if timeout_sec is None else urlopen(req, timeout=timeout_sec)
        with response_cm as response:
            return int(response.status), response.read().decode("utf-8", errors="replace")
    except HTTPError as exc:
        body = exc.read().decode("utf-8", errors="replace") if exc.fp is not None else ""
        return int(exc.code), body


class ProxyClient:
    def __init__(self, base_url: str, *, timeout_sec: float | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec

    def _request(
        self,
        method: str,
        path: str,
        token: str,
        *,
        form: dict[str, str] | None = None,
    ) -> ProxyResponse:
        headers = {TOKEN_HEADER: token, "Accept": "application/json"}
        data = None
        if form is not None:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
            data = urlencode(form).encode("utf-8")
        req = Request(f"{self.base_url}{path}", data=data, headers=headers, method=method)
        try:
            status_code, text = _open(req, timeout_sec=self.timeout_sec)
        except (OSError, HTTPException) as exc:
            raise ProxyConnectionError(f"Could not reach {self.base_url}: {exc}") from exc
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ProxyResponseError(status_code, text) from exc
        return ProxyResponse(status_code=status_code, payload=payload)

    def get_identity(self, token: str) -> ProxyResponse:
        return self._request("GET", "/identity", token)

    def get_rooms(self, token: str) -> ProxyResponse:
        return self._request("GET", "/rooms", token)

    def create_task(self, token: str, room_id: str, *, body: str, to_ids: str, limit: str) -> ProxyResponse:
        path = f"/rooms/{quote(str(room_id), safe='')}/tasks"
        return self._request("POST", path, token, form={"body": body, "to_ids": to_ids, "limit": limit})
