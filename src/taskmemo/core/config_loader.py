"""Load and query task memo JSON config files."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("config/config.json")
DEFAULT_CHATWORK_BASE_URL = "https://api.chatwork.com/v2"
DEFAULT_PROXY_BASE_URL = "http://127.0.0.1:8000"
DEFAULT_STATE_PATH = "memory/taskmemo_state.json"
DEFAULT_LOG_LEVEL = "INFO"
_CONFIG_CACHE: dict[Path, tuple[int, dict[str, Any]]] = {}


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[3]


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    """Resolve config path against repo root.

    Priority:
    1. explicit function argument
    2. `TASKMEMO_CONFIG_PATH` environment variable
    3. default `config/config.json`
    """
    raw_path: str | Path | None = config_path or os.getenv("TASKMEMO_CONFIG_PATH")
    candidate = Path(raw_path) if raw_path else DEFAULT_CONFIG_PATH
    if not candidate.is_absolute():
        candidate = _repo_root() / candidate
    return candidate.resolve()


def load_config(config_path: str | Path | None = None, *, use_cache: bool = True) -> dict[str, Any]:
    """Load config JSON as a dictionary."""
    resolved = resolve_config_path(config_path)
    if not resolved.exists():
        raise FileNotFoundError(f"Config file not found: {resolved}")

    mtime_ns = resolved.stat().st_mtime_ns
    if use_cache and resolved in _CONFIG_CACHE:
        cached_mtime_ns, cached_payload = _CONFIG_CACHE[resolved]
        if cached_mtime_ns == mtime_ns:
            return cached_payload

    try:
        payload = json.loads(resolved.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in config file: {resolved}") from exc

    if not isinstance(payload, dict):
        raise ValueError(f"Config root must be a JSON object: {resolved}")

    _CONFIG_CACHE[resolved] = (mtime_ns, payload)
    return payload


def clear_config_cache() -> None:
    """Clear in-memory config cache."""
    _CONFIG_CACHE.clear()


def _load_or_empty(config: dict[str, Any] | None) -> dict[str, Any]:
    if config is not None:
        return config
    try:
        return load_config()
    except (FileNotFoundError, ValueError):
        return {}


def _section(payload: dict[str, Any], name: str) -> dict[str, Any]:
    value = payload.get(name)
    return value if isinstance(value, dict) else {}


def _optional_timeout(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if value > 0 else None


def get_relay_settings(config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return upstream Chatwork settings used by the forwarding endpoints."""
    chatwork = _section(_load_or_empty(config), "chatwork")
    base_url = chatwork.get("base_url")
    return {
        "base_url": (base_url if isinstance(base_url, str) and base_url.strip() else DEFAULT_CHATWORK_BASE_URL).rstrip("/"),
        "timeout_sec": _optional_timeout(chatwork.get("timeout_sec")),
    }


def get_client_settings(config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return settings for the terminal client (proxy URL and local state file)."""
    client = _section(_load_or_empty(config), "client")
    proxy_base_url = client.get("proxy_base_url")
    state_path = client.get("state_path")
    resolved_state = Path(state_path if isinstance(state_path, str) and state_path.strip() else DEFAULT_STATE_PATH)
    if not resolved_state.is_absolute():
        resolved_state = _repo_root() / resolved_state
    return {
        "proxy_base_url": (
            proxy_base_url if isinstance(proxy_base_url, str) and proxy_base_url.strip() else DEFAULT_PROXY_BASE_URL
        ).rstrip("/"),
        "state_path": resolved_state,
        "timeout_sec": _optional_timeout(client.get("timeout_sec")),
    }


def get_server_settings(config: dict[str, Any] | None = None) -> dict[str, Any]:
    server = _section(_load_or_empty(config), "server")
    host = server.get("host")
    port = server.get("port")
    return {
        "host": host if isinstance(host, str) and host.strip() else "127.0.0.1",
        "port": port if isinstance(port, int) and not isinstance(port, bool) and port > 0 else 8000,
    }


def get_log_level(config: dict[str, Any] | None = None) -> str:
    value = _load_or_empty(config).get("log_level")
    return value.strip().upper() if isinstance(value, str) and value.strip() else DEFAULT_LOG_LEVEL
