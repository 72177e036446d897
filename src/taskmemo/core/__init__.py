"""Core utilities for the Chatwork task memo."""

from .config_loader import (
    clear_config_cache,
    get_client_settings,
    get_log_level,
    get_relay_settings,
    get_server_settings,
    load_config,
    resolve_config_path,
)
from .flow_controller import SubmissionError, TaskMemoController, UpstreamCallError, compute_due_time, truncate_status
from .local_store import JsonFileStore, KeyValueStore, MemoryStore
from .log_setup import configure_logging, mask_token
from .memo_types import CacheLookup, Room, StatusMessage, parse_room_list
from .proxy_client import ProxyClient, ProxyConnectionError, ProxyError, ProxyResponse, ProxyResponseError
from .room_cache import CACHE_DURATION_MS, RoomListCache
from .upstream_relay import RelayResult, create_task, fetch_identity, fetch_rooms

__all__ = [
    "CACHE_DURATION_MS",
    "CacheLookup",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "ProxyClient",
    "ProxyConnectionError",
    "ProxyError",
    "ProxyResponse",
    "ProxyResponseError",
    "RelayResult",
    "Room",
    "RoomListCache",
    "StatusMessage",
    "SubmissionError",
    "TaskMemoController",
    "UpstreamCallError",
    "clear_config_cache",
    "compute_due_time",
    "configure_logging",
    "create_task",
    "fetch_identity",
    "fetch_rooms",
    "get_client_settings",
    "get_log_level",
    "get_relay_settings",
    "get_server_settings",
    "load_config",
    "mask_token",
    "parse_room_list",
    "resolve_config_path",
    "truncate_status",
]
