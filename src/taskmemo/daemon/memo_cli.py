"""Terminal client for saving the token, listing rooms and sending tasks."""

from __future__ import annotations

import argparse
import time

from src.taskmemo.core.config_loader import get_client_settings, get_log_level
from src.taskmemo.core.flow_controller import TaskMemoController
from src.taskmemo.core.local_store import JsonFileStore
from src.taskmemo.core.log_setup import configure_logging, mask_token
from src.taskmemo.core.memo_types import StatusMessage
from src.taskmemo.core.proxy_client import ProxyClient

_STATUS_PREFIX = {"success": "ok", "error": "error", "neutral": "info"}


def _build_controller() -> TaskMemoController:
    settings = get_client_settings()
    client = ProxyClient(settings["proxy_base_url"], timeout_sec=settings["timeout_sec"])
    return TaskMemoController(client, JsonFileStore(settings["state_path"]))


def _print_status(status: StatusMessage) -> int:
    print(f"[{_STATUS_PREFIX.get(status.kind, 'info')}] {status.text}", flush=True)
    return 1 if status.is_error else 0


def _print_rooms(controller: TaskMemoController) -> None:
    for room in controller.rooms:
        print(f"{room.id}\t{room.name}")


def _cmd_token(controller: TaskMemoController, args: argparse.Namespace) -> int:
    status = controller.save_token(args.value)
    _print_rooms(controller)
    return _print_status(status)


def _cmd_rooms(controller: TaskMemoController, args: argparse.Namespace) -> int:
    status = controller.refresh_rooms() if args.refresh else controller.startup()
    _print_rooms(controller)
    return _print_status(status)


def _cmd_send(controller: TaskMemoController, args: argparse.Namespace) -> int:
    controller.token_input = controller.stored_token() or ""
    controller.select_room(args.room)
    controller.set_memo(" ".join(args.text))
    return _print_status(controller.submit())


def _cmd_status(controller: TaskMemoController) -> int:
    token = controller.stored_token()
    print(f"Token: {mask_token(token)}")
    age_ms = controller.cache.age_ms(int(time.time() * 1000))
    if age_ms is None:
        print("Room cache: empty")
    else:
        state = "fresh" if age_ms < controller.cache.duration_ms else "expired"
        print(f"Room cache: {state} (age {age_ms // 1000}s)")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Send Chatwork tasks through the local forwarding endpoints.")
    parser.add_argument("--log-level", default=None, help="Logging level (defaults to config `log_level`).")
    sub = parser.add_subparsers(dest="command", required=True)

    token = sub.add_parser("token", help="Save the API token and reload the room list.")
    token.add_argument("value", help="Chatwork API token.")

    rooms = sub.add_parser("rooms", help="List rooms (cached for 24h).")
    rooms.add_argument("--refresh", action="store_true", help="Bypass the cache and fetch from Chatwork.")

    send = sub.add_parser("send", help="Send text as a task assigned to yourself, due in 7 days.")
    send.add_argument("--room", required=True, help="Destination room id.")
    send.add_argument("text", nargs="+", help="Task text.")

    sub.add_parser("status", help="Show the stored token (masked) and room cache age.")

    args = parser.parse_args(argv)
    configure_logging(str(args.log_level or get_log_level()).upper())
    controller = _build_controller()
    if args.command == "token":
        return _cmd_token(controller, args)
    if args.command == "rooms":
        return _cmd_rooms(controller, args)
    if args.command == "send":
        return _cmd_send(controller, args)
    if args.command == "status":
        return _cmd_status(controller)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
