"""Server entrypoint: run the forwarding endpoints and page under uvicorn."""

from __future__ import annotations

import argparse
import logging

from src.taskmemo.core.config_loader import get_log_level, get_server_settings
from src.taskmemo.core.log_setup import configure_logging

logger = logging.getLogger("taskmemo.daemon")


def run_server(*, host: str = "127.0.0.1", port: int = 8000, log_level: str = "INFO") -> int:
    configure_logging(log_level)
    try:
        import uvicorn
    except Exception as exc:  # pragma: no cover - dependency error guard
        raise RuntimeError("uvicorn is required to serve the task memo app") from exc

    logger.info("Serving task memo on http://%s:%s", host, port)
    uvicorn.run("app.main:app", host=host, port=port, reload=False, log_level=log_level.lower())
    return 0


def main(argv: list[str] | None = None) -> int:
    settings = get_server_settings()
    parser = argparse.ArgumentParser(description="Serve the Chatwork task memo page and forwarding endpoints.")
    parser.add_argument("--host", default=settings["host"], help="Local bind host.")
    parser.add_argument("--port", type=int, default=settings["port"], help="Local bind port.")
    parser.add_argument("--log-level", default=get_log_level(), help="Logging level (DEBUG, INFO, WARNING, ...).")
    args = parser.parse_args(argv)
    return run_server(host=args.host, port=args.port, log_level=str(args.log_level).upper())


if __name__ == "__main__":
    raise SystemExit(main())
