"""agentdeck command line entrypoint.

    agentdeck serve [--host HOST] [--port PORT] [--log-level LEVEL]
    agentdeck sessions
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict

from agentdeck.api_server import APIServer
from agentdeck.config import Config, config
from agentdeck.core.backends import create_backend
from agentdeck.core.session_tracker import SessionTracker
from agentdeck.core.tmux_errors import TmuxErrorKind, classify_tmux_error
from agentdeck.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_api_server(cfg: Config, host: str | None = None, port: int | None = None) -> APIServer:
    """Wire the configured backend into a tracker and an API server."""
    backend = create_backend(cfg)
    tracker = SessionTracker(backend.multiplexer, backend.store, tracker_config=cfg.tracker)
    return APIServer(tracker, backend.read_events, host=host, port=port)


async def _print_sessions(cfg: Config) -> int:
    backend = create_backend(cfg)
    tracker = SessionTracker(backend.multiplexer, backend.store, tracker_config=cfg.tracker)
    try:
        sessions = await tracker.list_sessions()
    except Exception as e:
        kind = classify_tmux_error(e)
        if kind is not TmuxErrorKind.SERVER_NOT_RUNNING:
            logger.error("Failed to list sessions (%s): %s", kind.value, e)
            return 1
        sessions = {}
    json.dump({name: asdict(session) for name, session in sessions.items()}, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--log-level", default=None, help="Override AGENTDECK_LOG_LEVEL (e.g. DEBUG).")

    parser = argparse.ArgumentParser(prog="agentdeck", description="Live tmux session tracker for agent dashboards.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", parents=[common], help="Run the HTTP API.")
    serve.add_argument("--host", default=None, help=f"Bind address (default: {config.api.host}).")
    serve.add_argument("--port", type=int, default=None, help=f"Bind port (default: {config.api.port}).")

    subparsers.add_parser("sessions", parents=[common], help="Print the unified session map as JSON.")

    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "serve":
        api_server = build_api_server(config, host=args.host, port=args.port)
        try:
            asyncio.run(api_server.start())
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        return 0

    return asyncio.run(_print_sessions(config))


if __name__ == "__main__":
    raise SystemExit(main())
