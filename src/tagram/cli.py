"""Command line entry point.

Usage:
    tagram serve --port 9000
    tagram serve --config tagram.toml --log-level DEBUG
    tagram send 127.0.0.1 9000 "<echo>ping</echo>" --newline
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Callable, Coroutine
from dataclasses import replace
from pathlib import Path
from typing import Any, TypeVar

from tagram.client import TagramClient, format_response
from tagram.config import load_config
from tagram.errors import TagramError
from tagram.log import configure
from tagram.netinfo import banner, bind_socket
from tagram.server import DatagramServer

logger = logging.getLogger("tagram.cli")

T = TypeVar("T")


def _run(main: Coroutine[Any, Any, T]) -> T:
    """Run *main* on uvloop when it is installed, else on the default loop."""
    if sys.platform != "win32":
        try:
            import uvloop
        except ImportError:
            pass
        else:
            return uvloop.run(main)
    return asyncio.run(main)


async def _serve(args: argparse.Namespace) -> None:
    config = load_config(args.config).with_overrides(host=args.host, port=args.port)
    logging_config = config.logging
    if args.log_level:
        logging_config = replace(logging_config, level=args.log_level)
    configure(logging_config)

    sock = bind_socket(config.server.host, config.server.port)
    for line in banner(sock, config.server.interface).lines():
        print(line)
    print(flush=True)

    server = DatagramServer.from_config(config.server)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, server.run_state.stop)
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug("Signal handlers unavailable, stop with <shutdown/>")
            break

    await server.serve(sock)


async def _send(args: argparse.Namespace) -> int:
    async with TagramClient() as client:
        await client.connect(args.host, args.port)
        try:
            response = await client.request(
                args.request, newline=args.newline, timeout=args.timeout
            )
        except TimeoutError:
            print(f"No response within {args.timeout}s", file=sys.stderr)
            return 1
    print(format_response(response))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tagram", description="Markup-tagged request/response server over UDP"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the server until <shutdown/>")
    serve.add_argument("--config", type=Path, default=None, help="Path to tagram.toml")
    serve.add_argument("--host", default=None, help="Address to bind (default: 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None, help="UDP port (default: any free port)")
    serve.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override the configured log level",
    )

    send = commands.add_parser("send", help="Send one request and print the reply")
    send.add_argument("host")
    send.add_argument("port", type=int)
    send.add_argument("request")
    send.add_argument("--timeout", type=float, default=5.0, help="Seconds to wait (default: 5)")
    send.add_argument(
        "--newline",
        action="store_true",
        help="Terminate the request with newline + NUL instead of sending bare text",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    handlers: dict[str, Callable[[argparse.Namespace], Coroutine[Any, Any, Any]]] = {
        "serve": _serve,
        "send": _send,
    }
    try:
        result = _run(handlers[args.command](args))
    except (OSError, TagramError) as exc:
        print(f"tagram: {exc}", file=sys.stderr)
        return 1
    return result or 0


if __name__ == "__main__":
    sys.exit(main())
