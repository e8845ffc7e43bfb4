# src/autojob/connectors/console_connector.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import threading
from datetime import datetime
from typing import Any

from ..cli.commands import registry as command_registry
from ..core.errors import TransportError
from .control import ControlHub, parse_syscall

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleEndpoint:
    """Prints hub notifications (state changes, login prompts) to stdout."""

    name = "console"

    def __init__(self) -> None:
        self.closed = False

    def post(self, message: dict[str, Any]) -> None:
        if self.closed:
            raise TransportError("console is closed")
        kind = message.get("type")
        if kind == "statechange":
            _print_ts(f"[SERVICE] {message.get('from')} -> {message.get('to')}")
        elif kind == "login_required":
            _print_ts(f"[SERVICE] Login required, open in a browser: {message.get('url')}")
        elif kind == "syscall":
            _print_ts("[SYSCALL] " + json.dumps(message, ensure_ascii=False, default=str))


def _start_reader(loop: asyncio.AbstractEventLoop, lines: asyncio.Queue[str | None]) -> threading.Thread:
    """
    Read stdin in a daemon thread so a pending input() never blocks shutdown.
    None on the queue means EOF.
    """

    def _push(item: str | None) -> None:
        with contextlib.suppress(RuntimeError):
            # Loop already closed: the app is exiting.
            loop.call_soon_threadsafe(lines.put_nowait, item)

    def reader() -> None:
        while True:
            try:
                line = input(">>> ")
            except (EOFError, KeyboardInterrupt):
                _push(None)
                return
            _push(line)

    t = threading.Thread(target=reader, name="console-input", daemon=True)
    t.start()
    return t


def handle_console_line(hub: ControlHub, endpoint: ConsoleEndpoint, line: str) -> str | None:
    """
    One REPL line: a JSON syscall goes to the hub (its reply is posted to the
    endpoint), a slash command returns its reply text.
    """
    message = parse_syscall(line)
    if message is not None:
        hub.on_message(endpoint, message)
        return None

    try:
        response = command_registry.handle(hub, line, endpoint=endpoint.name)
    except Exception:
        logger.exception("Command handler crashed.")
        response = "Internal error while handling a command."

    if response is None:
        response = "Not a command. Use /help to list available commands."
    return response


async def run_console_loop(hub: ControlHub) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Type /help for commands. Use /exit to quit.\n")

    endpoint = ConsoleEndpoint()
    hub.connect(endpoint)

    lines: asyncio.Queue[str | None] = asyncio.Queue()
    _start_reader(asyncio.get_running_loop(), lines)

    try:
        while True:
            raw = await lines.get()
            if raw is None:
                logger.info("Console EOF received, exiting.")
                break

            user_input = raw.strip()
            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            response = handle_console_line(hub, endpoint, user_input)
            if response is not None:
                _print_ts(response)
    finally:
        endpoint.closed = True
        hub.disconnect(endpoint)
        logger.info("Console connector finished.")
