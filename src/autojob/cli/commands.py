# src/autojob/cli/commands.py

from __future__ import annotations

import json
import logging
import shlex
from collections.abc import Callable
from datetime import datetime

from ..connectors.control import ControlHub
from ..core.errors import CredentialFileError

CommandHandler = Callable[[ControlHub, list[str], str | None], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /start, /job, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, hub: ControlHub, line: str, endpoint: str | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return handler(hub, args, endpoint)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _ts_local(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def parse_job_specs(args: list[str]) -> list[list[str]]:
    """
    'echo "a  b" ; fetch_page https://example.com' -> [["echo", "a b"], ["fetch_page", "https://..."]]

    Quoted text stays one argument; ";" separates tasks. Raises ValueError on unbalanced quotes.
    """
    lexer = shlex.shlex(" ".join(args), posix=True, punctuation_chars=";")
    lexer.whitespace_split = True
    lexer.commenters = ""

    specs: list[list[str]] = []
    words: list[str] = []
    for token in lexer:
        if token and set(token) == {";"}:
            if words:
                specs.append(words)
            words = []
        else:
            words.append(token)
    if words:
        specs.append(words)
    return specs


def cmd_help(hub: ControlHub, args: list[str], endpoint: str | None) -> str:
    return registry.build_help() + "\n\n" + hub.service.registry.build_help()


def cmd_start(hub: ControlHub, args: list[str], endpoint: str | None) -> str:
    if hub.syscall("start"):
        return "Service starting."
    return f"Cannot start: service is {hub.service.state.name}."


def cmd_stop(hub: ControlHub, args: list[str], endpoint: str | None) -> str:
    if hub.syscall("stop"):
        return "Service stopping (current step finishes first)."
    return f"Cannot stop: service is {hub.service.state.name}."


def cmd_status(hub: ControlHub, args: list[str], endpoint: str | None) -> str:
    st = hub.syscall("status")
    job = st["current_job"]
    if job is None:
        job_line = "none"
    else:
        job_line = f"id={job['id']} tasks={', '.join(job['tasks']) or '-'} current={job['current_task'] or '-'}"
    settings = st["settings"]
    return (
        "Status:\n"
        f"  State: {st['state']}\n"
        f"  Queue length: {st['queue_length']}\n"
        f"  Current job: {job_line}\n"
        f"  Request interval: {settings['service.request_interval']}s\n"
        f"  Debug: {'ON' if settings['service.debug'] else 'OFF'}"
    )


def cmd_job(hub: ControlHub, args: list[str], endpoint: str | None) -> str:
    """
    /job echo hello world        -> one task
    /job echo "a ; b"            -> quoted text is one argument
    /job echo a ; fetch_page URL -> several tasks, run in order
    """
    try:
        specs = parse_job_specs(args)
    except ValueError as e:
        return f"Cannot parse job: {e}"
    if not specs:
        return "Usage: /job <task> [arg ...] [; <task> [arg ...]]"

    job = hub.syscall("create_job", *specs)
    if not job["tasks"]:
        return "Job queued with no valid tasks (see /log)."
    return f"Job queued: {', '.join(job['tasks'])} (queue length {hub.service.queue.length})."


def cmd_ping(hub: ControlHub, args: list[str], endpoint: str | None) -> str:
    return json.dumps(hub.syscall("ping", " ".join(args) or None), ensure_ascii=False)


def cmd_log(hub: ControlHub, args: list[str], endpoint: str | None) -> str:
    try:
        limit = int(args[0]) if args else 10
    except ValueError:
        return "Usage: /log [count]"
    entries = hub.syscall("log_entries", limit)
    if not entries:
        return "Log is empty."
    return "\n".join(f"[{_ts_local(e['time'])}] {e['levelName']}: {e['message']}" for e in entries)


def cmd_set(hub: ControlHub, args: list[str], endpoint: str | None) -> str:
    """
    /set service.debug on
    /set service.request_interval 2.5
    """
    if len(args) != 2:
        return "Usage: /set service.<key> <value>"
    before = hub.service.settings
    after = hub.service.apply_settings({args[0]: args[1]})
    if after == before:
        return f"Nothing changed ({args[0]} is unknown, invalid or already set)."
    logger.debug("Settings changed via %s: %s", endpoint, after)
    return "Settings: " + ", ".join(f"{k}={v}" for k, v in after.to_dict().items())


def cmd_cookies(hub: ControlHub, args: list[str], endpoint: str | None) -> str:
    """
    /cookies             -> re-read the configured cookie file (after signing in again)
    /cookies <path>      -> load a Netscape cookies.txt and remember its path
    """
    if "load_cookies" not in hub.syscalls():
        return "This credential store cannot load cookie files."
    try:
        n = hub.syscall("load_cookies", *([" ".join(args)] if args else []))
    except CredentialFileError as e:
        return str(e)
    return f"Loaded {n} cookies. Use /start to resume."


registry.register("help", cmd_help, help_text="Show available commands and task types.", aliases=["h", "?"])
registry.register("start", cmd_start, help_text="Start (or resume) processing jobs.")
registry.register("stop", cmd_stop, help_text="Pause after the current dispatch step.")
registry.register("status", cmd_status, help_text="Show service state, queue and current job.")
registry.register("job", cmd_job, help_text="Queue a job: /job echo hi ; fetch_page <url>.")
registry.register("ping", cmd_ping, help_text="Echo a payload back.")
registry.register("log", cmd_log, help_text="Show the last N job log entries: /log [n].")
registry.register("set", cmd_set, help_text="Change a setting: /set service.request_interval 2.")
registry.register("cookies", cmd_cookies, help_text="Load browser cookies: /cookies [path to cookies.txt].")
