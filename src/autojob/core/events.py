# src/autojob/core/events.py

"""
Leveled event logger.

This is the job-facing log: tasks and the worker write here, and the control
transport can read the retained history. Each accepted entry is offered to the
registered handlers first; a handler returns True to vote for cancelling
retention (e.g. it already shipped the entry to an external sink). The entry is
dropped only when every handler votes to cancel.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    NOTSET = 0
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


def level_name(level: int) -> str:
    try:
        lvl = LogLevel(level)
    except ValueError:
        return "UNKNOWN"
    if lvl is LogLevel.NOTSET:
        return "UNKNOWN"
    return lvl.name


@dataclass(slots=True, frozen=True)
class LogEntry:
    time: int  # epoch ms
    level: int
    level_name: str
    message: str
    context: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "level": self.level,
            "levelName": self.level_name,
            "message": self.message,
            "context": None if self.context is None else repr(self.context),
        }


# Returns True to vote for cancelling retention of the entry.
LogHandler = Callable[[LogEntry], bool | None]


class EventLogger:
    def __init__(self, level: int = LogLevel.INFO, *, max_entries: int = 1000) -> None:
        self._level = int(level)
        self._handlers: list[LogHandler] = []
        self.entries: deque[LogEntry] = deque(maxlen=max(1, int(max_entries)))

    @property
    def level(self) -> int:
        return self._level

    @level.setter
    def level(self, value: int) -> None:
        self._level = int(value)

    def add_handler(self, handler: LogHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def remove_handler(self, handler: LogHandler) -> None:
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass

    def critical(self, message: str, context: Any = None) -> LogEntry | None:
        return self.log(LogLevel.CRITICAL, message, context)

    def error(self, message: str, context: Any = None) -> LogEntry | None:
        return self.log(LogLevel.ERROR, message, context)

    def warning(self, message: str, context: Any = None) -> LogEntry | None:
        return self.log(LogLevel.WARNING, message, context)

    def info(self, message: str, context: Any = None) -> LogEntry | None:
        return self.log(LogLevel.INFO, message, context)

    def debug(self, message: str, context: Any = None) -> LogEntry | None:
        return self.log(LogLevel.DEBUG, message, context)

    def log(self, level: int, message: str, context: Any = None) -> LogEntry | None:
        if self._level > level:
            return None

        entry = LogEntry(
            time=int(time.time() * 1000),
            level=int(level),
            level_name=level_name(level),
            message=str(message),
            context=context,
        )

        cancelled = bool(self._handlers)
        for handler in list(self._handlers):
            try:
                vote = handler(entry)
            except Exception:
                # A broken sink must not break the caller; keep the entry.
                logging.getLogger(__name__).exception("Log handler %r failed", handler)
                vote = False
            cancelled = cancelled and bool(vote)

        if not cancelled:
            self.entries.append(entry)
        return entry

    def clear(self) -> None:
        self.entries.clear()


def forward_to_logging(target: logging.Logger, *, cancel: bool = False) -> LogHandler:
    """
    Build a handler mirroring entries into a stdlib logger.

    With cancel=True the handler also votes to drop the in-memory copy.
    """

    def _handler(entry: LogEntry) -> bool:
        level = entry.level if entry.level > 0 else logging.INFO
        if entry.context is None:
            target.log(level, "%s", entry.message)
        else:
            target.log(level, "%s (%r)", entry.message, entry.context)
        return cancel

    return _handler
