# src/autojob/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "autojob.log"

# Console floor per logger-name prefix; the first match wins, unmatched names need ERROR.
_CONSOLE_FLOORS: tuple[tuple[str, int], ...] = (
    # Mirror of the job event log; only attached while service.debug is on.
    ("autojob.events", logging.DEBUG),
    ("autojob.connectors.matrix_", logging.WARNING),
    ("autojob.jobs.job_store", logging.WARNING),
    ("autojob.", logging.NOTSET),
)


class _ConsoleNoiseFilter(logging.Filter):
    """Keeps the REPL readable while the worker and connectors log in the background."""

    def filter(self, record: logging.LogRecord) -> bool:
        for prefix, floor in _CONSOLE_FLOORS:
            if record.name.startswith(prefix):
                return record.levelno >= floor
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/autojob",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console on stderr (filtered) plus a full log file under `log_dir`.

    Call once at startup, before the app is built. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    # Each dispatch is already logged by the gate; per-request client logs add nothing.
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("nio").setLevel(max(console_level, logging.INFO))
    return log_file
