# src/autojob/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the app, then runs on one event loop:
- the worker loop (always),
- the console REPL (optional),
- the Matrix control connector (optional).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import App, create_app
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..jobs.worker import run_worker
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def run_app(app: App) -> None:
    settings = app.settings
    stop_main = asyncio.Event()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            # Some platforms (Windows) do not support loop signal handlers.
            loop.add_signal_handler(signum, stop_main.set)

    app.store.open()
    background: list[asyncio.Task[None]] = [
        asyncio.create_task(run_worker(app.service, app.dispatch, app.store), name="worker"),
    ]

    if settings.matrix_enabled:
        from ..connectors.matrix_connector import run_matrix_connector

        background.append(
            asyncio.create_task(run_matrix_connector(app.hub, settings, stop_main), name="matrix")
        )

    if settings.autostart:
        app.service.start()

    try:
        if settings.console_enabled:
            console = asyncio.create_task(run_console_loop(app.hub), name="console")
            stopper = asyncio.create_task(stop_main.wait())
            await asyncio.wait({console, stopper}, return_when=asyncio.FIRST_COMPLETED)
            stopper.cancel()
            console.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await console
        else:
            logger.info("Console disabled. Running background connectors only. Press Ctrl+C to stop.")
            await stop_main.wait()
    finally:
        stop_main.set()
        for task in background:
            task.cancel()
        for task in background:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await app.aclose()


def main() -> None:
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    app = create_app(settings=settings)
    try:
        asyncio.run(run_app(app))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
