# src/autojob/jobs/worker.py

from __future__ import annotations

"""
Worker loop.

The single long-running coroutine that executes jobs:
- ready()     -> idle checkpoint (a RUNNING service drops back to START_PENDING),
- dequeue()   -> wait for a job unless one is being retried,
- continue_() -> re-check state after any wait,
- job.run()   -> through the rate-limited dispatch gate.

A job-level failure (signin, persistence) pauses the service and keeps the job
so it is retried after the next start(). Task failures never get here.

To stop the worker, cancel the coroutine/task.
"""

import logging

from ..core.ports import Dispatch, JobRepo
from .dispatch import RateLimitedDispatch
from .service import Service

logger = logging.getLogger(__name__)


def build_gate(service: Service, raw: Dispatch) -> RateLimitedDispatch:
    return RateLimitedDispatch(
        raw,
        service.state_machine,
        service.events,
        interval=lambda: service.settings.request_interval,
        clock=service.clock,
    )


async def run_worker(service: Service, raw: Dispatch, store: JobRepo) -> None:
    events = service.events
    gate = build_gate(service, raw)
    logger.info("Worker started (state=%s)", service.state.name)

    try:
        while True:
            await service.ready()

            if service.current_job is None:
                events.debug("Waiting for a job...")
                service.current_job = await service.queue.dequeue()

            job = service.current_job
            try:
                await service.continue_()
                events.debug("Performing job...")
                await job.run(gate, store, events)
                events.debug("Job completed...")
                service.current_job = None
            except Exception as e:
                events.error(f"Job failed: {e}", e)
                logger.warning("Job failed, pausing service: %r", e)
                service.stop()
    finally:
        logger.info("Worker stopped.")
