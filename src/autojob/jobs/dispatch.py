# src/autojob/jobs/dispatch.py

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

from ..core.events import EventLogger
from ..core.ports import Dispatch, Response
from ..core.state import ServiceStateMachine


class DispatchClock:
    """Start time of the most recently issued action, shared by every gate built on it."""

    def __init__(self, now: Callable[[], float] = time.monotonic) -> None:
        self.now = now
        self.last_dispatch: float | None = None


class RateLimitedDispatch:
    """
    Wraps a raw dispatch capability:
    1. wait for the state machine to allow work (no dispatch while paused),
    2. keep at least `interval` seconds between action starts,
    3. stamp the clock at the moment the action is issued.
    """

    def __init__(
        self,
        raw: Dispatch,
        state: ServiceStateMachine,
        events: EventLogger,
        *,
        interval: float | Callable[[], float] = 1.0,
        clock: DispatchClock | None = None,
    ) -> None:
        self._raw = raw
        self._state = state
        self._events = events
        self._interval = interval
        self.clock = clock or DispatchClock()

    @property
    def interval(self) -> float:
        value = self._interval() if callable(self._interval) else self._interval
        return max(0.0, float(value))

    async def __call__(self, resource: str, **options: Any) -> Response:
        await self._state.continue_()

        while self.clock.last_dispatch is not None:
            delay = self.clock.last_dispatch + self.interval - self.clock.now()
            if delay <= 0:
                break
            await asyncio.sleep(delay)

        self.clock.last_dispatch = self.clock.now()
        self._events.debug(f"Fetching {resource}...", options or None)
        return await self._raw(resource, **options)
