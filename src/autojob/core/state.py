# src/autojob/core/state.py

from __future__ import annotations

"""
Service run/pause state machine.

    STOPPED --start()--> START_PENDING --continue_()--> RUNNING
    START_PENDING --stop()--> STOPPED
    RUNNING --stop()--> STOP_PENDING --continue_()--> STOPPED (caller parks)
    RUNNING --ready()--> START_PENDING

The controller only flips the pending states; the worker makes them effective
at its checkpoints (ready() before pulling work, continue_() before every
dispatch-gated action). A pause therefore never interrupts in-flight I/O.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from enum import Enum

from .events import EventLogger

logger = logging.getLogger(__name__)

StateListener = Callable[["ServiceState", "ServiceState"], None]


class ServiceState(Enum):
    STOPPED = 1
    START_PENDING = 2
    STOP_PENDING = 3
    RUNNING = 4


class ServiceStateMachine:
    def __init__(self, events: EventLogger | None = None) -> None:
        self._state = ServiceState.STOPPED
        self._events = events or EventLogger()
        self._listeners: list[StateListener] = []
        # Parked continue_() callers, released one per start().
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def state(self) -> ServiceState:
        return self._state

    def add_listener(self, listener: StateListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _transition(self, new_state: ServiceState) -> None:
        previous = self._state
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(previous, new_state)
            except Exception:
                logger.exception("State listener failed (%s -> %s)", previous.name, new_state.name)

    def _park(self) -> asyncio.Future[None]:
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        return waiter

    def _release_one(self) -> bool:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return True
        return False

    @property
    def parked(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    def start(self) -> bool:
        if self._state is not ServiceState.STOPPED:
            return False
        self._transition(ServiceState.START_PENDING)
        self._events.debug("Starting service...")
        self._release_one()
        return True

    def stop(self) -> bool:
        if self._state is ServiceState.RUNNING:
            self._transition(ServiceState.STOP_PENDING)
            self._events.debug("Stopping service...")
            return True
        if self._state is ServiceState.START_PENDING:
            self._transition(ServiceState.STOPPED)
            self._events.debug("Service stopped.")
            return True
        return False

    async def continue_(self) -> None:
        state = self._state

        if state is ServiceState.RUNNING:
            return

        if state is ServiceState.START_PENDING:
            self._transition(ServiceState.RUNNING)
            self._events.debug("Service started.")
            return

        if state is ServiceState.STOP_PENDING:
            self._transition(ServiceState.STOPPED)
            self._events.debug("Service stopped.")

        waiter = self._park()
        try:
            await waiter
        finally:
            if not waiter.done():
                waiter.cancel()

    async def ready(self) -> None:
        state = self._state

        if state is ServiceState.RUNNING:
            self._transition(ServiceState.START_PENDING)
            self._events.debug("Service is pending...")
            return

        if state is ServiceState.START_PENDING:
            return

        await self.continue_()
