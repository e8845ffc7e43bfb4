# tests/test_state.py

from __future__ import annotations

import asyncio
import random

import pytest

from autojob.core.events import EventLogger, LogLevel
from autojob.core.state import ServiceState, ServiceStateMachine

S = ServiceState

ALLOWED_EDGES = {
    (S.STOPPED, S.START_PENDING),
    (S.START_PENDING, S.STOPPED),
    (S.START_PENDING, S.RUNNING),
    (S.RUNNING, S.STOP_PENDING),
    (S.RUNNING, S.START_PENDING),
    (S.STOP_PENDING, S.STOPPED),
}


def _recording_machine() -> tuple[ServiceStateMachine, list[tuple[ServiceState, ServiceState]]]:
    sm = ServiceStateMachine()
    seen: list[tuple[ServiceState, ServiceState]] = []
    sm.add_listener(lambda prev, cur: seen.append((prev, cur)))
    return sm, seen


@pytest.mark.asyncio
async def test_start_stop_edges() -> None:
    sm, seen = _recording_machine()
    assert sm.state is S.STOPPED

    assert sm.stop() is False
    assert sm.start() is True
    assert sm.state is S.START_PENDING
    assert sm.start() is False

    assert sm.stop() is True
    assert sm.state is S.STOPPED

    sm.start()
    await sm.continue_()
    assert sm.state is S.RUNNING
    assert sm.start() is False

    assert sm.stop() is True
    assert sm.state is S.STOP_PENDING
    assert sm.stop() is False

    assert seen == [
        (S.STOPPED, S.START_PENDING),
        (S.START_PENDING, S.STOPPED),
        (S.STOPPED, S.START_PENDING),
        (S.START_PENDING, S.RUNNING),
        (S.RUNNING, S.STOP_PENDING),
    ]


@pytest.mark.asyncio
async def test_continue_while_stopped_waits_for_start() -> None:
    sm = ServiceStateMachine()
    waiter = asyncio.create_task(sm.continue_())
    await asyncio.sleep(0.02)
    assert not waiter.done()
    assert sm.parked == 1

    sm.start()
    await asyncio.wait_for(waiter, timeout=1.0)
    assert sm.state is S.START_PENDING
    assert sm.parked == 0


@pytest.mark.asyncio
async def test_stop_pending_becomes_stopped_at_checkpoint_and_parks() -> None:
    sm, seen = _recording_machine()
    sm.start()
    await sm.continue_()
    sm.stop()

    waiter = asyncio.create_task(sm.continue_())
    await asyncio.sleep(0.01)
    assert sm.state is S.STOPPED
    assert not waiter.done()
    assert seen[-1] == (S.STOP_PENDING, S.STOPPED)

    sm.start()
    await asyncio.wait_for(waiter, timeout=1.0)


@pytest.mark.asyncio
async def test_each_start_releases_at_most_one_waiter() -> None:
    sm = ServiceStateMachine()
    first = asyncio.create_task(sm.continue_())
    second = asyncio.create_task(sm.continue_())
    await asyncio.sleep(0.01)
    assert sm.parked == 2

    sm.start()
    await asyncio.wait_for(first, timeout=1.0)
    await asyncio.sleep(0.01)
    assert not second.done()

    # Back to STOPPED, then the next start releases the remaining waiter.
    sm.stop()
    sm.start()
    await asyncio.wait_for(second, timeout=1.0)


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_consume_a_start() -> None:
    sm = ServiceStateMachine()
    gone = asyncio.create_task(sm.continue_())
    live = asyncio.create_task(sm.continue_())
    await asyncio.sleep(0.01)

    gone.cancel()
    with pytest.raises(asyncio.CancelledError):
        await gone

    sm.start()
    await asyncio.wait_for(live, timeout=1.0)


@pytest.mark.asyncio
async def test_ready_demotes_running_and_resolves() -> None:
    sm, seen = _recording_machine()
    sm.start()
    await sm.ready()
    assert sm.state is S.START_PENDING

    await sm.continue_()
    assert sm.state is S.RUNNING
    await sm.ready()
    assert sm.state is S.START_PENDING
    assert seen[-1] == (S.RUNNING, S.START_PENDING)


@pytest.mark.asyncio
async def test_ready_while_stopped_waits() -> None:
    sm = ServiceStateMachine()
    waiter = asyncio.create_task(sm.ready())
    await asyncio.sleep(0.01)
    assert not waiter.done()
    sm.start()
    await asyncio.wait_for(waiter, timeout=1.0)


@pytest.mark.asyncio
async def test_random_sequences_only_take_allowed_edges() -> None:
    rng = random.Random(1234)
    sm, seen = _recording_machine()

    for _ in range(300):
        op = rng.choice(["start", "stop", "continue", "ready"])
        if op == "start":
            sm.start()
        elif op == "stop":
            sm.stop()
        elif op in ("continue", "ready"):
            call = sm.continue_() if op == "continue" else sm.ready()
            task = asyncio.create_task(call)
            await asyncio.sleep(0)
            if not task.done():
                task.cancel()
                with pytest.raises(asyncio.CancelledError):
                    await task
        assert sm.state in set(S)

    assert seen
    assert set(seen) <= ALLOWED_EDGES


def test_listener_errors_do_not_block_transitions() -> None:
    sm = ServiceStateMachine()

    def broken(prev, cur):
        raise RuntimeError("observer down")

    sm.add_listener(broken)
    assert sm.start() is True
    assert sm.state is S.START_PENDING


def test_transitions_are_logged_at_debug() -> None:
    events = EventLogger(level=LogLevel.DEBUG)
    sm = ServiceStateMachine(events)
    sm.start()
    sm.stop()
    assert [e.message for e in events.entries] == ["Starting service...", "Service stopped."]
