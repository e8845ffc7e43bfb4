# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from autojob.config import ServiceSettings
from autojob.jobs.builtin import register_builtin_tasks
from autojob.jobs.job_store import JobStore
from autojob.jobs.registry import TaskRegistry
from autojob.jobs.service import Service
from autojob.jobs.task_models import Task

from .fakes import FakeCredentialStore, FakeDispatch, FakeStore


class BoomTask(Task):
    name = "boom"

    def __init__(self) -> None:
        self.runs = 0

    async def run(self) -> None:
        self.runs += 1
        raise ValueError("boom failed")


class RecordingTask(Task):
    """Captures the hooks it was bound with."""

    name = "record"

    def __init__(self, label: str = "") -> None:
        self.label = label
        self.runs = 0
        self.seen: dict[str, object] = {}

    async def run(self) -> None:
        self.runs += 1
        self.seen = {
            "job_id": self.job_id,
            "user_id": self.session.user_id if self.session else None,
            "has_fetch": self.fetch is not None,
            "has_store": self.store is not None,
        }


@pytest.fixture()
def registry() -> TaskRegistry:
    reg = register_builtin_tasks(TaskRegistry())
    reg.register("boom", BoomTask, "always fails")
    reg.register("record", RecordingTask, "records its hooks")
    return reg


@pytest.fixture()
def service(registry: TaskRegistry) -> Service:
    """
    Service wired with deterministic fakes and no request spacing.

    Tests that exercise the interval build their own gate.
    """
    return Service(
        credentials=FakeCredentialStore(),
        registry=registry,
        settings=ServiceSettings(request_interval=0.0),
    )


@pytest.fixture()
def dispatch() -> FakeDispatch:
    return FakeDispatch()


@pytest.fixture()
def fake_store() -> FakeStore:
    store = FakeStore()
    store.open()
    return store


@pytest.fixture()
def job_store(tmp_path: Path) -> JobStore:
    """Real SQLite store; its correctness is part of what we test."""
    store = JobStore(tmp_path / "autojob.sqlite3")
    store.open()
    return store
