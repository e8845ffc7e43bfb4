# src/autojob/jobs/service.py

from __future__ import annotations

"""
Scheduler service.

Owns the run/pause state machine, the job queue, the event logger and the task
registry. One instance is built by the composition root (cli/bootstrap.py) and
handed to the worker loop and the control connectors.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from ..config import ServiceSettings
from ..core.errors import TaskConstructionError
from ..core.events import EventLogger, LogHandler, LogLevel, forward_to_logging
from ..core.ports import CredentialStore, ParseHTML
from ..core.queue import BlockingQueue
from ..core.state import ServiceState, ServiceStateMachine, StateListener
from ..http.markup import parse_html as default_parse_html
from .dispatch import DispatchClock
from .job import Job, SigninProfile
from .registry import TaskRegistry
from .task_models import Task

logger = logging.getLogger(__name__)

TaskSpec = Mapping[str, Any] | tuple[str, Any] | list[Any] | str


def _split_spec(spec: TaskSpec) -> tuple[str, Any]:
    if isinstance(spec, str):
        return spec, None
    if isinstance(spec, Mapping):
        return str(spec.get("name", "")), spec.get("args")
    if isinstance(spec, (tuple, list)) and spec:
        name = str(spec[0])
        rest = list(spec[1:])
        if len(rest) == 1:
            return name, rest[0]
        return name, rest
    return "", None


class Service:
    def __init__(
        self,
        *,
        credentials: CredentialStore,
        registry: TaskRegistry | None = None,
        profile: SigninProfile | None = None,
        settings: ServiceSettings | None = None,
        parse_html: ParseHTML = default_parse_html,
        events: EventLogger | None = None,
    ) -> None:
        self.events = events or EventLogger()
        self.state_machine = ServiceStateMachine(self.events)
        self.queue: BlockingQueue[Job] = BlockingQueue()
        self.registry = registry or TaskRegistry()
        self.profile = profile or SigninProfile()
        self.credentials = credentials
        self.parse_html = parse_html
        self.clock = DispatchClock()
        self.current_job: Job | None = None

        self._login_listeners: list[Callable[[str], None]] = []
        self._debug_handler: LogHandler | None = None
        self._settings = ServiceSettings()
        self.settings = settings or ServiceSettings()

    # ---- settings ----

    @property
    def settings(self) -> ServiceSettings:
        return self._settings

    @settings.setter
    def settings(self, value: ServiceSettings) -> None:
        self._settings = value
        self._apply_debug(value.debug)

    def apply_settings(self, values: Mapping[str, Any]) -> ServiceSettings:
        """Apply dotted `service.*` keys; anything else is ignored."""
        self.settings = self._settings.apply(values)
        return self._settings

    @property
    def debug(self) -> bool:
        return self._settings.debug

    def _apply_debug(self, enabled: bool) -> None:
        if enabled:
            self.events.level = LogLevel.DEBUG
            if self._debug_handler is None:
                self._debug_handler = forward_to_logging(logging.getLogger("autojob.events"))
                self.events.add_handler(self._debug_handler)
        elif self._debug_handler is not None:
            self.events.remove_handler(self._debug_handler)
            self._debug_handler = None
            self.events.level = LogLevel.INFO

    # ---- state machine ----

    @property
    def state(self) -> ServiceState:
        return self.state_machine.state

    def add_state_listener(self, listener: StateListener) -> None:
        self.state_machine.add_listener(listener)

    def start(self) -> bool:
        return self.state_machine.start()

    def stop(self) -> bool:
        return self.state_machine.stop()

    async def continue_(self) -> None:
        await self.state_machine.continue_()

    async def ready(self) -> None:
        await self.state_machine.ready()

    # ---- login prompt ----

    def add_login_listener(self, listener: Callable[[str], None]) -> None:
        if listener not in self._login_listeners:
            self._login_listeners.append(listener)

    def _prompt_login(self, url: str) -> None:
        self.events.warning(f"Login required: {url}")
        for listener in list(self._login_listeners):
            try:
                listener(url)
            except Exception:
                logger.exception("Login listener failed")

    # ---- jobs ----

    def build_tasks(self, specs: Iterable[TaskSpec]) -> list[Task]:
        tasks: list[Task] = []
        for spec in specs:
            name, args = _split_spec(spec)
            try:
                tasks.append(self.registry.create(name, args))
            except TaskConstructionError as e:
                self.events.error(f"Fail to create task: {e}", e)
        return tasks

    def create_job(self, *specs: TaskSpec) -> Job:
        self.events.debug("Creating a job...")
        job = Job(
            tasks=tuple(self.build_tasks(specs)),
            profile=self.profile,
            credentials=self.credentials,
            parse_html=self.parse_html,
            login_prompt=self._prompt_login,
        )
        self.queue.enqueue(job)
        return job

    # ---- introspection ----

    def ping(self, payload: Any = None) -> dict[str, Any]:
        return {"pang": payload}

    def status(self) -> dict[str, Any]:
        job = self.current_job
        return {
            "state": self.state.name,
            "queue_length": self.queue.length,
            "current_job": job.describe() if job is not None else None,
            "settings": self._settings.to_dict(),
        }

    def log_entries(self, limit: int = 50) -> list[dict[str, Any]]:
        entries = list(self.events.entries)
        n = max(0, int(limit))
        return [e.to_dict() for e in (entries[-n:] if n else [])]
