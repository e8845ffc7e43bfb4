# src/autojob/jobs/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from ..core.errors import NotImplementedTaskError
from ..core.events import EventLogger
from ..core.ports import Dispatch, JobRepo, ParseHTML


@dataclass(slots=True)
class Session:
    """Identity plus credentials obtained by signin."""

    user_id: int
    display_name: str
    symbol: str
    credentials: dict[str, str] = field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "display_name": self.display_name,
            "symbol": self.symbol,
            "credentials": dict(self.credentials),
        }


class Task:
    """
    One unit of work inside a job.

    Subclasses set `name` and override `run()`. Hooks are bound by `init()`
    right before `run()` and dropped by `release()` right after it.
    """

    name: ClassVar[str]

    fetch: Dispatch | None = None
    store: JobRepo | None = None
    logger: EventLogger | None = None
    parse_html: ParseHTML | None = None
    job_id: int | None = None
    session: Session | None = None

    def init(
        self,
        fetch: Dispatch,
        store: JobRepo,
        logger: EventLogger,
        parse_html: ParseHTML,
        job_id: int | None,
        session: Session,
    ) -> None:
        self.fetch = fetch
        self.store = store
        self.logger = logger
        self.parse_html = parse_html
        self.job_id = job_id
        self.session = session

    def release(self) -> None:
        self.fetch = None
        self.store = None
        self.logger = None
        self.parse_html = None
        self.job_id = None
        self.session = None

    async def run(self) -> None:
        raise NotImplementedTaskError()

    @property
    def task_name(self) -> str:
        try:
            return type(self).name
        except AttributeError:
            raise NotImplementedTaskError() from None

    def to_json(self) -> str:
        # Only the name goes into the durable job record.
        return self.task_name

    def __repr__(self) -> str:
        name = getattr(type(self), "name", type(self).__name__)
        return f"<Task {name}>"
