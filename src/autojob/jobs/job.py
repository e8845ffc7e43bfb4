# src/autojob/jobs/job.py

from __future__ import annotations

"""
Job: one authenticated run of an ordered task list.

run():
- signin (one round trip through the dispatch gate),
- persist the session and the durable job record,
- run tasks strictly in order; a failing task is logged and skipped over.

Signin and persistence failures propagate to the worker loop.
"""

import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import AuthenticationRequired, SigninError, TaskExecutionError
from ..core.events import EventLogger
from ..core.ports import CredentialStore, Dispatch, JobRepo, ParseHTML
from .task_models import Session, Task

LoginPrompt = Callable[[str], None]


def _label(task: Task) -> str:
    return getattr(type(task), "name", type(task).__name__)


@dataclass(frozen=True, slots=True)
class SigninProfile:
    """Where and how signin finds the account identity and which credentials it keeps."""

    url: str = "https://m.douban.com/mine/"
    credential_domain: str = "douban.com"
    credential_names: tuple[str, ...] = ("ue", "bid", "frodotk_db", "ck", "dbcl2")
    user_selector: str = "#user"
    profile_link_selector: str = ".profile .detail .basic-info>a"
    symbol_pattern: str = r"/people/([^/?#]+)"


@dataclass(slots=True)
class Job:
    tasks: tuple[Task, ...]
    profile: SigninProfile
    credentials: CredentialStore
    parse_html: ParseHTML
    login_prompt: LoginPrompt | None = None
    created: int = field(default_factory=lambda: int(time.time() * 1000))

    id: int | None = None
    session: Session | None = None
    is_running: bool = False
    current_task: Task | None = None

    async def signin(self, fetch: Dispatch) -> Session:
        profile = self.profile
        response = await fetch(profile.url)

        if response.redirected:
            if self.login_prompt is not None:
                self.login_prompt(response.url)
            raise AuthenticationRequired(response.url)

        if response.status >= 400:
            raise SigninError(f"Signin page returned HTTP {response.status}")

        doc = self.parse_html(await response.text(), profile.url)

        user_el = doc.query_selector(profile.user_selector)
        link_el = doc.query_selector(profile.profile_link_selector)
        if user_el is None or link_el is None:
            raise SigninError("Signin page does not expose the account identity")

        raw_user_id = (user_el.get("value") or "").strip()
        try:
            user_id = int(raw_user_id)
        except ValueError:
            raise SigninError(f"Invalid user id on signin page: {raw_user_id!r}") from None

        match = re.search(profile.symbol_pattern, link_el.get("href") or "")
        if match is None:
            raise SigninError("Profile link does not contain the account symbol")

        wanted = {name: "" for name in profile.credential_names}
        for name, value in self.credentials.get_all(profile.credential_domain):
            if name in wanted:
                wanted[name] = value

        return Session(
            user_id=user_id,
            display_name=(user_el.get("data-name") or "").strip(),
            symbol=match.group(1),
            credentials=wanted,
        )

    def to_record(self, session: Session) -> dict[str, Any]:
        return {
            "user_id": session.user_id,
            "created": self.created,
            "tasks": [task.to_json() for task in self.tasks],
        }

    async def run(self, fetch: Dispatch, store: JobRepo, logger: EventLogger) -> None:
        self.is_running = True
        try:
            session = await self.signin(fetch)
            self.session = session
            store.put("session", session.to_record())
            self.id = store.add("job", self.to_record(session))

            for task in self.tasks:
                self.current_task = task
                task.init(fetch, store, logger, self.parse_html, self.id, session)
                try:
                    await task.run()
                except Exception as e:
                    err = TaskExecutionError(_label(task), e)
                    logger.error(f"Fail to run task: {e!r}", err)
                finally:
                    task.release()
        finally:
            self.current_task = None
            self.is_running = False

    def describe(self) -> dict[str, Any]:
        current = self.current_task
        return {
            "id": self.id,
            "created": self.created,
            "running": self.is_running,
            "tasks": [_label(t) for t in self.tasks],
            "current_task": _label(current) if current is not None else None,
            "user_id": self.session.user_id if self.session is not None else None,
        }
