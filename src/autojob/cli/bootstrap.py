# src/autojob/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations (httpx dispatch, SQLite store, task registry)
  into one Service and its control hub.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import Settings, get_settings
from ..connectors.control import ControlHub
from ..core.errors import CredentialFileError
from ..http.client import CookieCredentialStore, HttpDispatch
from ..jobs.builtin import register_builtin_tasks
from ..jobs.job import SigninProfile
from ..jobs.job_store import JobStore
from ..jobs.registry import TaskRegistry
from ..jobs.service import Service

logger = logging.getLogger(__name__)


@dataclass
class App:
    settings: Settings
    service: Service
    hub: ControlHub
    dispatch: HttpDispatch
    store: JobStore

    async def aclose(self) -> None:
        self.store.close()
        await self.dispatch.aclose()


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    if settings.matrix_enabled:
        settings.matrix_store_path.mkdir(parents=True, exist_ok=True)


def build_profile(settings: Settings) -> SigninProfile:
    return SigninProfile(
        url=settings.signin_url,
        credential_domain=settings.credential_domain,
        credential_names=tuple(settings.credential_names),
    )


def create_app(*, settings: Settings | None = None) -> App:
    """
    Build the app from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    dispatch = HttpDispatch(timeout_seconds=settings.http_timeout, user_agent=settings.user_agent)
    store = JobStore(settings.db_path)

    credentials = CookieCredentialStore(dispatch.client.cookies, settings.cookies_file)
    if settings.cookies_file is not None:
        try:
            credentials.reload()
        except CredentialFileError as e:
            # Not fatal: signin will ask for a login and /cookies can retry.
            logger.warning("%s", e)

    service = Service(
        credentials=credentials,
        registry=register_builtin_tasks(TaskRegistry()),
        profile=build_profile(settings),
        settings=settings.service,
    )
    hub = ControlHub(service)

    logger.info(
        "App wired: db=%s signin=%s interval=%.2fs tasks=%s",
        settings.db_path,
        settings.signin_url,
        settings.service.request_interval,
        ", ".join(service.registry.names()),
    )
    return App(settings=settings, service=service, hub=hub, dispatch=dispatch, store=store)
