# src/autojob/connectors/control.py

from __future__ import annotations

"""
Control hub shared by all connectors.

Endpoints (console, Matrix rooms, ...) register on connect and deregister on
disconnect. Incoming messages of type "syscall" invoke an allow-listed service
operation and the result is posted back to the same endpoint. broadcast()
pushes state changes and login prompts to everybody; a dead endpoint only
yields False, never an exception.
"""

import json
import logging
from collections.abc import Callable
from typing import Any

from ..core.errors import TransportError
from ..core.ports import Endpoint
from ..core.state import ServiceState
from ..jobs.service import Service

logger = logging.getLogger(__name__)


def _syscalls(service: Service) -> dict[str, Callable[..., Any]]:
    methods: dict[str, Callable[..., Any]] = {
        "start": service.start,
        "stop": service.stop,
        "status": service.status,
        "ping": service.ping,
        "create_job": lambda *specs: service.create_job(*specs).describe(),
        "current_job": lambda: service.current_job.describe() if service.current_job else None,
        "queue_length": lambda: service.queue.length,
        "log_entries": service.log_entries,
        "tasks": service.registry.names,
    }
    reload_credentials = getattr(service.credentials, "reload", None)
    if callable(reload_credentials):
        methods["load_cookies"] = reload_credentials
    return methods


def parse_syscall(text: str) -> dict[str, Any] | None:
    """
    Decode a raw control line such as {"type": "syscall", "id": 1, "method": "status"}.

    Returns None for anything that is not a JSON syscall object.
    """
    text = (text or "").strip()
    if not text.startswith("{"):
        return None
    try:
        message = json.loads(text)
    except ValueError:
        return None
    if not isinstance(message, dict) or message.get("type") != "syscall":
        return None
    return message


class ControlHub:
    def __init__(self, service: Service) -> None:
        self.service = service
        self._endpoints: dict[str, Endpoint] = {}
        self._methods = _syscalls(service)
        service.add_state_listener(self._on_state_change)
        service.add_login_listener(self._on_login_required)

    @property
    def endpoints(self) -> list[str]:
        return list(self._endpoints)

    def syscalls(self) -> list[str]:
        return sorted(self._methods)

    def connect(self, endpoint: Endpoint) -> None:
        self._endpoints[endpoint.name] = endpoint
        logger.info("Control endpoint connected: %s", endpoint.name)

    def disconnect(self, endpoint: Endpoint | str) -> None:
        name = endpoint if isinstance(endpoint, str) else endpoint.name
        if self._endpoints.pop(name, None) is not None:
            logger.info("Control endpoint disconnected: %s", name)

    def post_message(self, endpoint: Endpoint, message: dict[str, Any]) -> bool:
        try:
            endpoint.post(message)
        except TransportError:
            logger.debug("Post to %s failed", endpoint.name, exc_info=True)
            return False
        return True

    def broadcast(self, message: dict[str, Any]) -> int:
        """Returns the number of endpoints that accepted the message."""
        delivered = 0
        for endpoint in list(self._endpoints.values()):
            if self.post_message(endpoint, message):
                delivered += 1
        return delivered

    def syscall(self, method: str, *args: Any) -> Any:
        fn = self._methods.get(method)
        if fn is None:
            raise KeyError(method)
        return fn(*args)

    def on_message(self, endpoint: Endpoint, message: dict[str, Any]) -> None:
        if not isinstance(message, dict) or message.get("type") != "syscall":
            logger.debug("Ignoring control message from %s: %r", endpoint.name, message)
            return

        method = str(message.get("method", ""))
        args = message.get("args") or []
        if not isinstance(args, (list, tuple)):
            args = [args]

        reply: dict[str, Any] = {"type": "syscall", "id": message.get("id")}
        if method not in self._methods:
            reply["error"] = f"Unknown method: {method}"
            self.post_message(endpoint, reply)
            return

        try:
            reply["return"] = self.syscall(method, *args)
        except Exception as e:
            logger.exception("Syscall %s crashed", method)
            reply["error"] = f"{type(e).__name__}: {e}"

        self.post_message(endpoint, reply)

    # ---- service notifications ----

    def _on_state_change(self, previous: ServiceState, current: ServiceState) -> None:
        self.broadcast({"type": "statechange", "from": previous.name, "to": current.name})

    def _on_login_required(self, url: str) -> None:
        self.broadcast({"type": "login_required", "url": url})
