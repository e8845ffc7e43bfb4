# src/autojob/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The scheduler depends on Protocols instead of concrete implementations.
This keeps HTTP/storage/transport swappable and makes testing easier.
"""

from typing import Any, Awaitable, Iterable, Protocol


class Response(Protocol):
    """What a dispatch round trip returns (a thin view over an HTTP response)."""

    url: str
    redirected: bool
    status: int

    def text(self) -> Awaitable[str]: ...


class Dispatch(Protocol):
    """Raw request capability: `await dispatch(resource, **options)`."""

    def __call__(self, resource: str, **options: Any) -> Awaitable[Response]: ...


class Document(Protocol):
    """Parsed markup with CSS selector queries."""

    def query_selector(self, selector: str) -> Any | None: ...
    def query_selector_all(self, selector: str) -> list[Any]: ...


class ParseHTML(Protocol):
    def __call__(self, content: str, base_url: str) -> Document: ...


class JobRepo(Protocol):
    """Persistent store used by jobs and tasks."""

    def open(self) -> None: ...
    def close(self) -> None: ...
    def put(self, collection: str, record: dict[str, Any]) -> None: ...
    def add(self, collection: str, record: dict[str, Any]) -> int: ...


class CredentialStore(Protocol):
    """Bulk read of stored credentials (cookies) scoped to a domain."""

    def get_all(self, domain: str) -> Iterable[tuple[str, str]]: ...


class Endpoint(Protocol):
    """
    A connected control endpoint (console, a Matrix room, ...).

    post() raises TransportError when the endpoint is gone.
    """

    @property
    def name(self) -> str: ...

    def post(self, message: dict[str, Any]) -> None: ...
