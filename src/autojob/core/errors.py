# src/autojob/core/errors.py

from __future__ import annotations

"""
Exception types shared by the scheduler core.

Propagation policy:
- task-level errors (TaskExecutionError) never escape a job,
- job-level errors (AuthenticationRequired, StoreError) escape to the worker loop,
- TransportError is converted to a boolean by the control hub,
- TaskConstructionError is logged at job creation and the task is dropped.
"""


class AutojobError(Exception):
    """Base class for all autojob errors."""


class NotImplementedTaskError(AutojobError, NotImplementedError):
    """An abstract task member was used without an override."""

    def __init__(self, message: str = "Not implemented.") -> None:
        super().__init__(message)


class SigninError(AutojobError):
    """Signin round trip failed or the page did not expose an identity."""


class AuthenticationRequired(SigninError):
    """Signin detected an unauthenticated session (redirect to a login page)."""

    def __init__(self, login_url: str, message: str | None = None) -> None:
        super().__init__(message or f"Not signed in (login required at {login_url})")
        self.login_url = login_url


class TaskExecutionError(AutojobError):
    """A task's run() raised; carried in log context, never propagated out of a job."""

    def __init__(self, task_name: str, cause: BaseException) -> None:
        super().__init__(f"Task {task_name!r} failed: {cause!r}")
        self.task_name = task_name
        self.cause = cause


class TaskConstructionError(AutojobError):
    """Unknown task name or a failing task constructor."""

    def __init__(self, task_name: str, reason: str) -> None:
        super().__init__(f"Cannot create task {task_name!r}: {reason}")
        self.task_name = task_name
        self.reason = reason


class TransportError(AutojobError):
    """Delivery to a disconnected control endpoint failed."""


class StoreError(AutojobError):
    """Persistent store failure (unknown collection, closed store, bad record)."""


class TaskNotBoundError(AutojobError, RuntimeError):
    """A task ran without the hooks that init() binds."""


class CredentialFileError(AutojobError):
    """A cookie file could not be read."""
