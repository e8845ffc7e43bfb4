# src/autojob/jobs/registry.py

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from ..core.errors import TaskConstructionError
from .task_models import Task

TaskFactory = Callable[..., Task]


class TaskRegistry:
    """Task-type name -> constructor, populated at startup and looked up at job creation."""

    def __init__(self) -> None:
        self._factories: dict[str, TaskFactory] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        factory: TaskFactory,
        help_text: str = "",
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.strip().lower()
        if not key:
            raise ValueError("task name is required")
        self._factories[key] = factory
        self._help[key] = help_text
        for alias in aliases:
            self._factories[alias.strip().lower()] = factory

    def names(self) -> list[str]:
        return sorted(self._help)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().lower() in self._factories

    def create(self, name: str, args: Sequence[Any] | None = None) -> Task:
        """Build a task instance or raise TaskConstructionError."""
        key = (name or "").strip().lower()
        factory = self._factories.get(key)
        if factory is None:
            raise TaskConstructionError(name, "unknown task type")

        if args is None:
            args = []
        elif isinstance(args, (str, bytes)) or not isinstance(args, Sequence):
            args = [args]

        try:
            task = factory(*args)
        except Exception as e:
            raise TaskConstructionError(name, f"{type(e).__name__}: {e}") from e

        if not isinstance(task, Task):
            raise TaskConstructionError(name, f"factory returned {type(task).__name__}, not a Task")
        return task

    def build_help(self) -> str:
        lines = ["Available tasks:"]
        for name, help_text in sorted(self._help.items()):
            lines.append(f"  {name} - {help_text}" if help_text else f"  {name}")
        return "\n".join(lines)
