# src/autojob/jobs/builtin.py

"""
Built-in task types.

Site-specific tasks live outside the core; these two are generic and double as
examples of the Task contract (bound hooks, dispatch through the gate, log via
the job's event logger).
"""

from __future__ import annotations

from ..core.errors import TaskNotBoundError
from .registry import TaskRegistry
from .task_models import Task


class EchoTask(Task):
    """Logs its arguments. Handy for smoke-testing the whole pipeline."""

    name = "echo"

    def __init__(self, *words: object) -> None:
        self.text = " ".join(str(w) for w in words)

    async def run(self) -> None:
        if self.logger is None:
            raise TaskNotBoundError(f"{self!r} ran without init()")
        self.logger.info(f"echo: {self.text}", {"job_id": self.job_id})


class FetchPageTask(Task):
    """Fetches one page through the dispatch gate and logs its status and title."""

    name = "fetch_page"

    def __init__(self, url: str) -> None:
        url = str(url).strip()
        if not url:
            raise ValueError("url is required")
        self.url = url

    async def run(self) -> None:
        if self.fetch is None or self.logger is None or self.parse_html is None:
            raise TaskNotBoundError(f"{self!r} ran without init()")
        response = await self.fetch(self.url)
        doc = self.parse_html(await response.text(), response.url)
        title = doc.query_selector("title")
        self.logger.info(
            f"Fetched {response.url} (HTTP {response.status})",
            {"title": title.text_content().strip() if title is not None else ""},
        )


def register_builtin_tasks(registry: TaskRegistry) -> TaskRegistry:
    registry.register("echo", EchoTask, help_text="Log the arguments: echo <text ...>.")
    registry.register("fetch_page", FetchPageTask, help_text="Fetch a page: fetch_page <url>.", aliases=["fetch"])
    return registry
