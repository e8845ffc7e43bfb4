# tests/test_commands.py

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from autojob.cli.commands import CommandRegistry, parse_job_specs, registry
from autojob.config import ServiceSettings
from autojob.connectors.control import ControlHub
from autojob.core.state import ServiceState
from autojob.http.client import CookieCredentialStore
from autojob.jobs.service import Service

from .fakes import write_cookie_file


@pytest.fixture()
def hub(service: Service) -> ControlHub:
    return ControlHub(service)


def test_command_registry_routes_with_endpoint(hub: ControlHub) -> None:
    reg = CommandRegistry()
    seen: list[tuple[list[str], str | None]] = []

    def handler(hub, args, endpoint):
        seen.append((args, endpoint))
        return "ok"

    reg.register("a", handler, "a", aliases=["alpha"])

    assert reg.handle(hub, "/a x y", endpoint="console") == "ok"
    assert reg.handle(hub, "/ALPHA") == "ok"
    assert seen == [(["x", "y"], "console"), ([], None)]


def test_command_registry_unknown_and_non_command(hub: ControlHub) -> None:
    reg = CommandRegistry()
    assert reg.handle(hub, "hello") is None
    assert "Unknown command" in (reg.handle(hub, "/nope") or "")
    assert "Empty command" in (reg.handle(hub, "/") or "")


def test_parse_job_specs_splits_on_semicolons() -> None:
    assert parse_job_specs(["echo", "a", ";", "fetch_page", "https://x.test/;", ";"]) == [
        ["echo", "a"],
        ["fetch_page", "https://x.test/"],
    ]
    assert parse_job_specs([]) == []


def test_start_and_stop_commands(hub: ControlHub, service: Service) -> None:
    assert registry.handle(hub, "/start") == "Service starting."
    assert service.state is ServiceState.START_PENDING
    assert "Cannot start" in (registry.handle(hub, "/start") or "")

    assert "stopping" in (registry.handle(hub, "/stop") or "")
    assert service.state is ServiceState.STOPPED
    assert "Cannot stop" in (registry.handle(hub, "/stop") or "")


def test_job_command_queues_tasks(hub: ControlHub, service: Service) -> None:
    reply = registry.handle(hub, "/job echo hi ; record")
    assert reply == "Job queued: echo, record (queue length 1)."

    reply = registry.handle(hub, "/job nosuchtask")
    assert reply == "Job queued with no valid tasks (see /log)."
    assert service.queue.length == 2
    assert "Usage" in (registry.handle(hub, "/job") or "")


def test_status_and_ping_commands(hub: ControlHub) -> None:
    status = registry.handle(hub, "/status") or ""
    assert "State: STOPPED" in status
    assert "Queue length: 0" in status
    assert "Current job: none" in status

    assert registry.handle(hub, "/ping hello there") == '{"pang": "hello there"}'
    assert registry.handle(hub, "/ping") == '{"pang": null}'


def test_log_command_shows_recent_entries(hub: ControlHub, service: Service) -> None:
    assert registry.handle(hub, "/log") == "Log is empty."
    service.events.info("first")
    service.events.warning("second")

    reply = registry.handle(hub, "/log 1") or ""
    assert reply.endswith("WARNING: second")
    assert "first" not in reply
    assert registry.handle(hub, "/log many") == "Usage: /log [count]"


def test_set_command_updates_service_settings(hub: ControlHub, service: Service) -> None:
    reply = registry.handle(hub, "/set service.request_interval 2.5") or ""
    assert "service.request_interval=2.5" in reply
    assert service.settings.request_interval == 2.5

    assert (registry.handle(hub, "/set service.bogus 1") or "").startswith("Nothing changed")
    assert (registry.handle(hub, "/set service.request_interval -1") or "").startswith("Nothing changed")
    assert service.settings.request_interval == 2.5


def test_help_lists_commands_and_tasks(hub: ControlHub) -> None:
    text = registry.handle(hub, "/help") or ""
    assert "/start" in text
    assert "/job" in text
    assert "echo" in text
    assert "fetch_page" in text


def test_job_command_keeps_multi_word_arguments(hub: ControlHub, service: Service) -> None:
    reply = registry.handle(hub, "/job echo hello world ; echo \"a ; b\"")
    assert reply == "Job queued: echo, echo (queue length 1)."

    job = service.queue._items[0]
    assert [t.text for t in job.tasks] == ["hello world", "a ; b"]
    assert not [e for e in service.events.entries if e.message.startswith("Fail to create task")]


def test_job_command_reports_unbalanced_quotes(hub: ControlHub, service: Service) -> None:
    assert (registry.handle(hub, "/job echo \"oops") or "").startswith("Cannot parse job")
    assert service.queue.length == 0


def test_parse_job_specs_keeps_url_fragments() -> None:
    assert parse_job_specs(["fetch_page", "https://x.test/a#top"]) == [["fetch_page", "https://x.test/a#top"]]


def test_cookies_command_loads_the_file(tmp_path: Path) -> None:
    credentials = CookieCredentialStore(httpx.Cookies())
    service = Service(credentials=credentials, settings=ServiceSettings(request_interval=0.0))
    hub = ControlHub(service)

    assert "No cookie file" in (registry.handle(hub, "/cookies") or "")

    path = write_cookie_file(tmp_path / "cookies.txt", [(".douban.com", "dbcl2", "secret")])
    assert registry.handle(hub, f"/cookies {path}") == "Loaded 1 cookies. Use /start to resume."
    assert credentials.get_all("douban.com") == [("dbcl2", "secret")]


def test_cookies_command_needs_a_loadable_store(hub: ControlHub) -> None:
    assert registry.handle(hub, "/cookies") == "This credential store cannot load cookie files."
