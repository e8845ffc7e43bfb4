# tests/test_app.py

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from autojob.cli.bootstrap import build_profile, create_app
from autojob.config import ServiceSettings, Settings
from autojob.connectors.console_connector import ConsoleEndpoint, handle_console_line
from autojob.connectors.control import ControlHub
from autojob.core.errors import TransportError
from autojob.jobs.service import Service

from .fakes import FakeCredentialStore, write_cookie_file


@pytest.fixture()
def settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Settings:
    monkeypatch.setenv("AUTOJOB_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("AUTOJOB_DB_PATH", raising=False)
    monkeypatch.delenv("AUTOJOB_MATRIX_STORE_PATH", raising=False)
    monkeypatch.delenv("AUTOJOB_COOKIES_FILE", raising=False)
    return dataclasses.replace(
        Settings.from_env(),
        matrix_enabled=False,
        service=ServiceSettings(request_interval=0.5),
    )


@pytest.mark.asyncio
async def test_create_app_wires_everything(settings: Settings) -> None:
    app = create_app(settings=settings)
    try:
        assert settings.data_dir.is_dir()
        assert app.service.settings.request_interval == 0.5
        assert app.service.profile == build_profile(settings)
        assert "echo" in app.service.registry
        assert app.hub.service is app.service
        assert app.store.db_path == settings.db_path
    finally:
        await app.aclose()


def test_build_profile_uses_configured_credentials(settings: Settings) -> None:
    profile = build_profile(dataclasses.replace(settings, credential_names=["sid"], credential_domain="x.test"))
    assert profile.credential_names == ("sid",)
    assert profile.credential_domain == "x.test"


def test_console_endpoint_prints_notifications(capsys: pytest.CaptureFixture[str]) -> None:
    endpoint = ConsoleEndpoint()
    endpoint.post({"type": "statechange", "from": "STOPPED", "to": "START_PENDING"})
    endpoint.post({"type": "login_required", "url": "https://login.test/"})

    out = capsys.readouterr().out
    assert "[SERVICE] STOPPED -> START_PENDING" in out
    assert "https://login.test/" in out

    endpoint.closed = True
    with pytest.raises(TransportError):
        endpoint.post({"type": "statechange"})


@pytest.mark.asyncio
async def test_create_app_loads_the_cookie_file(settings: Settings, tmp_path: Path) -> None:
    path = write_cookie_file(tmp_path / "cookies.txt", [(".douban.com", "dbcl2", "secret")])
    app = create_app(settings=dataclasses.replace(settings, cookies_file=path))
    try:
        assert app.service.credentials.get_all("douban.com") == [("dbcl2", "secret")]
    finally:
        await app.aclose()


@pytest.mark.asyncio
async def test_create_app_survives_a_missing_cookie_file(settings: Settings, tmp_path: Path) -> None:
    app = create_app(settings=dataclasses.replace(settings, cookies_file=tmp_path / "missing.txt"))
    try:
        assert app.service.credentials.get_all("douban.com") == []
    finally:
        await app.aclose()


def test_console_routes_json_syscalls_to_the_hub(capsys: pytest.CaptureFixture[str]) -> None:
    hub = ControlHub(Service(credentials=FakeCredentialStore()))
    endpoint = ConsoleEndpoint()
    hub.connect(endpoint)

    assert handle_console_line(hub, endpoint, '{"type": "syscall", "id": 5, "method": "ping", "args": ["x"]}') is None
    out = capsys.readouterr().out
    assert '[SYSCALL] {"type": "syscall", "id": 5, "return": {"pang": "x"}}' in out

    assert handle_console_line(hub, endpoint, "/ping y") == '{"pang": "y"}'
    assert handle_console_line(hub, endpoint, "hello").startswith("Not a command")
