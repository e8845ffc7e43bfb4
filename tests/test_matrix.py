# tests/test_matrix.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from autojob.connectors.control import ControlHub
from autojob.connectors.matrix_client import MatrixSession
from autojob.connectors.matrix_connector import MatrixRoomEndpoint, _reconcile_rooms, render_message
from autojob.jobs.service import Service


def test_session_round_trip_via_file(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    assert MatrixSession.load(path) is None

    MatrixSession(user_id="@bot:x.org", device_id="DEV", access_token="tok").save(path)

    assert json.loads(path.read_text("utf-8"))["device_id"] == "DEV"
    assert MatrixSession.load(path) == MatrixSession("@bot:x.org", "DEV", "tok")


@pytest.mark.parametrize(
    "content",
    ["not json", "[1, 2]", json.dumps({"user_id": "@bot:x.org", "device_id": "DEV"})],
)
def test_unusable_session_file(tmp_path: Path, content: str) -> None:
    path = tmp_path / "session.json"
    path.write_text(content, "utf-8")
    with pytest.raises(ValueError):
        MatrixSession.load(path)


def test_render_message_kinds() -> None:
    assert render_message({"type": "statechange", "from": "STOPPED", "to": "START_PENDING"}) == (
        "Service: STOPPED -> START_PENDING"
    )
    assert render_message({"type": "login_required", "url": "https://l.test/"}).endswith("https://l.test/")
    assert render_message({"type": "syscall", "id": 1, "return": 3}) == "3"
    assert render_message({"type": "syscall", "id": 1, "error": "nope"}) == "Error: nope"


class _StubClient:
    def __init__(self, rooms: list[str]) -> None:
        self.rooms = {room_id: object() for room_id in rooms}


def test_rooms_are_reconciled_with_the_hub(service: Service) -> None:
    hub = ControlHub(service)
    client = _StubClient(["!a:x.org", "!b:x.org", "!c:x.org"])
    endpoints: dict[str, MatrixRoomEndpoint] = {}

    _reconcile_rooms(hub, client, endpoints, {"!a:x.org", "!b:x.org"})  # type: ignore[arg-type]
    assert sorted(hub.endpoints) == ["matrix:!a:x.org", "matrix:!b:x.org"]

    del client.rooms["!a:x.org"]
    _reconcile_rooms(hub, client, endpoints, None)  # type: ignore[arg-type]
    assert sorted(hub.endpoints) == ["matrix:!b:x.org", "matrix:!c:x.org"]


def test_post_to_a_left_room_fails(service: Service) -> None:
    client = _StubClient([])
    endpoint = MatrixRoomEndpoint(client, "!gone:x.org")  # type: ignore[arg-type]
    assert ControlHub(service).post_message(endpoint, {"type": "statechange"}) is False
