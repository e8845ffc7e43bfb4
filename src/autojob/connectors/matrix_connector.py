# src/autojob/connectors/matrix_connector.py

from __future__ import annotations

"""
Matrix control connector.

Every joined (and allow-listed) room is a control endpoint: slash commands in
the room drive the service, and hub broadcasts (state changes, login prompts)
are posted back as text. Rooms are reconciled after each sync: new rooms
connect, rooms we left disconnect.
"""

import asyncio
import contextlib
import json
import logging
import time
from typing import Any

from nio import AsyncClient, MatrixRoom, RoomMessageText

from ..cli.commands import registry as command_registry
from ..config import Settings
from ..core.errors import TransportError
from .control import ControlHub, parse_syscall
from .matrix_client import create_matrix_client

logger = logging.getLogger(__name__)


def _ms_now() -> int:
    return int(time.time() * 1000)


def _room_allowlist(settings_rooms: list[str]) -> set[str] | None:
    rooms = [r.strip() for r in (settings_rooms or []) if str(r).strip()]
    return set(rooms) if rooms else None


def render_message(message: dict[str, Any]) -> str:
    kind = message.get("type")
    if kind == "statechange":
        return f"Service: {message.get('from')} -> {message.get('to')}"
    if kind == "login_required":
        return f"Login required, open in a browser: {message.get('url')}"
    if kind == "syscall":
        if "error" in message:
            return f"Error: {message['error']}"
        return json.dumps(message.get("return"), ensure_ascii=False, default=str)
    return str(message)


async def _send_text(client: AsyncClient, *, room_id: str, text: str) -> None:
    await client.room_send(
        room_id=room_id,
        message_type="m.room.message",
        content={"msgtype": "m.text", "body": text},
        ignore_unverified_devices=True,
    )


class MatrixRoomEndpoint:
    def __init__(self, client: AsyncClient, room_id: str) -> None:
        self.client = client
        self.room_id = room_id
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def name(self) -> str:
        return f"matrix:{self.room_id}"

    def post(self, message: dict[str, Any]) -> None:
        if self.room_id not in self.client.rooms:
            raise TransportError(f"Not joined to {self.room_id}")
        task = asyncio.get_running_loop().create_task(self._deliver(render_message(message)))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, text: str) -> None:
        try:
            await _send_text(self.client, room_id=self.room_id, text=text)
        except Exception:
            logger.exception("Failed to post to room %s.", self.room_id)


def _reconcile_rooms(
    hub: ControlHub,
    client: AsyncClient,
    endpoints: dict[str, MatrixRoomEndpoint],
    allowed_rooms: set[str] | None,
) -> None:
    joined = {r for r in client.rooms if allowed_rooms is None or r in allowed_rooms}

    for room_id in joined - set(endpoints):
        endpoint = MatrixRoomEndpoint(client, room_id)
        endpoints[room_id] = endpoint
        hub.connect(endpoint)

    for room_id in set(endpoints) - joined:
        hub.disconnect(endpoints.pop(room_id))


async def run_matrix_connector(hub: ControlHub, settings: Settings, stop_event: asyncio.Event) -> None:
    """
    init -> callbacks -> sync loop (until stop_event is set or the task is cancelled)
    """
    if not settings.matrix_enabled:
        logger.info("Matrix connector disabled via settings.")
        return

    startup_ts = _ms_now()
    allowed_rooms = _room_allowlist(settings.matrix_rooms)
    logger.info("Matrix allowed_rooms=%s", allowed_rooms if allowed_rooms is not None else "ALL")

    client = await create_matrix_client(settings)
    if client is None:
        logger.error("Matrix client creation failed; connector will stop.")
        return

    endpoints: dict[str, MatrixRoomEndpoint] = {}

    async def message_callback(room: MatrixRoom, event: RoomMessageText) -> None:
        # Ignore history from before startup and our own messages.
        ts = getattr(event, "server_timestamp", None)
        if ts is not None and ts <= startup_ts:
            return
        if event.sender == client.user_id:
            return
        if allowed_rooms is not None and room.room_id not in allowed_rooms:
            return

        body = (event.body or "").strip()
        message = parse_syscall(body)
        if message is not None:
            endpoint = endpoints.get(room.room_id) or MatrixRoomEndpoint(client, room.room_id)
            hub.on_message(endpoint, message)
            return
        if not body.startswith("/"):
            return

        logger.info("Matrix <%s> %s: %r", room.display_name, event.sender, body)
        try:
            resp = command_registry.handle(hub, body, endpoint=f"matrix:{room.room_id}")
        except Exception:
            logger.exception("Command handler crashed.")
            resp = "Internal error while handling a command."

        if resp:
            try:
                await _send_text(client, room_id=room.room_id, text=resp)
            except Exception:
                logger.exception("Failed to send command reply.")

    client.add_event_callback(message_callback, RoomMessageText)

    try:
        logger.info("Matrix initial sync...")
        await client.sync(timeout=30000, full_state=True)
        _reconcile_rooms(hub, client, endpoints, allowed_rooms)
        logger.info("Matrix initial sync done. Control rooms: %d", len(endpoints))

        while not stop_event.is_set():
            await client.sync(timeout=30000, full_state=False)
            _reconcile_rooms(hub, client, endpoints, allowed_rooms)

    except asyncio.CancelledError:
        logger.info("Matrix connector cancelled.")
        raise
    except Exception:
        logger.exception("Matrix connector crashed.")
    finally:
        for endpoint in list(endpoints.values()):
            hub.disconnect(endpoint)
        with contextlib.suppress(Exception):
            await client.close()
        logger.info("Matrix connector stopped.")
