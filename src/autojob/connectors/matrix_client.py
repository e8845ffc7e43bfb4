# src/autojob/connectors/matrix_client.py

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path

from nio import AsyncClient, AsyncClientConfig, LoginResponse

from ..config import Settings

logger = logging.getLogger(__name__)

SESSION_FILE = "session.json"


@dataclass(frozen=True, slots=True)
class MatrixSession:
    """Access token + device of the control bot, reused across restarts."""

    user_id: str
    device_id: str
    access_token: str

    @classmethod
    def load(cls, path: Path) -> MatrixSession | None:
        """Returns None when the file is absent; raises ValueError when it is unusable."""
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text("utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ValueError(f"cannot read {path.name}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"{path.name} is not a JSON object")

        fields = {name: str(data.get(name) or "") for name in ("user_id", "device_id", "access_token")}
        missing = [name for name, value in fields.items() if not value]
        if missing:
            raise ValueError(f"{path.name} is missing {', '.join(missing)}")
        return cls(**fields)

    def save(self, path: Path) -> None:
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(asdict(self)), "utf-8")
        os.replace(tmp, path)
        try:
            os.chmod(path, 0o600)
        except OSError:
            # Not supported on every filesystem.
            pass

    def apply(self, client: AsyncClient) -> None:
        client.user_id = self.user_id
        client.device_id = self.device_id
        client.access_token = self.access_token


async def create_matrix_client(settings: Settings) -> AsyncClient | None:
    """
    Build the AsyncClient used by the control connector, or None if Matrix cannot be used.

    A saved session wins; the password is only needed to bootstrap the first one.
    End-to-end encryption is off: control traffic is plain commands and JSON replies.
    """
    if not settings.matrix_homeserver or not settings.matrix_user_id:
        logger.error("Matrix is not configured: set AUTOJOB_MATRIX_HOMESERVER and AUTOJOB_MATRIX_USER_ID")
        return None

    store_dir = settings.matrix_store_path
    try:
        store_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("Failed to create directory %s: %r", store_dir, e)
    session_file = store_dir / SESSION_FILE

    client = AsyncClient(
        settings.matrix_homeserver,
        settings.matrix_user_id,
        config=AsyncClientConfig(encryption_enabled=False, store_sync_tokens=False),
    )

    try:
        saved = MatrixSession.load(session_file)
    except ValueError as e:
        logger.warning("Ignoring saved Matrix session: %s", e)
        saved = None

    if saved is not None:
        saved.apply(client)
        logger.info("Matrix session restored for %s (device %s)", saved.user_id, saved.device_id)
        return client

    if not settings.matrix_password:
        logger.error("No saved Matrix session; set AUTOJOB_MATRIX_PASSWORD once to log in.")
        await client.close()
        return None

    device_name = f"{settings.app_name} control"
    logger.info("Logging in to Matrix as %s (device_name=%r)...", settings.matrix_user_id, device_name)
    resp = await client.login(password=settings.matrix_password, device_name=device_name)
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        await client.close()
        return None

    session = MatrixSession(user_id=resp.user_id, device_id=resp.device_id, access_token=resp.access_token)
    try:
        session.save(session_file)
        logger.info("Matrix session saved to %s", session_file)
    except OSError as e:
        # Logged in anyway; the next start needs the password again.
        logger.error("Failed to save Matrix session to %s: %r", session_file, e)
    return client
