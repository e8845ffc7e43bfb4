# src/autojob/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- The service section is an allow-listed schema: unknown or invalid keys are ignored.
"""

from __future__ import annotations

import math
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, List

ENV_PREFIX = "AUTOJOB"
SERVICE_NAMESPACE = "service"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if present."""
    from dotenv import load_dotenv

    load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _parse_bool(raw: Any) -> bool | None:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return bool(raw)
    if isinstance(raw, str):
        s = raw.strip().lower()
        if s in {"1", "true", "yes", "y", "on"}:
            return True
        if s in {"0", "false", "no", "n", "off", ""}:
            return False
    return None


def _parse_float(raw: Any) -> float | None:
    if isinstance(raw, bool):
        return None
    try:
        val = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(val) or math.isinf(val) or val < 0:
        return None
    return val


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    val = _parse_float(raw)
    return default if val is None else val


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class ServiceSettings:
    """
    Scheduler knobs.

    Dotted keys understood by load()/apply():
    - service.debug            -> debug (bool)
    - service.request_interval -> request_interval (seconds)
    - service.requestInterval  -> request_interval (milliseconds, legacy spelling)
    """

    debug: bool = False
    request_interval: float = 1.0

    @classmethod
    def load(cls, values: Mapping[str, Any] | None = None) -> "ServiceSettings":
        return cls().apply(values or {})

    def apply(self, values: Mapping[str, Any]) -> "ServiceSettings":
        changes: dict[str, Any] = {}
        for key, raw in values.items():
            if not isinstance(key, str):
                continue
            namespace, _, name = key.partition(".")
            if namespace != SERVICE_NAMESPACE or not name:
                continue

            if name == "debug":
                flag = _parse_bool(raw)
                if flag is not None:
                    changes["debug"] = flag
            elif name == "request_interval":
                seconds = _parse_float(raw)
                if seconds is not None:
                    changes["request_interval"] = seconds
            elif name == "requestInterval":
                millis = _parse_float(raw)
                if millis is not None:
                    changes["request_interval"] = millis / 1000.0
        return replace(self, **changes) if changes else self

    def to_dict(self) -> dict[str, Any]:
        return {
            f"{SERVICE_NAMESPACE}.debug": self.debug,
            f"{SERVICE_NAMESPACE}.request_interval": self.request_interval,
        }


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool
    matrix_enabled: bool
    autostart: bool

    # ---- Signin / HTTP ----
    signin_url: str
    credential_domain: str
    credential_names: List[str]
    cookies_file: Path | None
    user_agent: str
    http_timeout: float

    # ---- Matrix ----
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_rooms: List[str]

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    matrix_store_path: Path
    db_path: Path

    # ---- Scheduler ----
    service: ServiceSettings = field(default_factory=ServiceSettings)

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "autojob") or "autojob"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        matrix_enabled = _env_bool(_k("MATRIX_ENABLED"), False)
        autostart = _env_bool(_k("AUTOSTART"), False)

        signin_url = _env(_k("SIGNIN_URL"), "https://m.douban.com/mine/")
        credential_domain = _env(_k("CREDENTIAL_DOMAIN"), "douban.com")
        credential_names = _env_list(_k("CREDENTIAL_NAMES"), ["ue", "bid", "frodotk_db", "ck", "dbcl2"])
        cookies_raw = _env(_k("COOKIES_FILE")).strip()
        cookies_file = Path(cookies_raw).expanduser() if cookies_raw else None
        user_agent = _env(_k("USER_AGENT"), "Mozilla/5.0 (compatible; autojob/0.1)")
        http_timeout = _env_float(_k("HTTP_TIMEOUT"), 30.0)

        matrix_homeserver = _env(_k("MATRIX_HOMESERVER")).strip()
        matrix_user_id = _env(_k("MATRIX_USER_ID")).strip()
        matrix_password = _env(_k("MATRIX_PASSWORD")).strip()
        matrix_rooms = _env_list(_k("MATRIX_ROOMS"), [])

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/autojob"))
        matrix_store_path = _env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store")
        db_path = _env_path(_k("DB_PATH"), data_dir / "autojob.sqlite3")

        service = ServiceSettings.load(
            {
                "service.debug": os.getenv(_k("SERVICE_DEBUG")),
                "service.request_interval": os.getenv(_k("SERVICE_REQUEST_INTERVAL")),
            }
        )

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            matrix_enabled=matrix_enabled,
            autostart=autostart,
            signin_url=signin_url,
            credential_domain=credential_domain,
            credential_names=credential_names,
            cookies_file=cookies_file,
            user_agent=user_agent,
            http_timeout=http_timeout,
            matrix_homeserver=matrix_homeserver,
            matrix_user_id=matrix_user_id,
            matrix_password=matrix_password,
            matrix_rooms=matrix_rooms,
            data_dir=data_dir,
            matrix_store_path=matrix_store_path,
            db_path=db_path,
            service=service,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _load_dotenv_if_available()
        _SETTINGS = Settings.from_env()
    return _SETTINGS
