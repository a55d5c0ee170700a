# src/retask/config.py

"""Reminder settings read from RETASK_* environment variables and an optional .env.

Everything has a default; Matrix credentials are only needed when
RETASK_MATRIX_ENABLED is set.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "RETASK"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path

    # ---- Reminder policy ----
    lead_minutes: int
    imminent_minutes: int
    window_hours: int
    refresh_minutes: int
    snooze_minutes: int
    summary_max_lines: int

    # ---- Alarms ----
    exact_alarms: bool
    inexact_window_seconds: float

    # ---- Front ends / delivery ----
    console_enabled: bool
    matrix_enabled: bool
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_rooms: list[str]
    matrix_store_path: Path

    @staticmethod
    def from_env(*, load_env_file: bool = True) -> "Settings":
        if load_env_file:
            load_dotenv(override=False)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/retask"))

        return Settings(
            app_name=_env(_k("APP_NAME"), "retask") or "retask",
            log_level=_env(_k("LOG_LEVEL"), "INFO"),
            data_dir=data_dir,
            tasks_db_path=_env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3"),
            lead_minutes=max(0, _env_int(_k("LEAD_MINUTES"), 10)),
            imminent_minutes=max(1, _env_int(_k("IMMINENT_MINUTES"), 30)),
            window_hours=max(1, _env_int(_k("WINDOW_HOURS"), 24)),
            refresh_minutes=max(1, _env_int(_k("REFRESH_MINUTES"), 15)),
            snooze_minutes=max(1, _env_int(_k("SNOOZE_MINUTES"), 15)),
            summary_max_lines=max(1, _env_int(_k("SUMMARY_MAX_LINES"), 5)),
            exact_alarms=_env_bool(_k("EXACT_ALARMS"), True),
            inexact_window_seconds=max(0.0, _env_float(_k("INEXACT_WINDOW_SECONDS"), 60.0)),
            console_enabled=_env_bool(_k("CONSOLE_ENABLED"), True),
            matrix_enabled=_env_bool(_k("MATRIX_ENABLED"), False),
            matrix_homeserver=_env(_k("MATRIX_HOMESERVER")).strip(),
            matrix_user_id=_env(_k("MATRIX_USER_ID")).strip(),
            matrix_password=_env(_k("MATRIX_PASSWORD")).strip(),
            matrix_rooms=_env_list(_k("MATRIX_ROOMS"), []),
            matrix_store_path=_env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
