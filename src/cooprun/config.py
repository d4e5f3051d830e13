# src/cooprun/config.py

"""Settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole library.
- Nothing required at import time; every field has a default.
- Explicit constructor arguments (TaskRunner(join_timeout=...),
  Channel(capacity)) always win over settings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "COOPRUN"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


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


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- Logging ----
    log_level: str
    log_dir: Path
    log_to_file: bool

    # ---- Channels ----
    # <= 0 means unlimited.
    default_channel_capacity: int

    # ---- Runner ----
    # Upper bound for joining a scope's tasks on exit; <= 0 means wait forever.
    join_timeout_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            log_level=_env(_k("LOG_LEVEL"), "INFO").strip().upper() or "INFO",
            log_dir=_env_path(_k("LOG_DIR"), Path(".local/cooprun")),
            log_to_file=_env_bool(_k("LOG_TO_FILE"), False),
            default_channel_capacity=_env_int(_k("CHANNEL_CAPACITY"), 64),
            join_timeout_seconds=_env_float(_k("JOIN_TIMEOUT"), 0.0),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
