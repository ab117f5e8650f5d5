# src/kreqo/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Tests build their own settings objects instead of reading the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "KREQO"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


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
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    session_path: Path

    # ---- Tasks ----
    create_delay_seconds: float
    ownership_policy: str

    # ---- Auth ----
    bcrypt_rounds: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "kreqo") or "kreqo"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/kreqo"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "kreqo.sqlite3")
        session_path = _env_path(_k("SESSION_PATH"), data_dir / "session")

        # Fake API delay on task creation, so pending entries are visible.
        create_delay_ms = max(0, _env_int(_k("CREATE_DELAY_MS"), 1250))

        ownership_policy = _env(_k("OWNERSHIP_POLICY"), "open").strip().lower() or "open"

        # bcrypt accepts 4..31
        bcrypt_rounds = min(31, max(4, _env_int(_k("BCRYPT_ROUNDS"), 12)))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            db_path=db_path,
            session_path=session_path,
            create_delay_seconds=create_delay_ms / 1000.0,
            ownership_policy=ownership_policy,
            bcrypt_rounds=bcrypt_rounds,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
