"""SQLite-backed kiosk settings."""

from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DEFAULT_DB_PATH = DEFAULT_DATA_DIR / "videoplayer.db"
DEFAULT_LOCAL_USAGE_DB_PATH = DEFAULT_DATA_DIR / "local_usage.db"
DEFAULT_CHANNELS_FILE = DEFAULT_DATA_DIR / "channels.json"

# Default config values
DEFAULT_WEB_PORT = 8080
DEFAULT_DEBUG_MODE = False
API_KEY_ENV_VAR = "YOUTUBE_API_KEY"


@dataclass
class AppConfig:
    """Application configuration."""

    youtube_api_key: str
    channels_file: str
    kv_url: str
    web_port: int
    debug_mode: bool

    @classmethod
    def defaults(cls) -> AppConfig:
        return cls(
            youtube_api_key="",
            channels_file=str(DEFAULT_CHANNELS_FILE),
            kv_url="",
            web_port=DEFAULT_WEB_PORT,
            debug_mode=DEFAULT_DEBUG_MODE,
        )

    def resolved_api_key(self) -> str:
        """The configured API key, or the one from the environment."""
        return self.youtube_api_key or os.environ.get(API_KEY_ENV_VAR, "")


def _ensure_data_dir(db_path: Path) -> None:
    """Create the data directory if it doesn't exist."""
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _init_schema(conn: sqlite3.Connection) -> None:
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS config (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
    """)


def _config_to_dict(config: AppConfig) -> dict[str, str]:
    return {
        "youtube_api_key": config.youtube_api_key,
        "channels_file": config.channels_file,
        "kv_url": config.kv_url,
        "web_port": str(config.web_port),
        "debug_mode": "true" if config.debug_mode else "false",
    }


def _dict_to_config(d: dict[str, str]) -> AppConfig:
    return AppConfig(
        youtube_api_key=d.get("youtube_api_key", ""),
        channels_file=d.get("channels_file") or str(DEFAULT_CHANNELS_FILE),
        kv_url=d.get("kv_url", ""),
        web_port=int(d.get("web_port", DEFAULT_WEB_PORT)),
        debug_mode=d.get("debug_mode", "false").lower() in ("true", "1", "yes"),
    )


def get_db_path() -> Path:
    """Return the settings database path, ensuring the directory exists."""
    _ensure_data_dir(DEFAULT_DB_PATH)
    return DEFAULT_DB_PATH


def get_local_usage_db_path() -> Path:
    """Return the offline usage fallback database path."""
    _ensure_data_dir(DEFAULT_LOCAL_USAGE_DB_PATH)
    return DEFAULT_LOCAL_USAGE_DB_PATH


def load_config(db_path: Optional[Path] = None) -> AppConfig:
    """Load config from SQLite. Returns defaults if no config exists."""
    path = db_path or get_db_path()
    _ensure_data_dir(path)

    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    _init_schema(conn)

    rows = conn.execute("SELECT key, value FROM config").fetchall()
    conn.close()

    if not rows:
        return AppConfig.defaults()

    d = {row["key"]: row["value"] for row in rows}
    return _dict_to_config(d)


def save_config(config: AppConfig, db_path: Optional[Path] = None) -> None:
    """Save config to SQLite."""
    path = db_path or get_db_path()
    _ensure_data_dir(path)

    conn = sqlite3.connect(path)
    _init_schema(conn)

    for key, value in _config_to_dict(config).items():
        conn.execute(
            "INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
            (key, value),
        )
    conn.commit()
    conn.close()
