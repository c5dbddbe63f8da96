"""Key-value stores behind the persistence gateway: SQLite locally, HTTP remotely."""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx

from .errors import PersistenceUnavailable

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 5.0  # seconds


class KeyValueStore:
    """Interface for a JSON value store with optional per-key expiry."""

    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None if absent or expired."""
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store value under key, expiring after ttl seconds if given."""
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class SqliteKeyValueStore(KeyValueStore):
    """Key-value table in a SQLite file."""

    def __init__(self, db_path: Path, clock: Callable[[], float] = time.time):
        self.db_path = Path(db_path)
        self._clock = clock

    def _connect(self) -> sqlite3.Connection:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path)
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL
                );
            """)
            return conn
        except (sqlite3.Error, OSError) as e:
            raise PersistenceUnavailable(f"Cannot open {self.db_path}: {e}") from e

    def get(self, key: str) -> Optional[Any]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT value, expires_at FROM kv WHERE key = ?", (key,)
            ).fetchone()
            if row is None:
                return None
            value, expires_at = row
            if expires_at is not None and expires_at <= self._clock():
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                conn.commit()
                return None
            return json.loads(value)
        except (sqlite3.Error, json.JSONDecodeError) as e:
            raise PersistenceUnavailable(f"Cannot read {key!r}: {e}") from e
        finally:
            conn.close()

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        conn = self._connect()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, expires_at) VALUES (?, ?, ?)",
                (key, json.dumps(value), expires_at),
            )
            conn.commit()
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise PersistenceUnavailable(f"Cannot write {key!r}: {e}") from e
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = self._connect()
        try:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceUnavailable(f"Cannot delete {key!r}: {e}") from e
        finally:
            conn.close()


class HttpKeyValueStore(KeyValueStore):
    """
    Client for the /api/kv endpoints of another kiosk instance.

    Every call is bounded by the client timeout, so a slow store delays a tick
    but never hangs it.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def _path(self, key: str) -> str:
        return "/api/kv/" + quote(key, safe=":")

    def _request(self, method: str, key: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, self._path(key), **kwargs)
        except httpx.HTTPError as e:
            raise PersistenceUnavailable(f"{method} {key!r} failed: {e}") from e

    def get(self, key: str) -> Optional[Any]:
        resp = self._request("GET", key)
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            raise PersistenceUnavailable(f"GET {key!r} returned HTTP {resp.status_code}")
        try:
            body = resp.json()
        except ValueError as e:
            raise PersistenceUnavailable(f"GET {key!r} returned invalid JSON") from e
        if not isinstance(body, dict):
            raise PersistenceUnavailable(
                f"GET {key!r} returned {type(body).__name__}, expected an object"
            )
        return body.get("value")

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        resp = self._request("PUT", key, json={"value": value, "ttl": ttl})
        if not resp.is_success:
            raise PersistenceUnavailable(f"PUT {key!r} returned HTTP {resp.status_code}")

    def delete(self, key: str) -> None:
        resp = self._request("DELETE", key)
        if not resp.is_success and resp.status_code != 404:
            raise PersistenceUnavailable(f"DELETE {key!r} returned HTTP {resp.status_code}")

    def close(self) -> None:
        self._client.close()
