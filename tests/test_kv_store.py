"""Tests for the SQLite and HTTP key-value stores."""

import json

import httpx
import pytest

from channelkiosk.errors import PersistenceUnavailable
from channelkiosk.kv_store import HttpKeyValueStore, SqliteKeyValueStore


class TestSqliteKeyValueStore:
    def test_get_missing_key(self, temp_db):
        assert SqliteKeyValueStore(temp_db).get("usage:2024-05-10") is None

    def test_set_and_get_json_values(self, temp_db):
        store = SqliteKeyValueStore(temp_db)
        store.set("usage:2024-05-10", {"seconds": 12, "countedVideos": ["a"]})
        store.set("config:enabled", False)
        assert store.get("usage:2024-05-10") == {"seconds": 12, "countedVideos": ["a"]}
        assert store.get("config:enabled") is False

    def test_ttl_expiry(self, temp_db):
        now = [1000.0]
        store = SqliteKeyValueStore(temp_db, clock=lambda: now[0])
        store.set("k", 1, ttl=60)
        now[0] = 1059.0
        assert store.get("k") == 1
        now[0] = 1060.0
        assert store.get("k") is None

    def test_delete(self, temp_db):
        store = SqliteKeyValueStore(temp_db)
        store.set("k", "v")
        store.delete("k")
        assert store.get("k") is None

    def test_unwritable_path_raises(self, temp_db):
        temp_db.write_text("not a directory")
        store = SqliteKeyValueStore(temp_db / "kv.db")
        with pytest.raises(PersistenceUnavailable):
            store.get("k")


class TestHttpKeyValueStore:
    def _store(self, handler):
        return HttpKeyValueStore("http://kiosk.local", transport=httpx.MockTransport(handler))

    def test_get_value(self):
        def handler(request):
            assert request.url.path == "/api/kv/usage:2024-05-10"
            return httpx.Response(200, json={"key": "usage:2024-05-10", "value": {"seconds": 3}})

        assert self._store(handler).get("usage:2024-05-10") == {"seconds": 3}

    def test_get_not_found_is_absent(self):
        store = self._store(lambda request: httpx.Response(404, json={"error": "not found"}))
        assert store.get("config:dailyTimeLimit") is None

    def test_set_sends_value_and_ttl(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True})

        self._store(handler).set("usage:2024-05-10", {"seconds": 4}, ttl=3600)
        assert seen == {"method": "PUT", "body": {"value": {"seconds": 4}, "ttl": 3600}}

    def test_server_error_raises(self):
        store = self._store(lambda request: httpx.Response(500))
        with pytest.raises(PersistenceUnavailable):
            store.get("k")
        with pytest.raises(PersistenceUnavailable):
            store.set("k", 1)

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PersistenceUnavailable):
            self._store(handler).get("k")

    def test_non_object_body_raises(self):
        store = self._store(lambda request: httpx.Response(200, json=["oops"]))
        with pytest.raises(PersistenceUnavailable):
            store.get("usage:2024-05-10")
