"""Shared fixtures: temporary databases, a controllable day, a fake API client and a session."""

import json
import tempfile
from datetime import date
from pathlib import Path

import pytest
from fakes import DayClock, FakeTickLoop, FakeYouTubeClient, make_playlist_item

from channelkiosk.config import AppConfig
from channelkiosk.governor import WatchTimeGovernor
from channelkiosk.kv_store import SqliteKeyValueStore
from channelkiosk.persistence import PersistenceGateway
from channelkiosk.session import KioskSession


@pytest.fixture
def temp_db():
    """Use a temporary database for tests."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp) / "test.db"


@pytest.fixture
def clock():
    return DayClock(date(2024, 5, 10))


@pytest.fixture
def remote_store(temp_db):
    return SqliteKeyValueStore(temp_db)


@pytest.fixture
def local_store(temp_db):
    return SqliteKeyValueStore(temp_db.parent / "local_usage.db")


@pytest.fixture
def gateway(remote_store, local_store, clock):
    return PersistenceGateway(remote=remote_store, local=local_store, today=clock)


@pytest.fixture
def youtube_client():
    return FakeYouTubeClient()


@pytest.fixture
def playlist_item():
    return make_playlist_item


@pytest.fixture
def channels_file(temp_db):
    path = temp_db.parent / "channels.json"
    path.write_text(
        json.dumps(
            {
                "channels": [
                    {"id": "UC2", "name": "Music Time", "playlistId": "UU2"},
                    {"id": "UC1", "name": "Art Club", "playlistId": "UU1"},
                ]
            }
        )
    )
    return path


@pytest.fixture
def app_config(channels_file):
    config = AppConfig.defaults()
    config.youtube_api_key = "test-key"
    config.channels_file = str(channels_file)
    return config


@pytest.fixture
def session(app_config, gateway, youtube_client, playlist_item):
    youtube_client.playlists = {
        "UU1": [playlist_item(f"art{i:08d}", f"2024-05-0{i + 1}T08:00:00Z") for i in range(3)],
        "UU2": [playlist_item(f"mus{i:08d}", f"2024-05-0{i + 1}T09:00:00Z") for i in range(3)],
    }
    youtube_client.thumbnails = {"UC1": "https://yt3.ggpht.com/art.jpg"}
    governor = WatchTimeGovernor(gateway, tick_loop_factory=FakeTickLoop)
    s = KioskSession(app_config, gateway, youtube_client=youtube_client, governor=governor)
    s.init()
    return s
