"""Tests for the two-tier persistence gateway."""

from datetime import date

import httpx
from fakes import DownStore

from channelkiosk.kv_store import HttpKeyValueStore
from channelkiosk.models import DailyLimitConfig, UsageRecord
from channelkiosk.persistence import (
    LOCAL_USAGE_KEY,
    TIER_LOCAL,
    TIER_REMOTE,
    PersistenceGateway,
)


def test_load_usage_without_record_is_zero(gateway):
    record = gateway.load_usage()
    assert record == UsageRecord.empty(date(2024, 5, 10))


def test_save_and_load_usage_remote(gateway, remote_store):
    record = UsageRecord(date(2024, 5, 10), 125, 2, frozenset({"a", "b"}))
    result = gateway.save_usage(record)
    assert result.ok and result.tier == TIER_REMOTE
    assert remote_store.get("usage:2024-05-10")["seconds"] == 125
    assert gateway.load_usage() == record


def test_remote_record_from_other_day_is_not_read(gateway, remote_store, clock):
    gateway.save_usage(UsageRecord(date(2024, 5, 10), seconds_watched=300))
    clock.day = date(2024, 5, 11)
    assert gateway.load_usage() == UsageRecord.empty(date(2024, 5, 11))


def test_falls_back_to_local_when_remote_down(local_store, clock):
    remote = DownStore()
    gateway = PersistenceGateway(remote=remote, local=local_store, today=clock)
    record = UsageRecord(date(2024, 5, 10), seconds_watched=42)

    result = gateway.save_usage(record)

    assert result.ok and result.tier == TIER_LOCAL
    assert gateway.degraded
    assert local_store.get(LOCAL_USAGE_KEY)["seconds"] == 42


def test_degraded_gateway_stops_trying_remote(local_store, clock):
    remote = DownStore()
    gateway = PersistenceGateway(remote=remote, local=local_store, today=clock)
    gateway.load_usage()
    calls = remote.calls
    for seconds in range(1, 4):
        gateway.save_usage(UsageRecord(date(2024, 5, 10), seconds_watched=seconds))
    assert remote.calls == calls
    assert gateway.load_usage().seconds_watched == 3


def test_stale_local_record_is_discarded(local_store, clock):
    local_store.set(
        LOCAL_USAGE_KEY,
        {"date": "2024-05-09", "seconds": 7200, "videosCount": 1, "countedVideos": ["old"]},
    )
    gateway = PersistenceGateway(remote=DownStore(), local=local_store, today=clock)

    record = gateway.load_usage()

    assert record.date == date(2024, 5, 10)
    assert record.seconds_watched == 0
    assert record.counted_video_ids == frozenset()


def test_todays_local_record_is_kept(local_store, clock):
    local_store.set(
        LOCAL_USAGE_KEY,
        {"date": "2024-05-10", "seconds": 900, "videosCount": 1, "countedVideos": ["v1"]},
    )
    gateway = PersistenceGateway(remote=DownStore(), local=local_store, today=clock)
    record = gateway.load_usage()
    assert record.seconds_watched == 900
    assert record.counted_video_ids == frozenset({"v1"})


def test_save_reports_failure_when_both_tiers_down(clock):
    gateway = PersistenceGateway(remote=DownStore(), local=DownStore(), today=clock)
    result = gateway.save_usage(UsageRecord(date(2024, 5, 10), seconds_watched=1))
    assert not result.ok
    assert "connection refused" in result.error


def test_malformed_record_loads_as_zero(gateway, remote_store):
    remote_store.set("usage:2024-05-10", {"date": "2024-05-10", "seconds": -5})
    assert gateway.load_usage().seconds_watched == 0


def test_limit_config_defaults(gateway):
    assert gateway.load_limit_config() == DailyLimitConfig(limit_seconds=10800, enabled=True)


def test_limit_config_round_trip(gateway):
    assert gateway.save_limit_config(DailyLimitConfig(limit_seconds=1800, enabled=False)).ok
    assert gateway.load_limit_config() == DailyLimitConfig(limit_seconds=1800, enabled=False)


def test_limit_config_defaults_when_remote_down(local_store, clock):
    gateway = PersistenceGateway(remote=DownStore(), local=local_store, today=clock)
    assert gateway.load_limit_config() == DailyLimitConfig()
    assert not gateway.save_limit_config(DailyLimitConfig(limit_seconds=60)).ok


def test_invalid_limit_uses_defaults(gateway, remote_store):
    remote_store.set("config:dailyTimeLimit", 0)
    assert gateway.load_limit_config().limit_seconds == 10800


def test_unexpected_remote_body_degrades_to_local(local_store, clock):
    remote = HttpKeyValueStore(
        "http://kiosk.local",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=["oops"])),
    )
    local_store.set(LOCAL_USAGE_KEY, UsageRecord(date(2024, 5, 10), seconds_watched=17).to_dict())
    gateway = PersistenceGateway(remote=remote, local=local_store, today=clock)

    assert gateway.load_usage().seconds_watched == 17
    assert gateway.degraded
