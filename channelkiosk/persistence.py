"""
Two-tier persistence for the watch-time governor.

The remote tier is tried first. Once it fails the gateway stays degraded for
the rest of the session and reads and writes the local tier instead. The
local record is keyed by calendar day; a record from an earlier day is never
carried into today.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from . import activity_log
from .errors import PersistenceUnavailable
from .kv_store import KeyValueStore
from .models import DEFAULT_DAILY_LIMIT_SECONDS, DailyLimitConfig, UsageRecord

logger = logging.getLogger(__name__)

USAGE_KEY_PREFIX = "usage:"
LIMIT_KEY = "config:dailyTimeLimit"
ENABLED_KEY = "config:enabled"
LOCAL_USAGE_KEY = "watch_time"
USAGE_TTL = 2 * 24 * 3600  # seconds; earlier days are never read back

TIER_REMOTE = "remote"
TIER_LOCAL = "local"


@dataclass(frozen=True)
class SaveResult:
    """Outcome of a write through the gateway."""

    ok: bool
    tier: Optional[str] = None
    error: Optional[str] = None


def usage_key(day: date) -> str:
    return USAGE_KEY_PREFIX + day.isoformat()


class PersistenceGateway:
    """Load and save today's UsageRecord and the daily limit."""

    def __init__(
        self,
        remote: KeyValueStore,
        local: KeyValueStore,
        today: Callable[[], date] = date.today,
    ):
        self.remote = remote
        self.local = local
        self._today = today
        self._degraded = False
        self._lock = threading.Lock()

    def today(self) -> date:
        return self._today()

    @property
    def degraded(self) -> bool:
        """True once the remote tier has failed this session."""
        return self._degraded

    @property
    def active_tier(self) -> str:
        return TIER_LOCAL if self._degraded else TIER_REMOTE

    def _degrade(self, error: PersistenceUnavailable) -> None:
        with self._lock:
            if self._degraded:
                return
            self._degraded = True
        logger.warning("Remote store unavailable, using local fallback: %s", error)
        activity_log.add("Remote store unavailable, saving locally")

    def load_usage(self) -> UsageRecord:
        """Return today's record; a zero record if none exists yet."""
        today = self.today()
        if not self._degraded:
            try:
                data = self.remote.get(usage_key(today))
            except PersistenceUnavailable as e:
                self._degrade(e)
            else:
                return self._parse_usage(data, today)
        return self._load_local_usage(today)

    def _load_local_usage(self, today: date) -> UsageRecord:
        try:
            data = self.local.get(LOCAL_USAGE_KEY)
        except PersistenceUnavailable as e:
            logger.warning("Local usage store unreadable, starting from zero: %s", e)
            return UsageRecord.empty(today)
        return self._parse_usage(data, today)

    def _parse_usage(self, data, today: date) -> UsageRecord:
        if not data:
            return UsageRecord.empty(today)
        try:
            record = UsageRecord.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring malformed usage record %r: %s", data, e)
            return UsageRecord.empty(today)
        if record.date != today:
            logger.debug("Discarding usage record from %s", record.date)
            return UsageRecord.empty(today)
        return record

    def save_usage(self, record: UsageRecord) -> SaveResult:
        payload = record.to_dict()
        if not self._degraded:
            try:
                self.remote.set(usage_key(record.date), payload, ttl=USAGE_TTL)
                return SaveResult(ok=True, tier=TIER_REMOTE)
            except PersistenceUnavailable as e:
                self._degrade(e)
        try:
            self.local.set(LOCAL_USAGE_KEY, payload)
        except PersistenceUnavailable as e:
            return SaveResult(ok=False, error=str(e))
        return SaveResult(ok=True, tier=TIER_LOCAL)

    def load_limit_config(self) -> DailyLimitConfig:
        """Read the daily limit; defaults if the store is down or holds junk."""
        try:
            limit = self.remote.get(LIMIT_KEY)
            enabled = self.remote.get(ENABLED_KEY)
        except PersistenceUnavailable as e:
            logger.warning("Could not load daily limit, using defaults: %s", e)
            return DailyLimitConfig()
        try:
            return DailyLimitConfig(
                limit_seconds=int(limit) if limit is not None else DEFAULT_DAILY_LIMIT_SECONDS,
                enabled=bool(enabled) if enabled is not None else True,
            )
        except (TypeError, ValueError) as e:
            logger.warning("Invalid daily limit %r, using defaults: %s", limit, e)
            return DailyLimitConfig()

    def save_limit_config(self, config: DailyLimitConfig) -> SaveResult:
        try:
            self.remote.set(LIMIT_KEY, config.limit_seconds)
            self.remote.set(ENABLED_KEY, config.enabled)
        except PersistenceUnavailable as e:
            logger.warning("Could not save daily limit: %s", e)
            return SaveResult(ok=False, error=str(e))
        return SaveResult(ok=True, tier=TIER_REMOTE)
