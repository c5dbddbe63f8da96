"""
Watch-time governor: per-second accounting of today's viewing and the
daily limit.

States move IDLE -> PLAYING on play, PLAYING -> IDLE on pause/stop/buffering,
PLAYING -> LIMIT_REACHED when the seconds watched reach an enabled limit.
LIMIT_REACHED only ends with a new calendar day or a raised limit.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from . import activity_log
from .models import (
    DailyLimitConfig,
    GovernorState,
    UsageRecord,
    UsageSnapshot,
)
from .persistence import PersistenceGateway

logger = logging.getLogger(__name__)

TICK_INTERVAL = 1.0  # seconds
WATCHED_THRESHOLD = 60  # ticks of play before a video counts as watched


class TickLoop:
    """
    Background thread calling `callback` every `interval` seconds.

    One thread runs the callbacks, so ticks never overlap. Each start gets
    its own stop event; a cancelled thread exits after its current tick.
    """

    def __init__(self, interval: float, callback: Callable[[], None]):
        self.interval = interval
        self._callback = callback
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name="watch-tick",
                daemon=True,
            )
            self._thread.start()

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            try:
                self._callback()
            except Exception:
                logger.exception("Watch tick failed")

    def cancel(self) -> Optional[threading.Thread]:
        """Signal the thread to exit without waiting. Returns it for joining."""
        with self._lock:
            thread = self._thread
            self._thread = None
            self._stop_event.set()
        return thread

    def stop(self) -> None:
        """Stop and wait for the thread. Safe to call repeatedly, or from a tick."""
        _join(self.cancel())


def _join(thread: Optional[threading.Thread]) -> None:
    if thread is not None and thread is not threading.current_thread():
        thread.join()


class WatchTimeGovernor:
    """Owns today's UsageRecord and decides when viewing must stop."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        limit_config: Optional[DailyLimitConfig] = None,
        tick_interval: float = TICK_INTERVAL,
        watched_threshold: int = WATCHED_THRESHOLD,
        pause_player: Optional[Callable[[], None]] = None,
        tick_loop_factory: Callable[[float, Callable[[], None]], TickLoop] = TickLoop,
    ):
        self.gateway = gateway
        self.limit_config = limit_config or DailyLimitConfig()
        self._load_limit_from_store = limit_config is None
        self.watched_threshold = watched_threshold
        self._pause_player = pause_player
        self._listeners: list[Callable[[UsageSnapshot], None]] = []

        self._lock = threading.RLock()
        self._state = GovernorState.IDLE
        self._record = UsageRecord.empty(gateway.today())
        self._counted: set[str] = set()
        self._current_video_id: Optional[str] = None
        self._current_video_elapsed = 0
        self._loop = tick_loop_factory(tick_interval, self.tick)

    # -- read side --

    @property
    def state(self) -> GovernorState:
        with self._lock:
            return self._state

    @property
    def current_video_id(self) -> Optional[str]:
        with self._lock:
            return self._current_video_id

    @property
    def current_video_elapsed(self) -> int:
        with self._lock:
            return self._current_video_elapsed

    @property
    def counted_video_ids(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._counted)

    def record(self) -> UsageRecord:
        """A copy of today's record."""
        with self._lock:
            return self._copy_record()

    def snapshot(self) -> UsageSnapshot:
        with self._lock:
            return UsageSnapshot(
                seconds_watched=self._record.seconds_watched,
                limit_seconds=self.limit_config.limit_seconds,
                videos_watched_count=self._record.videos_watched_count,
                state=self._state,
                limit_enabled=self.limit_config.enabled,
            )

    def add_limit_listener(self, callback: Callable[[UsageSnapshot], None]) -> None:
        """Register a callback fired once each time the limit is crossed."""
        with self._lock:
            self._listeners.append(callback)

    # -- transitions --

    def load(self) -> None:
        """Read the limit and today's usage from the persistence gateway."""
        if self._load_limit_from_store:
            config = self.gateway.load_limit_config()
        else:
            config = self.limit_config
        record = self.gateway.load_usage()
        with self._lock:
            self.limit_config = config
            self._record = record
            self._counted = set(record.counted_video_ids)
            self._current_video_elapsed = 0
            # Crossed in an earlier session today: block play without re-signalling.
            self._state = GovernorState.LIMIT_REACHED if self._over_limit() else GovernorState.IDLE
        logger.info(
            "Loaded usage for %s: %ds watched, %d videos, limit %ds (%s)",
            record.date,
            record.seconds_watched,
            record.videos_watched_count,
            config.limit_seconds,
            "enabled" if config.enabled else "disabled",
        )

    def on_play_state_change(self, is_playing: bool, video_id: Optional[str] = None) -> bool:
        """
        Feed a player state change. Returns False if playback is refused
        because today's limit has been reached.
        """
        refused = False
        stopping = None
        with self._lock:
            self._roll_over_if_new_day()
            if is_playing:
                if self._state is GovernorState.LIMIT_REACHED:
                    refused = True
                else:
                    if video_id is not None and video_id != self._current_video_id:
                        self._current_video_id = video_id
                        self._current_video_elapsed = 0
                    if self._state is GovernorState.IDLE:
                        self._state = GovernorState.PLAYING
                        self._loop.start()
                        logger.debug("Playing %s", self._current_video_id)
            elif self._state is GovernorState.PLAYING:
                self._state = GovernorState.IDLE
                stopping = self._loop.cancel()
                logger.debug("Paused %s", self._current_video_id)
        _join(stopping)
        if refused:
            logger.info("Playback refused, daily limit reached")
            self._pause()
            return False
        return True

    def open_video(self, video_id: str) -> None:
        """A video was opened in the player; its watch counter starts over."""
        with self._lock:
            self._current_video_id = video_id
            self._current_video_elapsed = 0

    def close_video(self) -> None:
        """The player was closed: stop counting and forget the current video."""
        stopping = None
        with self._lock:
            if self._state is GovernorState.PLAYING:
                self._state = GovernorState.IDLE
            stopping = self._loop.cancel()
            self._current_video_id = None
            self._current_video_elapsed = 0
        _join(stopping)

    def stop(self) -> None:
        """Stop the tick loop (shutdown). Idempotent."""
        with self._lock:
            if self._state is GovernorState.PLAYING:
                self._state = GovernorState.IDLE
            stopping = self._loop.cancel()
        _join(stopping)

    def apply_limit_config(self, config: DailyLimitConfig) -> None:
        """Apply a new limit now; lowering it below today's usage is a crossing."""
        crossed = False
        stopping = None
        with self._lock:
            self.limit_config = config
            over = self._over_limit()
            if over and self._state is not GovernorState.LIMIT_REACHED:
                self._state = GovernorState.LIMIT_REACHED
                stopping = self._loop.cancel()
                crossed = True
            elif not over and self._state is GovernorState.LIMIT_REACHED:
                self._state = GovernorState.IDLE
                logger.info("Daily limit raised to %ds, viewing allowed again", config.limit_seconds)
        _join(stopping)
        if crossed:
            self._on_limit_reached()

    def tick(self) -> None:
        """One second of play: account, persist, enforce the limit."""
        crossed = False
        with self._lock:
            if self._state is not GovernorState.PLAYING:
                return
            self._roll_over_if_new_day()
            self._record.seconds_watched += 1
            self._current_video_elapsed += 1

            video_id = self._current_video_id
            if (
                video_id
                and self._current_video_elapsed >= self.watched_threshold
                and video_id not in self._counted
            ):
                self._counted.add(video_id)
                self._record.count_video(video_id)
                logger.info(
                    "Counted video %s (%d today)", video_id, self._record.videos_watched_count
                )

            to_save = self._copy_record()

            if self._over_limit():
                self._state = GovernorState.LIMIT_REACHED
                self._loop.cancel()
                crossed = True

        # Saved outside the lock; snapshot() never waits on the store.
        result = self.gateway.save_usage(to_save)
        if not result.ok:
            logger.warning("Could not save watch time, retrying next tick: %s", result.error)
        if crossed:
            self._on_limit_reached()

    # -- internals --

    def _copy_record(self) -> UsageRecord:
        r = self._record
        return UsageRecord(
            date=r.date,
            seconds_watched=r.seconds_watched,
            videos_watched_count=r.videos_watched_count,
            counted_video_ids=r.counted_video_ids,
        )

    def _over_limit(self) -> bool:
        return (
            self.limit_config.enabled
            and self._record.seconds_watched >= self.limit_config.limit_seconds
        )

    def _roll_over_if_new_day(self) -> None:
        today = self.gateway.today()
        if self._record.date == today:
            return
        logger.info("New day %s, resetting watch time", today)
        activity_log.add("New day, watch time reset")
        self._record = UsageRecord.empty(today)
        self._counted.clear()
        self._current_video_elapsed = 0
        if self._state is GovernorState.LIMIT_REACHED:
            self._state = GovernorState.IDLE

    def _pause(self) -> None:
        if self._pause_player is None:
            return
        try:
            self._pause_player()
        except Exception:
            logger.exception("Pausing the player failed")

    def _on_limit_reached(self) -> None:
        snapshot = self.snapshot()
        logger.info(
            "Daily limit reached: %ds of %ds", snapshot.seconds_watched, snapshot.limit_seconds
        )
        activity_log.add("Daily limit reached")
        self._pause()
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Limit listener failed")
