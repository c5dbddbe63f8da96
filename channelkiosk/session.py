"""The kiosk session: what the player UI talks to."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from . import activity_log
from .aggregator import Page, VideoAggregator
from .channels import backfill_thumbnails, load_channels, sorted_for_sidebar
from .config import AppConfig
from .enricher import StatisticsEnricher
from .errors import ConfigurationMissing
from .feed_fetcher import ChannelFeedFetcher
from .governor import WatchTimeGovernor
from .models import Channel, DailyLimitConfig, Timeline, UsageSnapshot, VideoItem
from .persistence import PersistenceGateway, SaveResult
from .youtube_client import YouTubeClient

logger = logging.getLogger(__name__)


class KioskSession:
    """
    Wires the aggregator and the governor together. They share no state;
    the session only forwards UI calls to one or the other.

    The browser player cannot be paused from here. Unless a governor with
    pause_player is passed in, the player learns about the limit by polling
    the usage snapshot (limitReached) and by open_video and
    on_play_state_change returning False.
    """

    def __init__(
        self,
        config: AppConfig,
        gateway: PersistenceGateway,
        youtube_client=None,
        governor: Optional[WatchTimeGovernor] = None,
    ):
        self.config = config
        self.gateway = gateway
        self._client = youtube_client
        self.governor = governor or WatchTimeGovernor(gateway)
        self.aggregator: Optional[VideoAggregator] = None
        self._channels: list[Channel] = []

    def init(self) -> None:
        """
        Load channels, usage and videos. Raises ConfigurationMissing when
        there is no API key or no channel list.
        """
        client = self._client
        if client is None:
            api_key = self.config.resolved_api_key()
            if not api_key:
                raise ConfigurationMissing("No YouTube API key configured")
            client = YouTubeClient(api_key)
            self._client = client

        channels = load_channels(Path(self.config.channels_file))
        self._channels = backfill_thumbnails(channels, client)
        self.governor.load()

        self.aggregator = VideoAggregator(ChannelFeedFetcher(client), StatisticsEnricher(client))
        self.aggregator.build_timeline(self._channels)
        activity_log.add(f"Loaded {len(self.aggregator.timeline)} videos")

    def _require_aggregator(self) -> VideoAggregator:
        if self.aggregator is None:
            raise RuntimeError("Session not initialised; call init() first")
        return self.aggregator

    # -- browsing --

    def channels(self) -> list[Channel]:
        """Configured channels in menu order."""
        return sorted_for_sidebar(self._channels)

    def get_channel(self, channel_id: str) -> Channel:
        for channel in self._channels:
            if channel.id == channel_id:
                return channel
        raise KeyError(channel_id)

    def get_next_page(self) -> Page:
        return self._require_aggregator().get_next_page()

    def filter_by_channel(self, channel_id: Optional[str]) -> Timeline:
        """Show one channel, or all channels when channel_id is None."""
        aggregator = self._require_aggregator()
        if channel_id is None:
            return aggregator.clear_filter()
        self.get_channel(channel_id)
        return aggregator.select_channel(channel_id)

    def find_video(self, video_id: str) -> Optional[VideoItem]:
        return self._require_aggregator().find(video_id)

    def suggestions(self, video_id: str) -> list[VideoItem]:
        return self._require_aggregator().suggestions(video_id)

    # -- watching --

    def open_video(self, video_id: str) -> bool:
        """Open a video in the player. False if today's limit is used up."""
        self.governor.open_video(video_id)
        return not self.governor.snapshot().limit_reached

    def close_video(self) -> None:
        self.governor.close_video()

    def on_play_state_change(self, is_playing: bool, video_id: Optional[str] = None) -> bool:
        return self.governor.on_play_state_change(is_playing, video_id)

    def get_usage_snapshot(self) -> UsageSnapshot:
        return self.governor.snapshot()

    def add_limit_listener(self, callback: Callable[[UsageSnapshot], None]) -> None:
        self.governor.add_limit_listener(callback)

    def update_limit_config(self, config: DailyLimitConfig) -> SaveResult:
        """Persist a new daily limit and apply it to the running governor."""
        result = self.gateway.save_limit_config(config)
        self.governor.apply_limit_config(config)
        activity_log.add(
            f"Daily limit set to {config.limit_seconds // 60} min"
            + ("" if config.enabled else " (disabled)")
        )
        return result

    def shutdown(self) -> None:
        self.governor.stop()
