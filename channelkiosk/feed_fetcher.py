"""Fetch one page of recent uploads for a channel."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from .errors import UpstreamUnavailable
from .models import Channel, VideoItem
from .youtube_client import MAX_RESULTS

logger = logging.getLogger(__name__)


def parse_published_at(value: str) -> datetime:
    """Parse an RFC 3339 timestamp such as 2024-05-01T12:00:00Z."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _pick_thumbnail(thumbnails: dict) -> Optional[str]:
    for size in ("medium", "high", "default"):
        url = (thumbnails.get(size) or {}).get("url")
        if url:
            return url
    return None


def parse_playlist_item(item: dict, channel: Channel) -> Optional[VideoItem]:
    """Build a VideoItem from a playlistItems resource, or None if unusable."""
    snippet = item.get("snippet") or {}
    video_id = (snippet.get("resourceId") or {}).get("videoId")
    thumbnail = _pick_thumbnail(snippet.get("thumbnails") or {})
    published = snippet.get("publishedAt")
    # Deleted and private videos come back without thumbnails.
    if not video_id or not thumbnail or not published:
        return None
    try:
        published_at = parse_published_at(published)
    except ValueError:
        return None
    return VideoItem(
        video_id=video_id,
        title=snippet.get("title", ""),
        thumbnail_url=thumbnail,
        published_at=published_at,
        source_channel=channel,
    )


class ChannelFeedFetcher:
    """Pulls a channel's upload feed; a failing channel yields no videos."""

    def __init__(self, client):
        self.client = client

    def fetch_page(self, channel: Channel, max_results: int = MAX_RESULTS) -> list[VideoItem]:
        try:
            items = self.client.list_playlist_items(channel.feed_id, max_results)
        except UpstreamUnavailable as e:
            logger.error(
                "Error fetching videos for %s (feed %s): %s",
                channel.display_name,
                channel.feed_id,
                e,
            )
            return []

        videos = []
        for item in items:
            video = parse_playlist_item(item, channel)
            if video is None:
                logger.debug("Skipping unusable item in feed %s: %r", channel.feed_id, item.get("id"))
                continue
            videos.append(video)
        return videos
