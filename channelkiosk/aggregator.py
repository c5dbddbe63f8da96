"""
Merge every channel's feed into one newest-first timeline and serve it in
fixed-size pages.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from itertools import islice
from typing import Iterable, Optional, Sequence

from .enricher import StatisticsEnricher
from .feed_fetcher import ChannelFeedFetcher
from .models import Channel, PaginationCursor, Timeline, VideoItem
from .youtube_client import MAX_RESULTS

logger = logging.getLogger(__name__)

VIDEOS_PER_PAGE = 24
SUGGESTED_VIDEOS = 10


def dedupe(items: Iterable[VideoItem]) -> list[VideoItem]:
    """Drop repeated video ids, keeping the first occurrence."""
    seen: set[str] = set()
    unique = []
    for item in items:
        if item.video_id in seen:
            continue
        seen.add(item.video_id)
        unique.append(item)
    return unique


def sort_timeline(items: Iterable[VideoItem]) -> Timeline:
    """Newest first. sorted() is stable, so equal timestamps keep arrival order."""
    return tuple(sorted(items, key=lambda item: item.published_at, reverse=True))


def next_page(
    cursor: PaginationCursor, timeline: Sequence[VideoItem]
) -> tuple[list[VideoItem], PaginationCursor]:
    """
    Slice the next page off the timeline.

    When nothing is left, returns an empty list and the same cursor, so
    asking again is a no-op.
    """
    start, end = cursor.bounds()
    items = list(timeline[start:end])
    if not items:
        return [], cursor
    return items, cursor.advance()


@dataclass(frozen=True)
class Page:
    items: list[VideoItem]
    has_more: bool


class VideoAggregator:
    """
    Builds the session timeline and tracks the active channel filter and
    page cursor. All methods are serialized by one lock.
    """

    def __init__(
        self,
        fetcher: ChannelFeedFetcher,
        enricher: StatisticsEnricher,
        page_size: int = VIDEOS_PER_PAGE,
        max_results: int = MAX_RESULTS,
        max_workers: int = 8,
    ):
        self.fetcher = fetcher
        self.enricher = enricher
        self.max_results = max_results
        self.max_workers = max_workers
        self._lock = threading.Lock()
        self._timeline: Timeline = ()
        self._visible: Timeline = ()
        self._channel_filter: Optional[str] = None
        self._cursor = PaginationCursor(page_size=page_size)

    @property
    def timeline(self) -> Timeline:
        with self._lock:
            return self._timeline

    @property
    def visible(self) -> Timeline:
        """The timeline pages are currently served from (filtered or full)."""
        with self._lock:
            return self._visible

    @property
    def channel_filter(self) -> Optional[str]:
        with self._lock:
            return self._channel_filter

    @property
    def cursor(self) -> PaginationCursor:
        with self._lock:
            return self._cursor

    def _fetch_all(self, channels: Sequence[Channel]) -> list[list[VideoItem]]:
        if not channels:
            return []
        workers = min(self.max_workers, len(channels))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="feed") as pool:
            # map() yields in channel order once every fetch has settled.
            return list(pool.map(lambda c: self.fetcher.fetch_page(c, self.max_results), channels))

    def build_timeline(self, channels: Sequence[Channel]) -> Timeline:
        """Fetch, merge, sort and enrich; replaces any previous timeline."""
        pages = self._fetch_all(channels)
        merged = [item for page in pages for item in page]
        unique = dedupe(merged)
        ordered = sort_timeline(unique)
        timeline = tuple(self.enricher.enrich(ordered))
        logger.info(
            "Built timeline: %d videos from %d channels (%d duplicates dropped)",
            len(timeline),
            len(channels),
            len(merged) - len(unique),
        )
        with self._lock:
            self._timeline = timeline
            self._visible = timeline
            self._channel_filter = None
            self._cursor = self._cursor.reset()
        return timeline

    def select_channel(self, channel_id: str) -> Timeline:
        """Show only one channel's videos, from the first page."""
        with self._lock:
            subset = sort_timeline(
                item for item in self._timeline if item.source_channel.id == channel_id
            )
            self._visible = subset
            self._channel_filter = channel_id
            self._cursor = self._cursor.reset()
            return subset

    def clear_filter(self) -> Timeline:
        """Back to all channels, from the first page."""
        with self._lock:
            self._visible = self._timeline
            self._channel_filter = None
            self._cursor = self._cursor.reset()
            return self._visible

    def get_next_page(self) -> Page:
        with self._lock:
            items, self._cursor = next_page(self._cursor, self._visible)
            start, _ = self._cursor.bounds()
            return Page(items=items, has_more=start < len(self._visible))

    def find(self, video_id: str) -> Optional[VideoItem]:
        with self._lock:
            for item in self._timeline:
                if item.video_id == video_id:
                    return item
        return None

    def suggestions(self, video_id: str, limit: int = SUGGESTED_VIDEOS) -> list[VideoItem]:
        """Newest videos from all channels other than the one playing."""
        with self._lock:
            others = (item for item in self._timeline if item.video_id != video_id)
            return list(islice(others, limit))
