"""Records shared by the aggregator and the watch-time governor."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Iterable, Optional

DEFAULT_DAILY_LIMIT_SECONDS = 3 * 60 * 60


@dataclass(frozen=True)
class Channel:
    """A curated channel, loaded once at startup."""

    id: str
    display_name: str
    feed_id: str
    thumbnail_url: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Channel id must not be empty")
        if not self.feed_id:
            raise ValueError(f"Channel {self.id} has no feed id")

    def with_thumbnail(self, url: str) -> Channel:
        return replace(self, thumbnail_url=url)


@dataclass(frozen=True)
class VideoItem:
    """One video in the aggregated timeline."""

    video_id: str
    title: str
    thumbnail_url: str
    published_at: datetime
    source_channel: Channel
    view_count: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.video_id:
            raise ValueError("VideoItem video_id must not be empty")
        if self.published_at.tzinfo is None:
            raise ValueError(f"published_at of {self.video_id} must be timezone-aware")
        if self.view_count is not None and self.view_count < 0:
            raise ValueError(f"view_count of {self.video_id} must not be negative")

    def with_view_count(self, view_count: Optional[int]) -> VideoItem:
        return replace(self, view_count=view_count)


# Newest first; equal publish times keep fetch arrival order.
Timeline = tuple[VideoItem, ...]


@dataclass(frozen=True)
class PaginationCursor:
    """Position of the next page over a timeline."""

    page_size: int
    pages_served: int = 0

    def __post_init__(self) -> None:
        if self.page_size <= 0:
            raise ValueError("page_size must be positive")
        if self.pages_served < 0:
            raise ValueError("pages_served must not be negative")

    def bounds(self) -> tuple[int, int]:
        start = self.pages_served * self.page_size
        return start, start + self.page_size

    def advance(self) -> PaginationCursor:
        return replace(self, pages_served=self.pages_served + 1)

    def reset(self) -> PaginationCursor:
        return replace(self, pages_served=0)


@dataclass
class UsageRecord:
    """
    Today's watch-time accounting.

    videos_watched_count always equals len(counted_video_ids); the governor
    only changes both together through count_video().
    """

    date: date
    seconds_watched: int = 0
    videos_watched_count: int = 0
    counted_video_ids: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        self.counted_video_ids = frozenset(self.counted_video_ids)
        if self.seconds_watched < 0:
            raise ValueError("seconds_watched must not be negative")
        if self.videos_watched_count < 0:
            raise ValueError("videos_watched_count must not be negative")
        if self.videos_watched_count != len(self.counted_video_ids):
            raise ValueError(
                f"videos_watched_count ({self.videos_watched_count}) does not match "
                f"{len(self.counted_video_ids)} counted videos"
            )

    @classmethod
    def empty(cls, day: date) -> UsageRecord:
        return cls(date=day)

    def count_video(self, video_id: str) -> bool:
        """Add a video to today's count. Returns False if it was already counted."""
        if video_id in self.counted_video_ids:
            return False
        self.counted_video_ids = self.counted_video_ids | {video_id}
        self.videos_watched_count = len(self.counted_video_ids)
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "seconds": self.seconds_watched,
            "videosCount": self.videos_watched_count,
            "countedVideos": sorted(self.counted_video_ids),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> UsageRecord:
        counted: Iterable[str] = d.get("countedVideos") or []
        counted_ids = frozenset(str(v) for v in counted)
        return cls(
            date=date.fromisoformat(d["date"]),
            seconds_watched=int(d.get("seconds") or 0),
            # Older records may carry a count that disagrees with the id list;
            # the id list wins.
            videos_watched_count=len(counted_ids),
            counted_video_ids=counted_ids,
        )


@dataclass(frozen=True)
class DailyLimitConfig:
    """Daily viewing budget set by the guardian."""

    limit_seconds: int = DEFAULT_DAILY_LIMIT_SECONDS
    enabled: bool = True

    def __post_init__(self) -> None:
        if self.limit_seconds <= 0:
            raise ValueError("limit_seconds must be positive")


class GovernorState(enum.Enum):
    IDLE = "idle"
    PLAYING = "playing"
    LIMIT_REACHED = "limit_reached"


@dataclass(frozen=True)
class UsageSnapshot:
    """Read-only view of the governor for the UI."""

    seconds_watched: int
    limit_seconds: int
    videos_watched_count: int
    state: GovernorState
    limit_enabled: bool = True

    @property
    def seconds_left(self) -> int:
        return max(0, self.limit_seconds - self.seconds_watched)

    @property
    def limit_reached(self) -> bool:
        return self.state is GovernorState.LIMIT_REACHED
