"""Attach view counts to videos in batches of the API's maximum size."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

from .errors import UpstreamUnavailable
from .models import VideoItem
from .youtube_client import MAX_RESULTS

logger = logging.getLogger(__name__)


def batched(ids: Sequence[str], size: int) -> list[list[str]]:
    return [list(ids[i : i + size]) for i in range(0, len(ids), size)]


def _parse_view_count(statistics: dict) -> Optional[int]:
    try:
        count = int(statistics["viewCount"])
    except (KeyError, TypeError, ValueError):
        return None
    return count if count >= 0 else None


class StatisticsEnricher:
    """
    Looks up view counts. A failed batch leaves its videos without a count;
    they are neither dropped nor retried.
    """

    def __init__(self, client, batch_size: int = MAX_RESULTS, max_workers: int = 4):
        if not 0 < batch_size <= MAX_RESULTS:
            raise ValueError(f"batch_size must be between 1 and {MAX_RESULTS}")
        self.client = client
        self.batch_size = batch_size
        self.max_workers = max_workers

    def _lookup(self, batch: list[str]) -> dict[str, int]:
        try:
            stats = self.client.list_video_statistics(batch)
        except UpstreamUnavailable as e:
            logger.error("Error fetching statistics for %d videos: %s", len(batch), e)
            return {}
        counts = {}
        for video_id, statistics in stats.items():
            count = _parse_view_count(statistics)
            if count is not None:
                counts[video_id] = count
        return counts

    def enrich(self, items: Sequence[VideoItem]) -> list[VideoItem]:
        if not items:
            return []
        ids = list(dict.fromkeys(item.video_id for item in items))
        batches = batched(ids, self.batch_size)

        counts: dict[str, int] = {}
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(batches))) as pool:
            for result in pool.map(self._lookup, batches):
                counts.update(result)

        return [
            item.with_view_count(counts[item.video_id]) if item.video_id in counts else item
            for item in items
        ]
