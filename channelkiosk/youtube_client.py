"""YouTube Data API v3 calls used by the aggregator."""

from __future__ import annotations

import logging
import threading
from typing import Any, Sequence

import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

MAX_RESULTS = 50  # API maximum for playlistItems.list and videos.list ids


class YouTubeClient:
    """
    Thin wrapper over the discovery client.

    The underlying HTTP transport is not thread-safe, so each thread builds
    its own service object.
    """

    def __init__(self, api_key: str):
        self._api_key = api_key
        self._local = threading.local()

    @property
    def service(self):
        service = getattr(self._local, "service", None)
        if service is None:
            service = build("youtube", "v3", developerKey=self._api_key, cache_discovery=False)
            self._local.service = service
        return service

    def _execute(self, request, what: str) -> dict[str, Any]:
        try:
            return request.execute()
        except HttpError as e:
            status = getattr(e.resp, "status", "?")
            raise UpstreamUnavailable(f"{what} failed with HTTP {status}: {e}") from e
        except (httplib2.HttpLib2Error, OSError) as e:
            raise UpstreamUnavailable(f"{what} failed: {e}") from e

    def list_playlist_items(self, playlist_id: str, max_results: int = MAX_RESULTS) -> list[dict]:
        """First page of a playlist's items (snippet part)."""
        request = self.service.playlistItems().list(
            part="snippet",
            playlistId=playlist_id,
            maxResults=min(max_results, MAX_RESULTS),
        )
        response = self._execute(request, f"playlistItems.list({playlist_id})")
        return response.get("items", [])

    def list_video_statistics(self, video_ids: Sequence[str]) -> dict[str, dict]:
        """Statistics keyed by video id. Ids the API does not return are absent."""
        if len(video_ids) > MAX_RESULTS:
            raise ValueError(f"At most {MAX_RESULTS} ids per request, got {len(video_ids)}")
        if not video_ids:
            return {}
        request = self.service.videos().list(part="statistics", id=",".join(video_ids))
        response = self._execute(request, f"videos.list({len(video_ids)} ids)")
        return {item["id"]: item.get("statistics", {}) for item in response.get("items", [])}

    def list_channel_thumbnails(self, channel_ids: Sequence[str]) -> dict[str, str]:
        """Channel avatar URLs keyed by channel id."""
        if not channel_ids:
            return {}
        request = self.service.channels().list(
            part="snippet",
            id=",".join(channel_ids),
            maxResults=MAX_RESULTS,
        )
        response = self._execute(request, "channels.list")
        result: dict[str, str] = {}
        for item in response.get("items", []):
            thumbs = item.get("snippet", {}).get("thumbnails", {})
            for size in ("default", "medium", "high"):
                url = thumbs.get(size, {}).get("url")
                if url:
                    result[item["id"]] = url
                    break
        return result
