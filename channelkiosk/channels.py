"""Load the guardian's channel list and backfill channel avatars."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Sequence

from .errors import ConfigurationMissing, UpstreamUnavailable
from .models import Channel
from .youtube_client import MAX_RESULTS

logger = logging.getLogger(__name__)


def load_channels(path: Path) -> list[Channel]:
    """
    Read channels.json: {"channels": [{"id", "name", "playlistId", "thumbnail"}]}.

    Order is preserved; it is the fetch order used for de-duplication.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationMissing(f"Channel list not found: {path}") from e
    except (OSError, ValueError) as e:
        raise ConfigurationMissing(f"Channel list unreadable: {path}: {e}") from e

    entries = data.get("channels") if isinstance(data, dict) else None
    if not entries:
        raise ConfigurationMissing(f"No channels configured in {path}")

    channels = []
    for entry in entries:
        try:
            channels.append(
                Channel(
                    id=entry.get("id", ""),
                    display_name=entry.get("name") or entry.get("id", ""),
                    feed_id=entry.get("playlistId", ""),
                    thumbnail_url=entry.get("thumbnail", ""),
                )
            )
        except (AttributeError, ValueError) as e:
            raise ConfigurationMissing(f"Invalid channel entry {entry!r}: {e}") from e
    return channels


def backfill_thumbnails(channels: Sequence[Channel], client) -> list[Channel]:
    """Replace configured thumbnails with the channels' current avatars."""
    thumbnails: dict[str, str] = {}
    ids = [c.id for c in channels]
    for start in range(0, len(ids), MAX_RESULTS):
        try:
            thumbnails.update(client.list_channel_thumbnails(ids[start : start + MAX_RESULTS]))
        except UpstreamUnavailable as e:
            logger.error("Error fetching channel thumbnails: %s", e)
            break
    return [c.with_thumbnail(thumbnails[c.id]) if c.id in thumbnails else c for c in channels]


def sorted_for_sidebar(channels: Sequence[Channel]) -> list[Channel]:
    """Channels in menu order (alphabetical by name)."""
    return sorted(channels, key=lambda c: c.display_name.casefold())
