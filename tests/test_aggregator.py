"""Tests for timeline aggregation and pagination."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from channelkiosk.aggregator import VideoAggregator, dedupe, next_page, sort_timeline
from channelkiosk.enricher import StatisticsEnricher
from channelkiosk.feed_fetcher import ChannelFeedFetcher
from channelkiosk.models import Channel, PaginationCursor, VideoItem

SCIENCE = Channel(id="UC1", display_name="Science Kids", feed_id="UU1")
MUSIC = Channel(id="UC2", display_name="Music Time", feed_id="UU2")
ART = Channel(id="UC3", display_name="Art Club", feed_id="UU3")

BASE = datetime(2024, 5, 1, tzinfo=timezone.utc)


def stamp(hours):
    return (BASE + timedelta(hours=hours)).strftime("%Y-%m-%dT%H:%M:%SZ")


@pytest.fixture
def aggregator(youtube_client):
    return VideoAggregator(
        ChannelFeedFetcher(youtube_client),
        StatisticsEnricher(youtube_client),
        page_size=4,
    )


@pytest.fixture
def loaded(aggregator, youtube_client, playlist_item):
    youtube_client.playlists = {
        "UU1": [playlist_item(f"sci{i:08d}", stamp(i * 3)) for i in range(5)],
        "UU2": [playlist_item(f"mus{i:08d}", stamp(i * 3 + 1)) for i in range(4)],
        "UU3": [playlist_item(f"art{i:08d}", stamp(i * 3 + 2)) for i in range(2)],
    }
    youtube_client.statistics = {"sci00000004": {"viewCount": "1500"}}
    aggregator.build_timeline([SCIENCE, MUSIC, ART])
    return aggregator


def test_timeline_is_newest_first(loaded):
    dates = [item.published_at for item in loaded.timeline]
    assert dates == sorted(dates, reverse=True)
    assert len(loaded.timeline) == 11


def test_duplicates_across_channels_are_dropped(aggregator, youtube_client, playlist_item):
    shared = "shared00001"
    youtube_client.playlists = {
        "UU1": [playlist_item(shared, stamp(5), title="from science")],
        "UU2": [playlist_item(shared, stamp(5), title="from music"), playlist_item("music000001", stamp(1))],
    }
    timeline = aggregator.build_timeline([SCIENCE, MUSIC])
    ids = [item.video_id for item in timeline]
    assert len(ids) == len(set(ids)) == 2
    first = next(item for item in timeline if item.video_id == shared)
    assert first.title == "from science"
    assert first.source_channel == SCIENCE


def test_equal_timestamps_keep_fetch_order(aggregator, youtube_client, playlist_item):
    youtube_client.playlists = {
        "UU1": [playlist_item("first000001", stamp(2))],
        "UU2": [playlist_item("second00001", stamp(2))],
        "UU3": [playlist_item("third000001", stamp(2))],
    }
    timeline = aggregator.build_timeline([SCIENCE, MUSIC, ART])
    assert [item.video_id for item in timeline] == ["first000001", "second00001", "third000001"]


def test_failing_channel_does_not_block_others(aggregator, youtube_client, playlist_item):
    youtube_client.playlists = {"UU2": [playlist_item("music000001", stamp(1))]}
    youtube_client.failing_playlists.add("UU1")
    timeline = aggregator.build_timeline([SCIENCE, MUSIC])
    assert [item.video_id for item in timeline] == ["music000001"]


def test_timeline_is_enriched(loaded):
    item = loaded.find("sci00000004")
    assert item.view_count == 1500
    assert loaded.find("mus00000000").view_count is None


def test_pages_cover_timeline_exactly_once(loaded):
    pages = []
    while True:
        page = loaded.get_next_page()
        if not page.items:
            break
        pages.append(page)
    assert len(pages) == math.ceil(11 / 4)
    assert [p.has_more for p in pages] == [True, True, False]
    served = [item for page in pages for item in page.items]
    assert served == list(loaded.timeline)

    again = loaded.get_next_page()
    assert again.items == [] and again.has_more is False


def test_select_channel_filters_and_resets_cursor(loaded):
    loaded.get_next_page()
    subset = loaded.select_channel("UC2")
    assert loaded.cursor.pages_served == 0
    assert [item.source_channel.id for item in subset] == ["UC2"] * 4
    dates = [item.published_at for item in subset]
    assert dates == sorted(dates, reverse=True)

    page = loaded.get_next_page()
    assert page.items == list(subset)
    assert page.has_more is False


def test_clear_filter_returns_to_full_timeline(loaded):
    loaded.select_channel("UC3")
    loaded.get_next_page()
    full = loaded.clear_filter()
    assert full == loaded.timeline
    assert loaded.channel_filter is None
    assert loaded.get_next_page().items == list(full[:4])


def test_rebuild_replaces_timeline(loaded, youtube_client, playlist_item):
    loaded.select_channel("UC1")
    youtube_client.playlists = {"UU2": [playlist_item("newvideo001", stamp(100))]}
    timeline = loaded.build_timeline([MUSIC])
    assert [item.video_id for item in timeline] == ["newvideo001"]
    assert loaded.channel_filter is None
    assert loaded.visible == timeline


def test_suggestions_exclude_current_video(loaded):
    current = loaded.timeline[0].video_id
    suggestions = loaded.suggestions(current, limit=3)
    assert [s.video_id for s in suggestions] == [v.video_id for v in loaded.timeline[1:4]]


def test_empty_channel_list(aggregator):
    assert aggregator.build_timeline([]) == ()
    assert aggregator.get_next_page().items == []


def _video(video_id, hours):
    return VideoItem(
        video_id=video_id,
        title=video_id,
        thumbnail_url="https://i.ytimg.com/x.jpg",
        published_at=BASE + timedelta(hours=hours),
        source_channel=SCIENCE,
    )


def test_next_page_function():
    timeline = tuple(_video(f"v{i}", -i) for i in range(5))
    cursor = PaginationCursor(page_size=2)

    items, cursor = next_page(cursor, timeline)
    assert [v.video_id for v in items] == ["v0", "v1"]
    items, cursor = next_page(cursor, timeline)
    items, cursor = next_page(cursor, timeline)
    assert [v.video_id for v in items] == ["v4"]
    assert cursor.pages_served == 3

    items, same = next_page(cursor, timeline)
    assert items == [] and same == cursor


def test_dedupe_and_sort_helpers():
    a, b, c = _video("a", 1), _video("b", 3), _video("c", 2)
    assert dedupe([a, b, a, c, b]) == [a, b, c]
    assert sort_timeline([a, b, c]) == (b, c, a)
