"""Flask dashboard, player API and key-value service."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from flask import Flask, jsonify, redirect, render_template_string, request, url_for

from .. import activity_log
from ..config import DEFAULT_WEB_PORT, AppConfig, get_db_path, load_config, save_config
from ..errors import PersistenceUnavailable
from ..formatting import format_duration, format_view_count, time_ago, time_left_level
from ..kv_store import KeyValueStore, SqliteKeyValueStore
from ..models import DailyLimitConfig, UsageSnapshot, VideoItem
from ..session import KioskSession

logger = logging.getLogger(__name__)

DASHBOARD_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>Channel Kiosk - Dashboard</title>
    <style>
        body { font-family: system-ui, sans-serif; max-width: 600px; margin: 2rem auto; padding: 0 1rem; }
        h1 { font-size: 1.5rem; }
        .card { background: #f5f5f5; padding: 1rem; border-radius: 8px; margin: 1rem 0; }
        .card h2 { margin-top: 0; font-size: 1rem; }
        .btn { display: inline-block; padding: 0.5rem 1rem; background: #333; color: white;
            text-decoration: none; border-radius: 4px; margin-top: 0.5rem; }
        .btn:hover { background: #555; }
        .status { color: #0a0; }
        .error { color: #c00; }
        .warning { color: #c80; }
        .danger { color: #c00; font-weight: 600; }
        pre { white-space: pre-wrap; font-size: 0.85rem; }
    </style>
</head>
<body>
    <h1>Channel Kiosk</h1>
    <div class="card">
        <h2>Status</h2>
        {% if startup_error %}
        <p class="error">Cannot load: {{ startup_error }}</p>
        {% elif usage and usage.limit_reached %}
        <p class="danger">Time's up for today.</p>
        {% else %}
        <p class="status">Running</p>
        {% endif %}
    </div>
    {% if usage %}
    <div class="card">
        <h2>Today</h2>
        <p><strong>Time watched:</strong> {{ time_watched }}</p>
        <p><strong>Time left:</strong>
            <span class="{{ time_left_class }}">{{ time_left }}</span>
            {% if not usage.limit_enabled %}(limit disabled){% endif %}</p>
        <p><strong>Videos watched:</strong> {{ usage.videos_watched_count }}</p>
    </div>
    {% endif %}
    <div class="card">
        <h2>Current Settings</h2>
        {% if usage %}
        <p><strong>Daily limit:</strong> {{ usage.limit_seconds // 60 }} minutes</p>
        {% endif %}
        <p><strong>Channels file:</strong> {{ config.channels_file }}</p>
        <p><strong>Remote store:</strong> {{ config.kv_url or 'Local database' }}</p>
        <p><strong>Web port:</strong> {{ config.web_port }}</p>
        <p><strong>Debug mode:</strong> {{ 'On' if config.debug_mode else 'Off' }}</p>
        <a href="{{ url_for('settings') }}" class="btn">Edit Settings</a>
    </div>
    {% if config.debug_mode %}
    <div class="card">
        <h2>Activity</h2>
        {% if activity %}
        <pre>{{ activity | join('\n') }}</pre>
        {% else %}
        <p>Nothing yet.</p>
        {% endif %}
    </div>
    {% endif %}
</body>
</html>
"""

SETTINGS_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>Channel Kiosk - Settings</title>
    <style>
        body { font-family: system-ui, sans-serif; max-width: 500px; margin: 2rem auto; padding: 0 1rem; }
        h1 { font-size: 1.5rem; }
        form { display: flex; flex-direction: column; gap: 1rem; }
        label { font-weight: 500; }
        input { padding: 0.5rem; font-size: 1rem; }
        .btn { padding: 0.5rem 1rem; background: #333; color: white; border: none;
            border-radius: 4px; cursor: pointer; font-size: 1rem; }
        .btn:hover { background: #555; }
        .back { display: inline-block; margin-top: 1rem; color: #666; }
        .hint { color: #666; font-size: 0.85rem; }
    </style>
</head>
<body>
    <h1>Settings</h1>
    <form method="post">
        {% if limit %}
        <label for="daily_limit_minutes">Daily limit (minutes)</label>
        <input type="number" id="daily_limit_minutes" name="daily_limit_minutes"
            value="{{ limit.limit_seconds // 60 }}" min="1" required>
        <label>
            <input type="checkbox" name="limit_enabled" value="1" {{ 'checked' if limit.enabled else '' }}>
            Enforce daily limit
        </label>
        {% endif %}
        <label for="youtube_api_key">YouTube API key</label>
        <input type="password" id="youtube_api_key" name="youtube_api_key"
            value="{{ config.youtube_api_key }}" placeholder="Leave empty to use YOUTUBE_API_KEY">
        <label for="channels_file">Channels file</label>
        <input type="text" id="channels_file" name="channels_file" value="{{ config.channels_file }}">
        <label for="kv_url">Remote store URL (optional)</label>
        <input type="url" id="kv_url" name="kv_url" value="{{ config.kv_url }}"
            placeholder="Leave empty to use the local database">
        <label for="web_port">Web interface port</label>
        <input type="number" id="web_port" name="web_port" value="{{ config.web_port }}" min="1024" max="65535">
        <label>
            <input type="checkbox" name="debug_mode" value="1" {{ 'checked' if config.debug_mode else '' }}>
            Debug mode (show activity on the dashboard)
        </label>
        <p class="hint">API key, channels, store and port changes apply after a restart.</p>
        <button type="submit" class="btn">Save</button>
    </form>
    <a href="{{ url_for('dashboard') }}" class="back">← Back to Dashboard</a>
</body>
</html>
"""


def video_to_json(item: VideoItem) -> dict:
    views = format_view_count(item.view_count)
    return {
        "videoId": item.video_id,
        "title": item.title,
        "thumbnailUrl": item.thumbnail_url,
        "publishedAt": item.published_at.isoformat(),
        "publishedAgo": time_ago(item.published_at),
        "channelId": item.source_channel.id,
        "channelName": item.source_channel.display_name,
        "viewCount": item.view_count,
        "viewCountText": f"{views} views" if views else "",
    }


def usage_to_json(usage: UsageSnapshot) -> dict:
    return {
        "secondsWatched": usage.seconds_watched,
        "limitSeconds": usage.limit_seconds,
        "secondsLeft": usage.seconds_left,
        "videosWatchedCount": usage.videos_watched_count,
        "state": usage.state.value,
        "limitReached": usage.limit_reached,
        "limitEnabled": usage.limit_enabled,
        "timeWatchedText": format_duration(usage.seconds_watched),
        "timeLeftText": format_duration(usage.seconds_left),
        "timeLeftLevel": time_left_level(usage.seconds_left),
    }


def create_app(
    session: Optional[KioskSession] = None,
    config_path: Optional[Path] = None,
    kv_store: Optional[KeyValueStore] = None,
    startup_error: Optional[str] = None,
) -> Flask:
    """Create and configure the Flask app."""
    app = Flask(__name__)
    app.secret_key = "channel-kiosk-secret"  # Fixed key for local kiosk use
    store = kv_store or SqliteKeyValueStore(config_path or get_db_path())

    def _session_ready() -> bool:
        return session is not None and startup_error is None

    def _unavailable():
        return jsonify({"error": "cannot load", "message": startup_error or "Session not started"}), 503

    @app.route("/")
    def dashboard():
        config = load_config(config_path)
        usage = session.get_usage_snapshot() if _session_ready() else None
        context = {}
        if usage:
            context = {
                "time_watched": format_duration(usage.seconds_watched),
                "time_left": format_duration(usage.seconds_left),
                "time_left_class": time_left_level(usage.seconds_left),
            }
        return render_template_string(
            DASHBOARD_TEMPLATE,
            config=config,
            usage=usage,
            startup_error=startup_error,
            activity=activity_log.get_lines(),
            **context,
        )

    @app.route("/settings", methods=["GET", "POST"])
    def settings():
        config = load_config(config_path)
        limit = session.governor.limit_config if _session_ready() else None
        if request.method == "POST":
            try:
                config = AppConfig(
                    youtube_api_key=request.form.get("youtube_api_key", config.youtube_api_key).strip(),
                    channels_file=request.form.get("channels_file") or config.channels_file,
                    kv_url=request.form.get("kv_url", "").strip(),
                    web_port=int(request.form.get("web_port", config.web_port)),
                    debug_mode=request.form.get("debug_mode") == "1",
                )
                if limit is not None:
                    limit = DailyLimitConfig(
                        limit_seconds=int(request.form.get("daily_limit_minutes", limit.limit_seconds // 60)) * 60,
                        enabled=request.form.get("limit_enabled") == "1",
                    )
                save_config(config, config_path)
                if limit is not None:
                    session.update_limit_config(limit)
                return redirect(url_for("dashboard"))
            except (ValueError, TypeError) as e:
                logger.warning("Invalid settings: %s", e)
        return render_template_string(SETTINGS_TEMPLATE, config=config, limit=limit)

    # -- player API --

    @app.route("/api/channels")
    def api_channels():
        if not _session_ready():
            return _unavailable()
        return jsonify(
            {
                "channels": [
                    {"id": c.id, "name": c.display_name, "thumbnailUrl": c.thumbnail_url}
                    for c in session.channels()
                ]
            }
        )

    @app.route("/api/videos/next")
    def api_next_page():
        if not _session_ready():
            return _unavailable()
        page = session.get_next_page()
        return jsonify({"videos": [video_to_json(v) for v in page.items], "hasMore": page.has_more})

    @app.route("/api/videos/filter", methods=["POST"])
    def api_filter():
        if not _session_ready():
            return _unavailable()
        data = request.get_json(silent=True) or {}
        channel_id = data.get("channelId")
        try:
            timeline = session.filter_by_channel(channel_id)
        except KeyError:
            return jsonify({"error": f"Unknown channel {channel_id}"}), 404
        title = session.get_channel(channel_id).display_name if channel_id else "Latest Videos"
        return jsonify({"channelId": channel_id, "title": title, "total": len(timeline)})

    @app.route("/api/videos/<video_id>/suggestions")
    def api_suggestions(video_id: str):
        if not _session_ready():
            return _unavailable()
        return jsonify({"videos": [video_to_json(v) for v in session.suggestions(video_id)]})

    @app.route("/api/player/open", methods=["POST"])
    def api_open():
        if not _session_ready():
            return _unavailable()
        data = request.get_json(silent=True) or {}
        video_id = data.get("videoId")
        if not video_id:
            return jsonify({"error": "videoId is required"}), 400
        allowed = session.open_video(video_id)
        video = session.find_video(video_id)
        return jsonify(
            {
                "allowed": allowed,
                "video": video_to_json(video) if video else None,
                "usage": usage_to_json(session.get_usage_snapshot()),
            }
        )

    @app.route("/api/player/state", methods=["POST"])
    def api_player_state():
        if not _session_ready():
            return _unavailable()
        data = request.get_json(silent=True) or {}
        allowed = session.on_play_state_change(bool(data.get("playing")), data.get("videoId"))
        return jsonify({"allowed": allowed, "usage": usage_to_json(session.get_usage_snapshot())})

    @app.route("/api/player/close", methods=["POST"])
    def api_player_close():
        if not _session_ready():
            return _unavailable()
        session.close_video()
        return jsonify({"usage": usage_to_json(session.get_usage_snapshot())})

    @app.route("/api/usage")
    def api_usage():
        if not _session_ready():
            return _unavailable()
        return jsonify(usage_to_json(session.get_usage_snapshot()))

    # -- key-value service for other kiosks --

    @app.route("/api/kv/<path:key>", methods=["GET", "PUT", "DELETE"])
    def api_kv(key: str):
        try:
            if request.method == "GET":
                value = store.get(key)
                if value is None:
                    return jsonify({"error": "not found"}), 404
                return jsonify({"key": key, "value": value})
            if request.method == "PUT":
                data = request.get_json(silent=True)
                if not isinstance(data, dict) or "value" not in data:
                    return jsonify({"error": "body must be {\"value\": ..., \"ttl\": ...}"}), 400
                ttl = data.get("ttl")
                store.set(key, data["value"], ttl=float(ttl) if ttl else None)
                return jsonify({"success": True})
            store.delete(key)
            return jsonify({"success": True})
        except PersistenceUnavailable as e:
            logger.error("Key-value store error for %s: %s", key, e)
            return jsonify({"error": "store unavailable"}), 503
        except (TypeError, ValueError) as e:
            return jsonify({"error": str(e)}), 400

    return app


def run_web_server(
    app: Flask,
    host: str = "0.0.0.0",
    port: int = DEFAULT_WEB_PORT,
) -> None:
    """Run the Flask development server."""
    app.run(host=host, port=port, threaded=True, use_reloader=False)
