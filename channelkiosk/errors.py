"""Error types shared by the aggregator, the governor and their stores."""

from __future__ import annotations


class ChannelKioskError(Exception):
    """Base class for all kiosk errors."""


class UpstreamUnavailable(ChannelKioskError):
    """The video catalog or statistics API failed or could not be reached."""


class PersistenceUnavailable(ChannelKioskError):
    """A key-value store could not be read or written."""


class ConfigurationMissing(ChannelKioskError):
    """Startup cannot continue: no channel list or no API credentials."""
