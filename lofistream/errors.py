"""
Exception types raised by lofistream components.
"""


class LofiStreamError(Exception):
    """Base class for all lofistream errors."""


class ConfigError(LofiStreamError, ValueError):
    """Raised when a configuration value is missing or invalid."""


class TrackListError(LofiStreamError):
    """Raised when the track list cannot be loaded."""


class FetchError(LofiStreamError):
    """
    Raised when a candidate track could not be turned into a playable payload.

    Covers network errors, timeouts, HTTP error statuses and invalid payloads.
    Fetch workers recover from this locally; it never reaches the control loop.
    """

    def __init__(self, identifier: str, reason: str):
        super().__init__(f"{identifier}: {reason}")
        self.identifier = identifier
        self.reason = reason


class EngineError(LofiStreamError):
    """Raised when the playback engine or its output device cannot be created."""


class BookmarkError(LofiStreamError):
    """Raised when bookmark persistence is unavailable."""


__all__ = [
    "LofiStreamError",
    "ConfigError",
    "TrackListError",
    "FetchError",
    "EngineError",
    "BookmarkError",
]
