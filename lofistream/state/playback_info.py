"""
Derived playback state shared with observers.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from lofistream.broadcast_core.track import TrackInfo


class PlaybackState(enum.Enum):
    """Session state derived from the now-playing slot and the engine."""
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"

    @classmethod
    def derive(cls, has_track: bool, is_paused: bool) -> "PlaybackState":
        if not has_track:
            return cls.LOADING
        return cls.PAUSED if is_paused else cls.PLAYING


@dataclass(frozen=True)
class PlaybackInfo:
    """Point-in-time snapshot of everything a front end renders."""
    state: PlaybackState
    track: Optional[TrackInfo]
    is_paused: bool
    volume: float
    position: float
    is_bookmarked: bool

    @property
    def is_playing(self) -> bool:
        return self.state is PlaybackState.PLAYING
