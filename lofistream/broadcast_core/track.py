"""
Track model for lofistream.

Defines the three shapes a track takes on its way to the speakers:

- TrackCandidate: an identifier handed out by the track source, not yet fetched
- ReadyTrack: a fetched and validated payload plus its final metadata
- TrackInfo: the immutable metadata kept in the now-playing slot
"""

import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import unquote, urlparse

# "01 - ", "1. ", "07_" style prefixes left over from album rips
_TRACK_NUMBER_PREFIX = re.compile(r"^\d{1,3}\s*[-._)]\s*|^\d{1,3}\s+")


@dataclass(frozen=True)
class TrackCandidate:
    """
    Identifier for a track that has not been fetched yet.

    Attributes:
        identifier: Track path relative to the list base, or an absolute URL
        display_name: Custom display name from the track list, if any
        duration: Duration in seconds when the source already knows it
    """
    identifier: str
    display_name: Optional[str] = None
    duration: Optional[float] = None


@dataclass(frozen=True)
class TrackInfo:
    """
    Metadata of a playable track.

    Frozen so the now-playing slot can hand the same instance to any number
    of concurrent readers.
    """
    name: str
    display_name: str
    full_path: str
    custom_name: bool = False
    duration: Optional[float] = None
    width: int = 0

    @classmethod
    def build(cls, candidate: TrackCandidate, full_path: str, duration: Optional[float] = None) -> "TrackInfo":
        """
        Build final metadata for a fetched candidate.

        Args:
            candidate: The candidate that was fetched
            full_path: Resolved origin (URL or filesystem path) of the payload
            duration: Probed duration in seconds, overriding the candidate's

        Returns:
            TrackInfo with a derived display name unless the candidate has a custom one
        """
        custom = candidate.display_name is not None
        display = candidate.display_name if custom else format_display_name(candidate.identifier)
        return cls(
            name=candidate.identifier,
            display_name=display,
            full_path=full_path,
            custom_name=custom,
            duration=duration if duration is not None else candidate.duration,
            width=len(display),
        )


@dataclass
class ReadyTrack:
    """A fetched, validated payload ready to be handed to the playback engine."""
    info: TrackInfo
    data: bytes = field(repr=False)

    def __len__(self) -> int:
        return len(self.data)


def format_display_name(identifier: str) -> str:
    """
    Derive a human readable name from a track identifier.

    Takes the last path segment, percent-decodes it, drops the extension and
    any leading track number, then capitalises each word.

    >>> format_display_name("2023/05/01%20-%20rainy_morning.mp3")
    'Rainy Morning'
    """
    path = urlparse(identifier).path or identifier
    stem = PurePosixPath(unquote(path)).stem
    stem = _TRACK_NUMBER_PREFIX.sub("", stem.strip())
    words = stem.replace("_", " ").split()
    if not words:
        return unquote(identifier)
    return " ".join(word[:1].upper() + word[1:] for word in words)
