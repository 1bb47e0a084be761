"""
Track list source for lofistream.

A track list is a plain text file:

    https://example.com/lofi/          <- base URL (or a file:// directory)
    2023/05/rainy_morning.mp3          <- track path, resolved against the base
    2023/05/night_walk.mp3!Night Walk  <- track path with a custom display name
    # comments and blank lines are ignored

The source hands out candidates at random. Repeats are allowed by design,
except that the same entry is never returned twice in a row while the list
has more than one entry.
"""

import logging
import random
import threading
from pathlib import Path
from typing import List, Optional, Union

from lofistream.broadcast_core.track import TrackCandidate
from lofistream.errors import TrackListError

logger = logging.getLogger(__name__)

CUSTOM_NAME_SEPARATOR = "!"


def parse_entry(line: str) -> TrackCandidate:
    """
    Parse one track line into a candidate.

    >>> parse_entry("a/b.mp3!Custom Name")
    TrackCandidate(identifier='a/b.mp3', display_name='Custom Name', duration=None)
    """
    identifier, sep, custom = line.partition(CUSTOM_NAME_SEPARATOR)
    identifier = identifier.strip()
    custom = custom.strip()
    return TrackCandidate(identifier=identifier, display_name=custom if sep and custom else None)


class TrackList:
    """
    Random track source backed by a track list.

    Attributes:
        name: Name of the list (file stem)
        base: Base URL relative identifiers resolve against
    """

    def __init__(self, name: str, base: str, entries: List[TrackCandidate], rng: Optional[random.Random] = None):
        """
        Initialize from already-parsed entries.

        Raises:
            TrackListError: If there are no entries
        """
        if not entries:
            raise TrackListError(f"Track list '{name}' has no tracks")
        self.name = name
        self.base = base
        self._entries = list(entries)
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._last_index: Optional[int] = None

    @classmethod
    def parse(cls, name: str, text: str, rng: Optional[random.Random] = None) -> "TrackList":
        """
        Parse track list text.

        Raises:
            TrackListError: If the base line or all track lines are missing
        """
        lines = [line.strip() for line in text.splitlines()]
        lines = [line for line in lines if line and not line.startswith("#")]
        if not lines:
            raise TrackListError(f"Track list '{name}' is empty")

        base, tracks = lines[0], lines[1:]
        entries = [parse_entry(line) for line in tracks]
        entries = [entry for entry in entries if entry.identifier]
        return cls(name, base, entries, rng=rng)

    @classmethod
    def load(cls, path: Union[str, Path], rng: Optional[random.Random] = None) -> "TrackList":
        """
        Load a track list from disk.

        Raises:
            TrackListError: If the file cannot be read or holds no tracks
        """
        path = Path(path).expanduser()
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise TrackListError(f"Unable to read track list {path}: {e.strerror or e}") from e

        track_list = cls.parse(path.stem, text, rng=rng)
        logger.info(f"[TRACKS] Loaded list '{track_list.name}' with {len(track_list)} tracks (base={track_list.base})")
        return track_list

    def __len__(self) -> int:
        return len(self._entries)

    def next_candidate(self) -> TrackCandidate:
        """Pick the next candidate at random (safe for concurrent callers)."""
        with self._lock:
            count = len(self._entries)
            index = self._rng.randrange(count)
            if count > 1 and index == self._last_index:
                # Shift to a different entry rather than re-rolling
                index = (index + self._rng.randrange(1, count)) % count
            self._last_index = index
            candidate = self._entries[index]
        logger.debug(f"[TRACKS] Selected {candidate.identifier}")
        return candidate
