"""
Now Playing Slot

Single authoritative reference to the metadata of the track currently handed
to the playback engine. Read by any number of observers (progress
broadcaster, status line, desktop integration) while the control loop's
advance path replaces it.

Every write is one reference replacement of an immutable TrackInfo, so a
reader sees either the old or the new value, never a mix of both.
"""

import logging
from typing import Callable, List, Optional

from lofistream.broadcast_core.track import TrackInfo
from lofistream.state.atomic import AtomicCell

logger = logging.getLogger(__name__)

NowPlayingListener = Callable[[Optional[TrackInfo]], None]


class NowPlayingSlot:
    """
    Swappable now-playing reference.

    An empty slot means "no current track" (the player is loading).
    """

    def __init__(self):
        """Initialize an empty slot."""
        self._cell: AtomicCell[TrackInfo] = AtomicCell()
        self._listeners: List[NowPlayingListener] = []

    def exists(self) -> bool:
        """True if a current track is set."""
        return self._cell.load() is not None

    def load(self) -> Optional[TrackInfo]:
        """
        Get the current track (read-only, never blocks).

        Returns:
            Current TrackInfo or None when loading
        """
        return self._cell.load()

    def store(self, info: Optional[TrackInfo]) -> None:
        """Replace the current track."""
        self._cell.store(info)
        self._after_change(info)

    def swap(self, info: Optional[TrackInfo]) -> Optional[TrackInfo]:
        """
        Replace the current track.

        Returns:
            The previous TrackInfo (or None)
        """
        previous = self._cell.swap(info)
        self._after_change(info)
        return previous

    def compare_and_swap(self, expected: Optional[TrackInfo], info: Optional[TrackInfo]) -> bool:
        """
        Replace the current track only if it is still `expected`.

        Returns:
            True if the slot was updated
        """
        swapped = self._cell.compare_and_swap(expected, info)
        if swapped:
            self._after_change(info)
        return swapped

    def clear(self) -> None:
        """Empty the slot."""
        self.store(None)

    def add_listener(self, callback: NowPlayingListener) -> None:
        """
        Add a callback invoked with the new value after every change.

        Callbacks run on the writer's thread and must not block.
        """
        self._listeners = self._listeners + [callback]

    def remove_listener(self, callback: NowPlayingListener) -> None:
        self._listeners = [cb for cb in self._listeners if cb != callback]

    def _after_change(self, info: Optional[TrackInfo]) -> None:
        if info is None:
            logger.debug("[NOW_PLAYING] Cleared")
        else:
            logger.debug(f"[NOW_PLAYING] {info.display_name} ({info.full_path})")

        for callback in self._listeners:
            try:
                callback(info)
            except Exception as e:
                # Observer failures must not affect playback
                logger.debug(f"[NOW_PLAYING] Listener callback error: {e}")
