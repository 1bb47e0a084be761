"""
Shared and persisted player state: the now-playing slot, atomic flags,
the persistent volume and the bookmark store.
"""

from lofistream.state.atomic import AtomicCell, AtomicCounter, AtomicFlag
from lofistream.state.now_playing_state import NowPlayingSlot
from lofistream.state.volume_store import PersistentVolume
from lofistream.state.bookmark_store import BookmarkStore

__all__ = [
    "AtomicCell",
    "AtomicCounter",
    "AtomicFlag",
    "NowPlayingSlot",
    "PersistentVolume",
    "BookmarkStore",
]
