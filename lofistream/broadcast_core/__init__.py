"""
Broadcast Core module for lofistream.

This package contains the track model, the prefetch queue and fetch
pipeline, and the playback engine that drives the output sink.
"""

from lofistream.broadcast_core.track import TrackCandidate, TrackInfo, ReadyTrack
from lofistream.broadcast_core.prefetch_queue import PrefetchQueue
from lofistream.broadcast_core.fetch_pipeline import PrefetchPipeline, TrackSource
from lofistream.broadcast_core.playback_engine import PlaybackEngine, PCMPlaybackEngine

__all__ = [
    "TrackCandidate",
    "TrackInfo",
    "ReadyTrack",
    "PrefetchQueue",
    "PrefetchPipeline",
    "TrackSource",
    "PlaybackEngine",
    "PCMPlaybackEngine",
]
