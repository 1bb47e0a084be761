"""
lofistream - a continuous lo-fi audio streamer.

Tracks are pulled from a remote track list, prefetched into a small bounded
buffer and played back through a PCM playback engine, while a message-driven
control loop handles play/pause/skip/volume/bookmark commands and publishes
events for any attached front end.
"""

__version__ = "0.4.0"
