"""
Outputs module for lofistream.

Output sinks receive PCM frames from the playback engine: the sound card,
a WAV file for debugging, or nothing at all.
"""

from .base_sink import BaseSink
from .null_sink import NullSink
from .file_sink import FileSink
from .factory import create_output_sink

__all__ = [
    "BaseSink",
    "NullSink",
    "FileSink",
    "create_output_sink",
]
