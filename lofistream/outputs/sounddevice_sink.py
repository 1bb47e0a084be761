"""
Sound card output for lofistream.

Writes PCM frames to the default (or a named) output device through a
sounddevice RawOutputStream. The blocking write() is what paces the
playback thread in real time.
"""

import logging
from typing import Optional, Union

import numpy as np

from lofistream.errors import EngineError
from .base_sink import BaseSink

logger = logging.getLogger(__name__)


class SoundDeviceSink(BaseSink):
    """Blocking PortAudio output stream."""

    def __init__(
        self,
        sample_rate: int = 48000,
        channels: int = 2,
        device: Optional[Union[int, str]] = None,
        blocksize: int = 1024,
    ):
        """
        Open the output stream.

        Args:
            sample_rate: Stream sample rate in Hz
            channels: Number of interleaved channels
            device: PortAudio device index or name (None = system default)
            blocksize: Frames per PortAudio buffer

        Raises:
            EngineError: If PortAudio is missing or no output device can be opened
        """
        try:
            # PortAudio is loaded at import time; a missing library is an engine failure
            import sounddevice
        except OSError as e:
            raise EngineError(f"PortAudio library not available: {e}") from e

        try:
            self._stream = sounddevice.RawOutputStream(
                samplerate=sample_rate,
                channels=channels,
                dtype="int16",
                blocksize=blocksize,
                device=device,
                latency="high",
            )
            self._stream.start()
        except (sounddevice.PortAudioError, ValueError) as e:
            raise EngineError(f"Unable to open audio output device: {e}") from e

        logger.info(
            f"[OUTPUT] Audio stream opened: rate={sample_rate}, channels={channels}, "
            f"blocksize={blocksize}, device={device if device is not None else 'default'}"
        )

    def write(self, frame: np.ndarray) -> None:
        underflowed = self._stream.write(np.ascontiguousarray(frame).tobytes())
        if underflowed:
            logger.debug("[OUTPUT] Output underflow")

    def close(self) -> None:
        try:
            self._stream.stop()
        finally:
            self._stream.close()
