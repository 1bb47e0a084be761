from abc import ABC, abstractmethod
import numpy as np


class BaseSink(ABC):
    """
    Destination of the playback engine's PCM stream.

    The PlayoutEngine thread is the only writer. Frames are canonical
    48 kHz stereo int16, already scaled by the mixer. A sink that blocks in
    write() (a sound card, or NullSink in real-time mode) sets the pace of
    playback; one that returns immediately lets tracks drain as fast as
    ffmpeg decodes them.
    """

    @abstractmethod
    def write(self, frame: np.ndarray) -> None:
        """
        Deliver one frame.

        Args:
            frame: int16 numpy array shaped (N, 2)
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the device or file. Called once, from PCMPlaybackEngine.close()."""
        ...
