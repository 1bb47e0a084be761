import time

import numpy as np

from .base_sink import BaseSink


class NullSink(BaseSink):
    """
    A sink that discards all audio. Useful for headless runs and tests.

    With realtime=True it sleeps for each frame's duration so tracks still
    take as long as they would on a real device.
    """

    def __init__(self, sample_rate: int = 48000, realtime: bool = False):
        self._sample_rate = sample_rate
        self._realtime = realtime

    def write(self, frame: np.ndarray) -> None:
        if self._realtime:
            time.sleep(len(frame) / self._sample_rate)

    def close(self) -> None:
        # Nothing to close
        return
