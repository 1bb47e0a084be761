from typing import Optional

import numpy as np


class Mixer:
    """
    Volume stage of the playback engine.

    Holds the listener volume as a linear gain in [0.0, 1.0] and applies it
    to each decoded int16 frame on its way to the output sink. The engine's
    set_volume()/volume() read and write the gain here; the playout thread
    picks up a new gain on the next frame.
    """

    def __init__(self, gain: float = 1.0):
        self._gain = 1.0
        self.set_gain(gain)

    @property
    def gain(self) -> float:
        return self._gain

    def set_gain(self, gain: float) -> float:
        """Clamp and store the gain; returns the stored value."""
        self._gain = min(max(float(gain), 0.0), 1.0)
        return self._gain

    def mix(self, frame: np.ndarray, gain: Optional[float] = None) -> np.ndarray:
        """
        Scale one PCM frame.

        Args:
            frame: int16 array shaped (N, 2)
            gain: Override for this frame (default: the stored gain)

        Returns:
            The input frame at unity gain, silence at zero gain, otherwise a
            scaled copy
        """
        gain = self._gain if gain is None else gain
        if gain >= 1.0:
            return frame
        if gain <= 0.0:
            return np.zeros_like(frame)
        out = frame.astype(np.float32) * float(gain)
        np.clip(out, -32768.0, 32767.0, out=out)
        return out.astype(np.int16)
