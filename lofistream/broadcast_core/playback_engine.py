"""
Playback Engine for lofistream.

Owns the audio sink. Payloads handed over by the control loop are decoded
one at a time on a dedicated playout thread, scaled by the current volume
and written to the output sink, which paces playback.

The control loop is the only caller of the mutating methods (play, pause,
set_volume, enqueue, stop); observers only read.
"""

import logging
import shutil
import threading
from collections import deque
from typing import Callable, Optional, Protocol, Tuple

from lofistream.broadcast_core.ffmpeg_decoder import FFmpegDecoder, SAMPLE_RATE
from lofistream.errors import EngineError
from lofistream.mixer.mixer import Mixer
from lofistream.outputs.base_sink import BaseSink

logger = logging.getLogger(__name__)


class PlaybackEngine(Protocol):
    """
    Interface the control loop drives.

    block_until_track_ends() is the engine-exhaustion signal: it suspends the
    calling thread until everything enqueued has been played (or skipped).
    """

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def is_paused(self) -> bool: ...

    def set_volume(self, volume: float) -> None: ...

    def volume(self) -> float: ...

    def position(self) -> float: ...

    def block_until_track_ends(self, timeout: Optional[float] = None) -> bool: ...

    def enqueue(self, data: bytes, label: str = "") -> None: ...

    def stop(self) -> None: ...

    def close(self) -> None: ...


class PCMPlaybackEngine:
    """
    Thread-backed engine: ffmpeg decode → Mixer gain → BaseSink.

    Attributes:
        sample_rate: Output sample rate used to convert frames to seconds
    """

    def __init__(
        self,
        sink: BaseSink,
        decoder_factory: Callable[..., FFmpegDecoder] = FFmpegDecoder,
        mixer: Optional[Mixer] = None,
        sample_rate: int = SAMPLE_RATE,
    ):
        """
        Initialize the engine and start its playout thread.

        Args:
            sink: Output sink frames are written to
            decoder_factory: Callable(data, label=...) returning an object with read_frames()/kill()
            mixer: Volume stage holding the current gain (default: Mixer())
            sample_rate: Sample rate of decoded frames
        """
        self.sample_rate = sample_rate
        self._sink = sink
        self._decoder_factory = decoder_factory
        self._mixer = mixer or Mixer()

        self._pending: deque[Tuple[bytes, str]] = deque()
        self._cond = threading.Condition()
        self._resume = threading.Event()
        self._resume.set()
        self._idle = threading.Event()
        self._idle.set()
        self._closed = False

        self._frames_played = 0
        self._generation = 0
        self._current_decoder = None

        self._thread = threading.Thread(target=self._playout_loop, name="PlayoutEngine", daemon=True)
        self._thread.start()

    # ------------------------------------------------------------------ control
    def play(self) -> None:
        self._resume.set()

    def pause(self) -> None:
        self._resume.clear()

    def is_paused(self) -> bool:
        return not self._resume.is_set()

    def set_volume(self, volume: float) -> None:
        self._mixer.set_gain(volume)

    def volume(self) -> float:
        return self._mixer.gain

    def position(self) -> float:
        """Seconds of the current track written to the sink so far."""
        return self._frames_played / self.sample_rate

    def enqueue(self, data: bytes, label: str = "") -> None:
        """
        Queue an encoded payload for playback after anything already queued.

        Raises:
            EngineError: If the engine has been closed
        """
        with self._cond:
            if self._closed:
                raise EngineError("Playback engine is closed")
            self._pending.append((data, label))
            self._idle.clear()
            self._cond.notify()

    def stop(self) -> None:
        """Abort the current track and drop anything still queued."""
        with self._cond:
            self._pending.clear()
            self._generation += 1
            decoder = self._current_decoder
            self._frames_played = 0
            if decoder is None:
                self._idle.set()
        if decoder is not None:
            decoder.kill()

    def block_until_track_ends(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until the engine has nothing left to play.

        Args:
            timeout: Seconds to wait (None waits indefinitely)

        Returns:
            True if the engine is idle, False on timeout
        """
        return self._idle.wait(timeout)

    def close(self) -> None:
        """Stop playback, join the playout thread and close the sink."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._cond.notify_all()
        self.stop()
        self._resume.set()
        self._thread.join(timeout=2.0)
        self._sink.close()
        logger.info("[ENGINE] Closed")

    # ------------------------------------------------------------------ playout
    def _playout_loop(self) -> None:
        while True:
            with self._cond:
                while not self._pending and not self._closed:
                    self._cond.wait()
                if self._closed:
                    return
                data, label = self._pending.popleft()
                generation = self._generation
                self._frames_played = 0

            try:
                frames = self._play_payload(data, label, generation)
                if frames == 0 and generation == self._generation:
                    logger.warning(f"[ENGINE] No audio decoded from {label or 'payload'}")
            except Exception as e:
                # A broken payload or sink must not kill the playout thread
                logger.error(f"[ENGINE] Playback failed for {label or 'payload'}: {e}", exc_info=True)
            finally:
                with self._cond:
                    self._current_decoder = None
                    if not self._pending:
                        self._idle.set()

    def _play_payload(self, data: bytes, label: str, generation: int) -> int:
        decoder = self._decoder_factory(data, label=label)
        with self._cond:
            if generation != self._generation:
                decoder.kill()
                return 0
            self._current_decoder = decoder

        logger.debug(f"[ENGINE] Playing {label} ({len(data)} bytes)")
        frames = 0
        for frame in decoder.read_frames():
            if not self._wait_resumed(generation):
                decoder.kill()
                break
            self._sink.write(self._mixer.mix(frame))
            self._frames_played += len(frame)
            frames += 1
        return frames

    def _wait_resumed(self, generation: int) -> bool:
        """Block while paused; False once the track was stopped or the engine closed."""
        while not self._resume.wait(timeout=0.1):
            if generation != self._generation or self._closed:
                return False
        return generation == self._generation and not self._closed


def create_engine(sink: BaseSink) -> PCMPlaybackEngine:
    """
    Build the default engine around a sink.

    Raises:
        EngineError: If ffmpeg is not installed
    """
    if shutil.which("ffmpeg") is None:
        raise EngineError("ffmpeg not found on PATH; it is required to decode tracks")
    return PCMPlaybackEngine(sink)
