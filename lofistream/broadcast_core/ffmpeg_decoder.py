import logging
import os
import subprocess
import threading
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

SAMPLE_RATE = 48000
CHANNELS = 2
FRAME_SIZE = 1024


class FFmpegDecoder:
    """
    In-memory audio → PCM decoder using ffmpeg.
    - Feeds the encoded payload to ffmpeg on stdin from a writer thread
    - Outputs 16-bit signed little-endian stereo at 48 kHz
    - Yields numpy int16 frames of shape (N, 2)

    The decoder has no timing responsibility; the output sink paces playback.
    """

    def __init__(self, data: bytes, frame_size: int = FRAME_SIZE, label: str = "<memory>"):
        """
        Initialize FFmpeg decoder.

        Args:
            data: Encoded audio payload (mp3, ogg, flac, ...)
            frame_size: Number of samples per frame (default: 1024)
            label: Name used in log messages

        Raises:
            FileNotFoundError: If the ffmpeg binary is not installed
        """
        self.label = label
        self.frame_size = frame_size
        self._data = data

        # Own process group so Ctrl-C on the terminal does not reach ffmpeg
        self.proc: Optional[subprocess.Popen] = subprocess.Popen(
            [
                "ffmpeg",
                "-hide_banner",
                "-loglevel", "error",
                "-i", "pipe:0",
                "-f", "s16le",
                "-ac", str(CHANNELS),
                "-ar", str(SAMPLE_RATE),
                "pipe:1",
            ],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            bufsize=self.frame_size * 4,
            preexec_fn=os.setsid,
        )
        self._feeder = threading.Thread(target=self._feed, name="FFmpegFeeder", daemon=True)
        self._feeder.start()

    def _feed(self) -> None:
        proc = self.proc
        if proc is None or proc.stdin is None:
            return
        try:
            proc.stdin.write(self._data)
        except (BrokenPipeError, ValueError, OSError):
            # ffmpeg exited early (invalid payload or killed by skip)
            pass
        finally:
            try:
                proc.stdin.close()
            except (BrokenPipeError, OSError):
                pass

    def read_frames(self):
        """
        Generator yielding PCM frames as numpy int16 arrays shaped (N, 2).

        Every frame is frame_size samples except possibly the last one, which
        is zero-padded so the sink always receives whole frames.
        """
        proc = self.proc
        if proc is None or proc.stdout is None:
            return
        bytes_per_frame = self.frame_size * CHANNELS * 2
        buffer = bytearray()

        try:
            while True:
                data = proc.stdout.read(bytes_per_frame * 2)
                if not data:
                    if buffer:
                        tail = bytes(buffer) + b"\x00" * (bytes_per_frame - len(buffer))
                        yield np.frombuffer(tail, dtype=np.int16).reshape(-1, CHANNELS)
                    break

                buffer.extend(data)
                while len(buffer) >= bytes_per_frame:
                    frame_data = bytes(buffer[:bytes_per_frame])
                    del buffer[:bytes_per_frame]
                    yield np.frombuffer(frame_data, dtype=np.int16).reshape(-1, CHANNELS)
        finally:
            self.close()

    def returncode(self) -> Optional[int]:
        """Exit status of ffmpeg once it has finished, else None."""
        return self.proc.poll() if self.proc is not None else None

    def kill(self) -> None:
        """
        Kill the ffmpeg process group immediately (used when a track is skipped).

        Idempotent and safe to call from another thread.
        """
        proc = self.proc
        if proc is None or proc.poll() is not None:
            return
        try:
            os.killpg(os.getpgid(proc.pid), 9)
            logger.debug(f"[DECODER] ffmpeg killed (pid={proc.pid}, track={self.label})")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"[DECODER] killpg failed for pid={proc.pid}: {e}")
            proc.kill()

    def close(self) -> None:
        """
        Clean up the ffmpeg process.

        Closes stdout and terminates/kills the process if still running.
        Safe to call multiple times.
        """
        proc = self.proc
        if proc is None:
            return
        self.proc = None

        try:
            if proc.stdout:
                proc.stdout.close()
        except OSError:
            pass

        if proc.poll() is None:
            try:
                proc.terminate()
                proc.wait(timeout=2)
            except subprocess.TimeoutExpired:
                logger.warning(f"[DECODER] ffmpeg didn't terminate, killing: {self.label}")
                proc.kill()
                proc.wait(timeout=1)
