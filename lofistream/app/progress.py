"""
Progress Broadcaster for lofistream.

Turns a fixed sub-second timer into a low-frequency event stream: every tick
the middle status line (progress bar, or the volume bar while a volume change
is being shown) is re-rendered, and PROGRESS_UPDATE is published only when
the rendered text differs from the previous tick.
"""

import logging
import threading
from typing import Optional

from lofistream.app.events import EventBus, UIEvent
from lofistream.app.render import render_progress_bar, render_volume_bar
from lofistream.broadcast_core.playback_engine import PlaybackEngine
from lofistream.state.now_playing_state import NowPlayingSlot

logger = logging.getLogger(__name__)

# How many ticks the volume bar stays visible after a volume change
VOLUME_FLASH_TICKS = 10


class VolumeFlash:
    """
    Countdown that keeps the volume bar on screen after a volume change.

    Owned by the player, triggered by the control loop and ticked by the
    progress broadcaster it is handed to.
    """

    def __init__(self, ticks: int = VOLUME_FLASH_TICKS):
        self._ticks = ticks
        self._remaining = 0
        self._lock = threading.Lock()

    def trigger(self) -> None:
        with self._lock:
            self._remaining = self._ticks

    def tick(self) -> bool:
        """
        Consume one tick.

        Returns:
            True if the volume bar should be shown for this tick
        """
        with self._lock:
            if self._remaining <= 0:
                return False
            self._remaining -= 1
            return True

    def active(self) -> bool:
        return self._remaining > 0


class ProgressBroadcaster:
    """
    Periodic, coalescing progress notifier.
    """

    def __init__(
        self,
        slot: NowPlayingSlot,
        engine: PlaybackEngine,
        bus: EventBus,
        flash: VolumeFlash,
        width: int,
        interval: float = 0.1,
        stop_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the broadcaster (the timer thread is started by start()).

        Args:
            slot: Now-playing slot to read the current track from
            engine: Engine to read position, volume and pause state from
            bus: Event bus PROGRESS_UPDATE is published on
            flash: Volume flash countdown owned by the player
            width: Bar width in characters
            interval: Tick period in seconds
            stop_event: Shared stop event
        """
        self._slot = slot
        self._engine = engine
        self._bus = bus
        self._flash = flash
        self._width = width
        self._interval = interval
        self._stop = stop_event or threading.Event()
        self._emit = True
        self._last_rendered: Optional[str] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def current_line(self) -> Optional[str]:
        """The most recently rendered middle line."""
        return self._last_rendered

    def set_progress_emit(self, emit: bool) -> None:
        """Enable or disable publishing (rendering continues)."""
        self._emit = bool(emit)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="ProgressBroadcaster", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def render(self, show_volume: bool) -> Optional[str]:
        """
        Render the middle line for the current state.

        Returns:
            Rendered text, or None when there is nothing moving to show
        """
        if show_volume:
            return render_volume_bar(self._width, self._engine.volume())

        track = self._slot.load()
        if track is None or self._engine.is_paused():
            return None
        return render_progress_bar(self._width, self._engine.position(), track.duration)

    def tick_once(self) -> bool:
        """
        Run one tick.

        Returns:
            True if PROGRESS_UPDATE was published
        """
        rendered = self.render(self._flash.tick())
        if rendered is None or rendered == self._last_rendered:
            return False

        self._last_rendered = rendered
        if not self._emit:
            return False
        self._bus.publish(UIEvent.PROGRESS_UPDATE)
        return True

    def _run(self) -> None:
        logger.debug(f"[PROGRESS] Broadcasting every {self._interval * 1000:.0f} ms")
        while not self._stop.wait(self._interval):
            self.tick_once()
        logger.debug("[PROGRESS] Stopped")
