"""
Player for lofistream.

The Player owns the control loop: a single consumer of the command inbox
that drives the playback engine, installs tracks taken from the prefetch
queue and notifies front ends through the event bus.

Threads around the loop:
- Fetch workers (PrefetchPipeline) keep the prefetch queue topped up
- The advance task takes the next ready track and hands it to the engine
- The exhaustion watcher waits for the engine to run dry after NEW_SONG
- The progress broadcaster re-renders the middle status line on a timer

Only the control loop and the advance task it starts mutate the engine.
"""

import logging
import queue
import threading
from typing import Optional

from lofistream.app.events import EventBus, Subscription, UIEvent
from lofistream.app.messages import ADVANCE_MESSAGES, ChangeVolume, Command, Message
from lofistream.app.progress import ProgressBroadcaster, VolumeFlash
from lofistream.broadcast_core.downloader import Downloader
from lofistream.broadcast_core.fetch_pipeline import PrefetchPipeline
from lofistream.broadcast_core.playback_engine import PlaybackEngine, create_engine
from lofistream.broadcast_core.prefetch_queue import PrefetchQueue
from lofistream.config import PlayerConfig
from lofistream.errors import BookmarkError, ConfigError, EngineError
from lofistream.music_logic.track_list import TrackList
from lofistream.outputs.factory import create_output_sink
from lofistream.state.atomic import AtomicCell, AtomicCounter, AtomicFlag
from lofistream.state.bookmark_store import BookmarkStore
from lofistream.state.now_playing_state import NowPlayingSlot
from lofistream.state.playback_info import PlaybackInfo, PlaybackState
from lofistream.state.volume_store import PersistentVolume

logger = logging.getLogger(__name__)

# How long the control loop waits for a command before re-checking exhaustion
INBOX_POLL_INTERVAL = 0.05

# Slice used by the exhaustion watcher so it notices re-arming and stop
EXHAUSTION_POLL_INTERVAL = 0.1


class Player:
    """
    Control loop and everything it coordinates.

    Use Player.build(config) for a fully wired instance; the constructor takes
    the collaborators directly so they can be replaced in tests.
    """

    def __init__(
        self,
        engine: PlaybackEngine,
        prefetch_queue: PrefetchQueue,
        pipeline: PrefetchPipeline,
        bookmarks: BookmarkStore,
        volume_store: Optional[PersistentVolume] = None,
        slot: Optional[NowPlayingSlot] = None,
        bus: Optional[EventBus] = None,
        stop_event: Optional[threading.Event] = None,
        retry_delay: float = 3.0,
        bar_width: int = 27,
        progress_interval: float = 0.1,
        downloader: Optional[Downloader] = None,
    ):
        """
        Initialize the player.

        Args:
            engine: Playback engine driven by the control loop
            prefetch_queue: Queue the advance task takes ready tracks from
            pipeline: Fetch workers feeding the queue (must share stop_event)
            bookmarks: Bookmark persistence
            volume_store: Volume persisted on quit (None disables persistence)
            slot: Now-playing slot (a new one if omitted)
            bus: Event bus for front ends (a new one if omitted)
            stop_event: Shared stop event set on quit
            retry_delay: Seconds to wait before TRY_AGAIN when the engine rejects a track
            bar_width: Width of the progress and volume bars
            progress_interval: Progress broadcaster tick in seconds
            downloader: Downloader closed on quit, when the player owns it
        """
        self.engine = engine
        self.queue = prefetch_queue
        self.pipeline = pipeline
        self.bookmarks = bookmarks
        self.volume_store = volume_store
        self.slot = slot or NowPlayingSlot()
        self.bus = bus or EventBus()
        self.retry_delay = retry_delay
        self._downloader = downloader

        self._stop = stop_event or threading.Event()
        self._inbox: "queue.Queue[Command]" = queue.Queue()
        self._exhausted: "queue.Queue[int]" = queue.Queue()

        self._bookmarked = AtomicFlag(False)
        self._generation = AtomicCounter()
        self._armed: AtomicCell[int] = AtomicCell()
        self._advance_lock = threading.Lock()
        # Advance tasks started but not yet answered with NEW_SONG/TRY_AGAIN (control loop only)
        self._pending_advances = 0

        self.volume_flash = VolumeFlash()
        self.progress = ProgressBroadcaster(
            slot=self.slot,
            engine=self.engine,
            bus=self.bus,
            flash=self.volume_flash,
            width=bar_width,
            interval=progress_interval,
            stop_event=self._stop,
        )

        self._thread: Optional[threading.Thread] = None
        self._finished = threading.Event()

    @classmethod
    def build(cls, config: PlayerConfig) -> "Player":
        """
        Wire a player from configuration.

        Raises:
            ConfigError: If no track list is configured
            TrackListError: If the track list cannot be loaded
            EngineError: If the audio output or decoder is unavailable
        """
        if config.track_list is None:
            raise ConfigError("No track list configured (set LOFISTREAM_TRACK_LIST or pass --track-list)")

        track_list = TrackList.load(config.track_list)
        downloader = Downloader(track_list.base, timeout=config.fetch_timeout)
        stop_event = threading.Event()
        prefetch_queue = PrefetchQueue(config.buffer_size)
        pipeline = PrefetchPipeline(
            source=track_list,
            fetcher=downloader,
            queue=prefetch_queue,
            workers=config.fetch_workers,
            retry_delay=config.retry_delay,
            stop_event=stop_event,
        )

        try:
            engine = create_engine(create_output_sink(config))
        except (EngineError, ConfigError):
            downloader.close()
            raise

        volume_store = PersistentVolume.load(config.config_dir)
        engine.set_volume(config.volume if config.volume is not None else volume_store.as_float())
        if config.paused:
            engine.pause()

        logger.info(
            f"[PLAYER] Built: list='{track_list.name}', buffer={config.buffer_size}, "
            f"workers={config.fetch_workers}, output={config.output}, volume={engine.volume():.2f}"
        )
        return cls(
            engine=engine,
            prefetch_queue=prefetch_queue,
            pipeline=pipeline,
            bookmarks=BookmarkStore(config.data_dir),
            volume_store=volume_store,
            stop_event=stop_event,
            retry_delay=config.retry_delay,
            bar_width=config.bar_width,
            progress_interval=config.progress_interval,
            downloader=downloader,
        )

    # ------------------------------------------------------------------ public API
    def send(self, command: Command) -> None:
        """Deliver a command to the control loop (safe from any thread)."""
        self._inbox.put(command)

    def subscribe(self, maxsize: int = 100) -> Subscription:
        return self.bus.subscribe(maxsize=maxsize)

    def current_exists(self) -> bool:
        return self.slot.exists()

    def is_bookmarked(self) -> bool:
        return self._bookmarked.load()

    def set_progress_emit(self, emit: bool) -> None:
        self.progress.set_progress_emit(emit)

    def get_playback_info(self) -> PlaybackInfo:
        """Snapshot of the current session for rendering."""
        track = self.slot.load()
        is_paused = self.engine.is_paused()
        return PlaybackInfo(
            state=PlaybackState.derive(track is not None, is_paused),
            track=track,
            is_paused=is_paused,
            volume=self.engine.volume(),
            position=self.engine.position() if track is not None else 0.0,
            is_bookmarked=self._bookmarked.load(),
        )

    def start(self) -> None:
        """Run the control loop on a background thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self.run, name="ControlLoop", daemon=True)
        self._thread.start()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the control loop to return after QUIT.

        Returns:
            True if the loop has finished
        """
        return self._finished.wait(timeout)

    # ------------------------------------------------------------------ control loop
    def run(self) -> None:
        """
        Run the control loop until QUIT.

        Send Message.INIT to start streaming.
        """
        logger.info("[PLAYER] Control loop started")
        self.pipeline.start()
        self.progress.start()
        try:
            while True:
                command = self._next_command()
                if command is None:
                    continue
                if not self._handle(command):
                    break
        finally:
            self._shutdown()
            self._finished.set()
            logger.info("[PLAYER] Control loop stopped")

    def _next_command(self) -> Optional[Command]:
        """Pending commands first, then a live exhaustion signal, then a short wait."""
        try:
            return self._inbox.get_nowait()
        except queue.Empty:
            pass

        if self._take_exhaustion():
            logger.debug("[PLAYER] Track finished, advancing")
            self._start_advance()
            return None

        try:
            return self._inbox.get(timeout=INBOX_POLL_INTERVAL)
        except queue.Empty:
            return None

    def _take_exhaustion(self) -> bool:
        """Consume queued exhaustion signals; True if one matches the armed generation."""
        honoured = False
        while True:
            try:
                generation = self._exhausted.get_nowait()
            except queue.Empty:
                return honoured
            if generation == self._armed.load():
                self._armed.store(None)
                honoured = True
            else:
                logger.debug(f"[PLAYER] Ignoring stale exhaustion (generation {generation})")

    def _handle(self, command: Command) -> bool:
        """
        Apply one command.

        Returns:
            False when the loop should return
        """
        if isinstance(command, ChangeVolume):
            self._change_volume(command.delta)
            return True

        if command in ADVANCE_MESSAGES:
            if command is Message.NEXT and not self.slot.exists():
                logger.debug("[PLAYER] NEXT ignored while loading")
                return True
            if command is Message.TRY_AGAIN:
                self._settle_advance()
            self._start_advance()
        elif command is Message.PLAY:
            self.engine.play()
            self.bus.publish(UIEvent.PLAYBACK_STATE_CHANGED)
        elif command is Message.PAUSE:
            self.engine.pause()
            self.bus.publish(UIEvent.PLAYBACK_STATE_CHANGED)
        elif command is Message.PLAY_PAUSE:
            if self.engine.is_paused():
                self.engine.play()
            else:
                self.engine.pause()
            self.bus.publish(UIEvent.PLAYBACK_STATE_CHANGED)
        elif command is Message.NEW_SONG:
            # Only the newest installed track may arm; an older NEW_SONG that
            # raced with a later NEXT belongs to a track already replaced
            if self._settle_advance() == 0:
                self._arm()
            self.bus.publish(UIEvent.TRACK_CHANGED)
        elif command is Message.BOOKMARK:
            self._toggle_bookmark()
        elif command is Message.QUIT:
            logger.info("[PLAYER] Quit requested")
            return False
        else:
            logger.warning(f"[PLAYER] Unknown command: {command!r}")
        return True

    # ------------------------------------------------------------------ handlers
    def _change_volume(self, delta: float) -> None:
        volume = min(max(self.engine.volume() + delta, 0.0), 1.0)
        self.engine.set_volume(volume)
        self.volume_flash.trigger()
        self.bus.publish(UIEvent.VOLUME_CHANGED)
        logger.debug(f"[PLAYER] Volume {volume:.2f}")

    def _toggle_bookmark(self) -> None:
        track = self.slot.load()
        if track is None:
            return

        display_name = track.display_name if track.custom_name else None
        try:
            bookmarked = self.bookmarks.bookmark(track.full_path, display_name)
        except BookmarkError as e:
            logger.error(f"[PLAYER] Bookmark failed for {track.display_name}: {e}")
            return

        self._bookmarked.store(bookmarked)
        self.bus.publish(UIEvent.BOOKMARK_CHANGED)

    def _arm(self) -> None:
        """Arm the exhaustion-advance for the track just installed."""
        generation = self._generation.increment()
        self._armed.store(generation)
        threading.Thread(
            target=self._watch_exhaustion,
            args=(generation,),
            name=f"ExhaustionWatcher-{generation}",
            daemon=True,
        ).start()

    def _watch_exhaustion(self, generation: int) -> None:
        while not self._stop.is_set():
            if self._armed.load() != generation:
                return
            if self.engine.block_until_track_ends(timeout=EXHAUSTION_POLL_INTERVAL):
                self._exhausted.put(generation)
                return

    def _start_advance(self) -> None:
        # No current track from the moment an advance is decided until the
        # task installs the next one
        self.slot.clear()
        self._bookmarked.store(False)
        self._armed.store(None)
        self._pending_advances += 1
        self.bus.publish(UIEvent.TRACK_CHANGED)
        threading.Thread(target=self._advance, name="AdvanceTask", daemon=True).start()

    def _settle_advance(self) -> int:
        """Mark one advance task as answered; returns how many are still pending."""
        self._pending_advances = max(self._pending_advances - 1, 0)
        return self._pending_advances

    def _advance(self) -> None:
        """
        Install the next ready track.

        Runs off the control loop; concurrent advances are serialised so
        tracks are installed in the order they are dequeued.
        """
        with self._advance_lock:
            track = self.queue.pop(stop=self._stop)
            if track is None:
                return

            self.engine.stop()
            try:
                self.engine.enqueue(track.data, label=track.info.display_name)
            except EngineError as e:
                logger.error(f"[PLAYER] Engine rejected {track.info.full_path}: {e}")
                if not self._stop.wait(self.retry_delay):
                    self.send(Message.TRY_AGAIN)
                return

            self.slot.store(track.info)
            logger.info(f"[PLAYER] Now playing: {track.info.display_name}")
            self.send(Message.NEW_SONG)

    # ------------------------------------------------------------------ shutdown
    def _shutdown(self) -> None:
        self._stop.set()
        self._armed.store(None)
        self.pipeline.stop()
        self.progress.stop()

        if self.volume_store is not None:
            try:
                self.volume_store.save(self.engine.volume())
            except OSError as e:
                logger.error(f"[PLAYER] Unable to save volume: {e}")

        self.engine.close()
        if self._downloader is not None:
            self._downloader.close()
        self.queue.clear()
