"""
Prefetch pipeline for lofistream.

Runs the fetch workers that keep the PrefetchQueue full. Each worker owns one
playback slot at a time: it reserves a ticket, asks the track source for
candidates until one fetches cleanly, then pushes the result under that
ticket. A failed attempt is logged and discarded, and the worker waits a
fixed delay before requesting a fresh candidate. Workers retry forever; the
stream is expected to be long-running.
"""

import logging
import threading
from typing import Callable, List, Optional, Protocol

from lofistream.broadcast_core.prefetch_queue import PrefetchQueue
from lofistream.broadcast_core.track import ReadyTrack, TrackCandidate
from lofistream.errors import FetchError

logger = logging.getLogger(__name__)


class TrackSource(Protocol):
    """Supplies candidates; must tolerate concurrent calls."""

    def next_candidate(self) -> TrackCandidate: ...


class TrackFetcher(Protocol):
    """Turns a candidate into a ReadyTrack or raises FetchError."""

    def fetch(self, candidate: TrackCandidate) -> ReadyTrack: ...


class PrefetchPipeline:
    """
    Pool of fetch worker threads feeding a PrefetchQueue.

    The pipeline never talks to the control loop; the queue is the only
    coupling between them.
    """

    def __init__(
        self,
        source: TrackSource,
        fetcher: TrackFetcher,
        queue: PrefetchQueue,
        workers: int = 1,
        retry_delay: float = 3.0,
        stop_event: Optional[threading.Event] = None,
        on_discard: Optional[Callable[[TrackCandidate, FetchError], None]] = None,
    ):
        """
        Initialize the pipeline (workers are started by start()).

        Args:
            source: Track source handing out candidates
            fetcher: Downloader used for each attempt
            queue: Destination queue
            workers: Number of concurrent fetch workers (>= 1)
            retry_delay: Seconds to wait after a failed attempt
            stop_event: Shared stop event (a private one is created if omitted)
            on_discard: Optional callback invoked for every discarded attempt
        """
        if workers < 1:
            raise ValueError(f"PrefetchPipeline needs at least one worker, got {workers}")

        self._source = source
        self._fetcher = fetcher
        self._queue = queue
        self._workers = workers
        self._retry_delay = retry_delay
        self._stop = stop_event or threading.Event()
        self._on_discard = on_discard
        self._threads: List[threading.Thread] = []
        self._source_lock = threading.Lock()

        self._lock = threading.Lock()
        self._fetched = 0
        self._discarded = 0

    @property
    def fetched_count(self) -> int:
        return self._fetched

    @property
    def discarded_count(self) -> int:
        return self._discarded

    def start(self) -> None:
        """Start the worker threads. Calling start() twice is a no-op."""
        if self._threads:
            logger.warning("[FETCH] Pipeline already started, ignoring duplicate start()")
            return
        for index in range(self._workers):
            thread = threading.Thread(
                target=self._worker_loop,
                name=f"FetchWorker-{index}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        logger.info(f"[FETCH] Started {self._workers} fetch worker(s), buffer capacity {self._queue.capacity}")

    def stop(self, timeout: float = 0.5) -> None:
        """
        Signal workers to stop and give them a moment to exit.

        In-flight downloads are not awaited: the worker threads are daemons and
        are abandoned if they are still inside a network call.
        """
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout=timeout)
        alive = [t.name for t in self._threads if t.is_alive()]
        if alive:
            logger.debug(f"[FETCH] Abandoning busy workers: {', '.join(alive)}")

    def is_running(self) -> bool:
        return bool(self._threads) and not self._stop.is_set()

    def _next_candidate(self) -> TrackCandidate:
        # Serialise access so sources that are not thread-safe never hand out a candidate twice
        with self._source_lock:
            return self._source.next_candidate()

    def _worker_loop(self) -> None:
        while not self._stop.is_set():
            # Ticket and first candidate are taken together so playback order follows request order
            with self._source_lock:
                ticket = self._queue.reserve()
                candidate = self._source.next_candidate()
            track = self._fetch_until_ready(candidate)
            if track is None:
                return
            if not self._queue.push(track, ticket=ticket, stop=self._stop):
                return

    def _fetch_until_ready(self, candidate: TrackCandidate) -> Optional[ReadyTrack]:
        """Fetch candidates until one succeeds; None once stop is requested."""
        while not self._stop.is_set():
            try:
                track = self._fetcher.fetch(candidate)
            except FetchError as e:
                with self._lock:
                    self._discarded += 1
                logger.warning(f"[FETCH] Discarded {candidate.identifier}: {e.reason}; retrying in {self._retry_delay}s")
                if self._on_discard is not None:
                    self._on_discard(candidate, e)
                if self._stop.wait(self._retry_delay):
                    return None
                candidate = self._next_candidate()
                continue

            with self._lock:
                self._fetched += 1
            return track
        return None
