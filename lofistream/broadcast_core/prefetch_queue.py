"""
Prefetch Queue for lofistream.

Bounded FIFO of ReadyTracks sitting between the fetch workers and the
control loop. It is the only backpressure mechanism in the player: a full
queue suspends further pushes, an empty queue suspends pops.

Playback order is slot-request order. A fetch worker reserves a ticket before
it asks the track source for a candidate and keeps that ticket across
retries, so a slow or failing fetch never lets a later track overtake it.
"""

import logging
import threading
from collections import deque
from typing import Optional

from lofistream.broadcast_core.track import ReadyTrack

logger = logging.getLogger(__name__)


class PrefetchQueue:
    """
    Thread-safe bounded FIFO with ticketed insertion.

    Invariant: len(queue) <= capacity at all times.
    """

    def __init__(self, capacity: int):
        """
        Initialize the prefetch queue.

        Args:
            capacity: Maximum number of ready tracks held (must be >= 1)

        Raises:
            ValueError: If capacity < 1
        """
        if capacity < 1:
            raise ValueError(f"PrefetchQueue capacity must be >= 1, got {capacity}")

        self._capacity = capacity
        self._queue: deque[ReadyTrack] = deque()
        self._lock = threading.Lock()
        self._not_full = threading.Condition(self._lock)
        self._not_empty = threading.Condition(self._lock)

        # Next ticket to hand out / next ticket allowed to push
        self._issued = 0
        self._next_ticket = 0

        self._total_pushed = 0
        self._total_popped = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        # Non-blocking snapshot; deque len is atomic
        return len(self._queue)

    def reserve(self) -> int:
        """
        Reserve the next playback slot.

        Returns:
            Ticket to pass to push(); tickets are pushed strictly in order
        """
        with self._lock:
            ticket = self._issued
            self._issued += 1
            return ticket

    def push(
        self,
        track: ReadyTrack,
        ticket: Optional[int] = None,
        stop: Optional[threading.Event] = None,
        poll_interval: float = 0.1,
    ) -> bool:
        """
        Append a ready track, suspending while the queue is full.

        With a ticket, the push also waits until every earlier ticket has
        been pushed. Without one, a ticket is reserved on the spot.

        Args:
            track: Track to append
            ticket: Slot ticket obtained from reserve()
            stop: Optional event that aborts the wait when set
            poll_interval: How often the stop event is re-checked while waiting

        Returns:
            True if the track was queued, False if stop was set first
        """
        if ticket is None:
            ticket = self.reserve()

        with self._lock:
            while len(self._queue) >= self._capacity or ticket != self._next_ticket:
                if stop is not None and stop.is_set():
                    logger.debug(f"[QUEUE] Push aborted by stop (ticket={ticket})")
                    return False
                self._not_full.wait(timeout=poll_interval)

            self._queue.append(track)
            self._next_ticket += 1
            self._total_pushed += 1
            logger.debug(
                f"[QUEUE] Pushed ticket={ticket} {track.info.display_name} "
                f"({len(self._queue)}/{self._capacity})"
            )
            self._not_empty.notify()
            # Wake the holder of the next ticket as well as anyone waiting for room
            self._not_full.notify_all()
            return True

    def pop(
        self,
        stop: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
        poll_interval: float = 0.1,
    ) -> Optional[ReadyTrack]:
        """
        Remove and return the oldest ready track, suspending while empty.

        Args:
            stop: Optional event that aborts the wait when set
            timeout: Maximum seconds to wait (None waits indefinitely)
            poll_interval: How often the stop event is re-checked while waiting

        Returns:
            The oldest ReadyTrack, or None on stop or timeout
        """
        remaining = timeout
        with self._lock:
            while not self._queue:
                if stop is not None and stop.is_set():
                    return None
                if remaining is not None and remaining <= 0:
                    return None
                wait_for = poll_interval if remaining is None else min(poll_interval, remaining)
                self._not_empty.wait(timeout=wait_for)
                if remaining is not None:
                    remaining -= wait_for

            track = self._queue.popleft()
            self._total_popped += 1
            logger.debug(f"[QUEUE] Popped {track.info.display_name} ({len(self._queue)}/{self._capacity})")
            self._not_full.notify_all()
            return track

    def clear(self) -> None:
        """Drop every queued track, keeping ticket order intact."""
        with self._lock:
            self._queue.clear()
            self._not_full.notify_all()
        logger.debug("[QUEUE] Cleared")

    def stats(self) -> dict:
        """Snapshot of queue counters for debugging."""
        with self._lock:
            return {
                "capacity": self._capacity,
                "count": len(self._queue),
                "total_pushed": self._total_pushed,
                "total_popped": self._total_popped,
                "tickets_issued": self._issued,
            }
