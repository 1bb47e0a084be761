"""
Event protocol for lofistream.

Events are fanned out to any number of observers. Delivery is best-effort:
publishing never blocks and never raises, a subscriber whose queue is full
misses the event, and a closed subscription is dropped.
"""

import enum
import logging
import queue
import threading
from typing import List, Optional

logger = logging.getLogger(__name__)


class UIEvent(enum.Enum):
    """Notifications published by the player."""
    REDRAW = "redraw"
    VOLUME_CHANGED = "volume_changed"
    TRACK_CHANGED = "track_changed"
    PLAYBACK_STATE_CHANGED = "playback_state_changed"
    PROGRESS_UPDATE = "progress_update"
    BOOKMARK_CHANGED = "bookmark_changed"


class Subscription:
    """
    One observer's view of the event stream.

    Attributes:
        maxsize: Capacity of the subscriber queue
    """

    def __init__(self, bus: "EventBus", maxsize: int = 100):
        self.maxsize = maxsize
        self._queue: "queue.Queue[UIEvent]" = queue.Queue(maxsize=maxsize)
        self._bus = bus
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, timeout: Optional[float] = None) -> Optional[UIEvent]:
        """
        Wait for the next event.

        Returns:
            The next event, or None on timeout
        """
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[UIEvent]:
        """Return every event currently queued without waiting."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def close(self) -> None:
        """Stop receiving events."""
        self._closed = True
        self._bus.unsubscribe(self)

    def _offer(self, event: UIEvent) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
            return True
        except queue.Full:
            self.dropped += 1
            return False


class EventBus:
    """Best-effort fan-out of UIEvents."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: List[Subscription] = []

    def subscribe(self, maxsize: int = 100) -> Subscription:
        subscription = Subscription(self, maxsize=maxsize)
        with self._lock:
            self._subscribers = self._subscribers + [subscription]
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers = [s for s in self._subscribers if s is not subscription]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: UIEvent) -> int:
        """
        Offer an event to every subscriber.

        Returns:
            Number of subscribers that accepted the event
        """
        delivered = 0
        for subscription in self._subscribers:
            if subscription.closed:
                self.unsubscribe(subscription)
                continue
            if subscription._offer(event):
                delivered += 1
            else:
                logger.debug(f"[EVENTS] Dropped {event.name} for a full subscriber")
        return delivered
