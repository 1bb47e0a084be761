"""
Console front end for lofistream.

ConsoleInput turns single-key command lines read from a text stream into
control messages. StatusPrinter subscribes to the event bus and rewrites the
status display whenever something visible changed.
"""

import logging
import threading
from typing import Dict, Optional, TextIO

from lofistream.app.events import Subscription, UIEvent
from lofistream.app.messages import ChangeVolume, Command, Message
from lofistream.app.player import Player
from lofistream.app.render import render_control_bar, render_status_line

logger = logging.getLogger(__name__)

VOLUME_STEP = 0.1

KEY_BINDINGS: Dict[str, Command] = {
    "n": Message.NEXT,
    "s": Message.NEXT,
    "p": Message.PLAY_PAUSE,
    "+": ChangeVolume(VOLUME_STEP),
    "=": ChangeVolume(VOLUME_STEP),
    "-": ChangeVolume(-VOLUME_STEP),
    "b": Message.BOOKMARK,
    "q": Message.QUIT,
}


def parse_command(line: str) -> Optional[Command]:
    """Map one input line to a command (None for blank or unknown input)."""
    key = line.strip().lower()[:1]
    return KEY_BINDINGS.get(key)


class ConsoleInput:
    """
    Reads commands from a text stream and sends them to the player.

    End of input is treated as quit.
    """

    def __init__(self, player: Player, stream: TextIO):
        self._player = player
        self._stream = stream
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self.run, name="ConsoleInput", daemon=True)
        self._thread.start()

    def run(self) -> None:
        for line in self._stream:
            command = parse_command(line)
            if command is None:
                if line.strip():
                    logger.debug(f"[CONSOLE] Unknown key: {line.strip()!r}")
                continue
            self._player.send(command)
            if command is Message.QUIT:
                return
        logger.debug("[CONSOLE] End of input")
        self._player.send(Message.QUIT)


class StatusPrinter:
    """
    Event bus subscriber that redraws the status display.

    Progress updates only rewrite the middle line in place; every other event
    redraws the status line as well.
    """

    def __init__(self, player: Player, out: TextIO, width: int):
        self._player = player
        self._out = out
        self._width = width
        self._subscription: Optional[Subscription] = None
        self._thread: Optional[threading.Thread] = None
        self._last_status: Optional[str] = None

    def start(self) -> None:
        self._subscription = self._player.subscribe()
        self._out.write(render_control_bar(self._width) + "\n")
        self._out.flush()
        self._thread = threading.Thread(target=self._run, name="StatusPrinter", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
        if self._thread is not None:
            self._thread.join(timeout=1.0)

    def handle(self, event: UIEvent) -> None:
        """Redraw for one event."""
        status = render_status_line(self._width, self._player.get_playback_info())
        if event is not UIEvent.PROGRESS_UPDATE and status != self._last_status:
            self._last_status = status
            self._out.write(f"\r{status}\n")

        middle = self._player.progress.current_line
        if middle is not None:
            self._out.write(f"\r{middle}")
        self._out.flush()

    def _run(self) -> None:
        subscription = self._subscription
        while subscription is not None and not subscription.closed:
            event = subscription.get(timeout=0.5)
            if event is not None:
                self.handle(event)
