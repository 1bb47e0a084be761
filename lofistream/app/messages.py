"""
Control protocol for lofistream.

A closed set of commands delivered to the control loop over an ordered,
multi-producer / single-consumer queue.
"""

import enum
from dataclasses import dataclass
from typing import Union


class Message(enum.Enum):
    """Parameterless control commands."""
    INIT = "init"
    NEXT = "next"
    TRY_AGAIN = "try_again"
    PLAY = "play"
    PAUSE = "pause"
    PLAY_PAUSE = "play_pause"
    NEW_SONG = "new_song"
    BOOKMARK = "bookmark"
    QUIT = "quit"


@dataclass(frozen=True)
class ChangeVolume:
    """Adjust the volume by `delta` (result is clamped to 0.0-1.0)."""
    delta: float


Command = Union[Message, ChangeVolume]

# Commands that (re)start the advance to the next track
ADVANCE_MESSAGES = frozenset({Message.INIT, Message.NEXT, Message.TRY_AGAIN})
