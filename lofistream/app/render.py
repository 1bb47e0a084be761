"""
Text rendering of the player status.

A fixed set of plain functions; each takes the bar width and the values it
needs and returns one line of text.
"""

from typing import Optional, Sequence, Tuple

from lofistream.state.playback_info import PlaybackInfo, PlaybackState

FILL_CHAR = "/"
EMPTY_CHAR = " "

DEFAULT_CONTROLS: Sequence[Tuple[str, str]] = (("[s]", "kip"), ("[p]", "ause"), ("[q]", "uit"))


def format_duration(seconds: Optional[float]) -> str:
    """Format seconds as MM:SS (00:00 when unknown)."""
    total = int(seconds or 0)
    return f"{total // 60:02}:{total % 60:02}"


def _bar(filled: int, width: int) -> str:
    filled = max(0, min(filled, width))
    return "[" + FILL_CHAR * filled + EMPTY_CHAR * (width - filled) + "]"


def render_progress_bar(width: int, position: float, duration: Optional[float]) -> str:
    """
    Render the progress line, e.g. ' [////      ] 01:02/03:00 '.

    A track with unknown duration renders an empty bar.
    """
    bar_width = max(width - 16, 0)
    filled = 0
    if duration:
        filled = round(min(position / duration, 1.0) * bar_width)
    return f" {_bar(filled, bar_width)} {format_duration(position)}/{format_duration(duration)} "


def render_volume_bar(width: int, volume: float) -> str:
    """Render the volume line, e.g. ' volume: [//////    ]  60% '."""
    bar_width = max(width - 17, 0)
    filled = round(volume * bar_width)
    percentage = f"{round(volume * 100)}%"
    return f" volume: {_bar(filled, bar_width)} {percentage:>4} "


def render_status_line(width: int, info: PlaybackInfo) -> str:
    """
    Render the top line: state, bookmark marker and track name.

    Text wider than `width` is truncated with an ellipsis; shorter text is
    padded to exactly `width`.
    """
    status = info.state.value
    if info.state is PlaybackState.LOADING or info.track is None:
        text = status
    else:
        bookmark = "*" if info.is_bookmarked else ""
        text = f"{status} {bookmark}{info.track.display_name}"

    if len(text) > width:
        return text[: max(width - 3, 0)] + "..."
    return text.ljust(width)


def render_control_bar(width: int, controls: Sequence[Tuple[str, str]] = DEFAULT_CONTROLS) -> str:
    """Render the key hint line spread across `width`."""
    total = sum(len(key) + len(desc) for key, desc in controls)
    spacing = (width - total) // (len(controls) - 1) if len(controls) > 1 else 0
    line = (" " * max(spacing, 1)).join(key + desc for key, desc in controls)
    return line.ljust(width)
