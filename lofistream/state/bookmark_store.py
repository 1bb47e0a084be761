"""
Bookmark storage for lofistream.

Bookmarks live in bookmarks.txt inside the data directory, one per line:

    https://example.com/lofi/2023/05/rainy_morning.mp3
    https://example.com/lofi/2023/05/night_walk.mp3!Night Walk

The file is itself a valid track list body, so bookmarks can be replayed by
prefixing a base line. Bookmarking toggles: an existing entry is removed.
"""

import logging
import os
import threading
from pathlib import Path
from typing import List, Optional, Union

from lofistream.errors import BookmarkError
from lofistream.music_logic.track_list import CUSTOM_NAME_SEPARATOR

logger = logging.getLogger(__name__)

BOOKMARK_FILE = "bookmarks.txt"


def format_entry(origin: str, display_name: Optional[str] = None) -> str:
    if display_name:
        return f"{origin}{CUSTOM_NAME_SEPARATOR}{display_name}"
    return origin


class BookmarkStore:
    """
    Text file of bookmarked tracks with atomic rewrites.
    """

    def __init__(self, data_dir: Union[str, Path]):
        """
        Initialize bookmark store.

        Args:
            data_dir: Directory holding bookmarks.txt (created on first write)
        """
        self.path = Path(data_dir) / BOOKMARK_FILE
        self._lock = threading.Lock()
        logger.debug(f"BookmarkStore initialized with path: {self.path}")

    def entries(self) -> List[str]:
        """
        Read all bookmark entries.

        Raises:
            BookmarkError: If the file exists but cannot be read
        """
        if not self.path.exists():
            return []
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise BookmarkError(f"Unable to read bookmarks from {self.path}: {e}") from e
        return [line.strip() for line in text.splitlines() if line.strip()]

    def is_bookmarked(self, origin: str, display_name: Optional[str] = None) -> bool:
        return format_entry(origin, display_name) in self.entries()

    def bookmark(self, origin: str, display_name: Optional[str] = None) -> bool:
        """
        Toggle the bookmark for a track.

        Args:
            origin: Full path/URL of the track
            display_name: Custom display name, only for custom-named tracks

        Returns:
            New bookmark state (True if the track is now bookmarked)

        Raises:
            BookmarkError: If the bookmark file cannot be read or written
        """
        entry = format_entry(origin, display_name)
        with self._lock:
            entries = self.entries()
            if entry in entries:
                entries = [e for e in entries if e != entry]
                bookmarked = False
            else:
                entries.append(entry)
                bookmarked = True
            self._write(entries)

        logger.info(f"[BOOKMARK] {'Added' if bookmarked else 'Removed'} {entry}")
        return bookmarked

    def _write(self, entries: List[str]) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                f.write("".join(f"{entry}\n" for entry in entries))
            os.replace(tmp, self.path)
        except OSError as e:
            logger.error(f"Failed to save bookmarks: {e}")
            try:
                if tmp.exists():
                    tmp.unlink()
            except OSError:
                pass
            raise BookmarkError(f"Unable to write bookmarks to {self.path}: {e}") from e
