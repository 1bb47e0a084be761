"""
Persistent volume for lofistream.

The volume is kept across runs as an integer percentage in volume.txt inside
the config directory. Writes are atomic (temporary file + rename).
"""

import logging
import os
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

VOLUME_FILE = "volume.txt"
DEFAULT_PERCENT = 100


class PersistentVolume:
    """Volume level stored as a percentage in [0, 100]."""

    def __init__(self, path: Union[str, Path], percent: int = DEFAULT_PERCENT):
        self.path = Path(path)
        self.percent = max(0, min(100, int(percent)))

    @classmethod
    def load(cls, config_dir: Union[str, Path]) -> "PersistentVolume":
        """
        Load the saved volume.

        A missing or unreadable file yields the default (100%).
        """
        path = Path(config_dir) / VOLUME_FILE
        if not path.exists():
            logger.debug(f"No volume file found at {path}")
            return cls(path)

        try:
            percent = int(path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load volume from {path}: {e}")
            return cls(path)

        return cls(path, percent)

    def as_float(self) -> float:
        """Volume as a gain in [0.0, 1.0]."""
        return self.percent / 100.0

    def save(self, volume: float) -> None:
        """
        Save a gain in [0.0, 1.0] as a rounded percentage.

        Raises:
            OSError: If the file cannot be written
        """
        self.percent = max(0, min(100, round(volume * 100)))
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp.write_text(f"{self.percent}\n", encoding="utf-8")
            os.replace(tmp, self.path)
            logger.debug(f"Volume {self.percent}% saved to {self.path}")
        except OSError as e:
            logger.error(f"Failed to save volume: {e}")
            if tmp.exists():
                tmp.unlink()
            raise
