"""
Configuration management for lofistream.

Reads configuration from an env file and environment variables with sensible
defaults. Command-line flags are applied on top by the entry point.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from lofistream.errors import ConfigError

logger = logging.getLogger(__name__)

# Default env file location
DEFAULT_ENV_FILE = Path("~/.config/lofistream/lofistream.env")

# Accepted spellings for boolean variables
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _load_env_file() -> None:
    """Load environment variables from the env file if it exists."""
    env_file = os.getenv("LOFISTREAM_ENV_FILE", str(DEFAULT_ENV_FILE))
    env_path = Path(env_file).expanduser()

    if env_path.exists():
        load_dotenv(env_path, override=False)  # Don't override existing env vars
        logger.debug(f"Loaded env file {env_path}")


def _env_int(name: str, default: int, minimum: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"Invalid {name}: {raw} (must be an integer)")
    if minimum is not None and value < minimum:
        raise ConfigError(f"Invalid {name}: {value} (must be >= {minimum})")
    return value


def _env_float(name: str, default: float, minimum: Optional[float] = None) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"Invalid {name}: {raw} (must be a number)")
    if minimum is not None and value < minimum:
        raise ConfigError(f"Invalid {name}: {value} (must be >= {minimum})")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(f"Invalid {name}: {raw} (must be true/false)")


def _env_path(name: str, default: Optional[str]) -> Optional[Path]:
    raw = os.getenv(name, default or "")
    return Path(raw).expanduser() if raw else None


@dataclass
class PlayerConfig:
    """Player configuration loaded from the env file and environment variables."""

    # Prefetch
    buffer_size: int = 5
    fetch_workers: int = 1
    fetch_timeout: float = 3.0
    retry_delay: float = 3.0

    # Playback
    paused: bool = False
    volume: Optional[float] = None  # None = use persisted volume
    output: str = "sounddevice"
    output_device: Optional[str] = None
    wav_path: str = "/tmp/lofistream_output.wav"

    # Sources and persistence
    track_list: Optional[Path] = None
    config_dir: Path = field(default_factory=lambda: Path("~/.config/lofistream").expanduser())
    data_dir: Path = field(default_factory=lambda: Path("~/.local/share/lofistream").expanduser())

    # Front end
    progress_interval: float = 0.1
    width: int = 3

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    debug: bool = False

    def __post_init__(self):
        self.validate()

    @property
    def bar_width(self) -> int:
        """Width of the progress/volume bars in characters."""
        return 21 + min(self.width, 32) * 2

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ConfigError: If a value is out of range
        """
        if self.buffer_size < 1:
            raise ConfigError(f"buffer_size must be a positive integer, got {self.buffer_size}")
        if self.fetch_workers < 1:
            raise ConfigError(f"fetch_workers must be >= 1, got {self.fetch_workers}")
        if self.fetch_timeout <= 0:
            raise ConfigError(f"fetch_timeout must be > 0, got {self.fetch_timeout}")
        if self.retry_delay < 0:
            raise ConfigError(f"retry_delay must be >= 0, got {self.retry_delay}")
        if self.progress_interval <= 0 or self.progress_interval >= 1.0:
            raise ConfigError(f"progress_interval must be sub-second, got {self.progress_interval}")
        if self.volume is not None and not 0.0 <= self.volume <= 1.0:
            raise ConfigError(f"volume must be within 0.0-1.0, got {self.volume}")
        if self.width < 0:
            raise ConfigError(f"width must be >= 0, got {self.width}")

    @classmethod
    def load_config(cls) -> "PlayerConfig":
        """
        Load configuration from environment variables.

        Returns:
            PlayerConfig instance with loaded values

        Raises:
            ConfigError: If configuration is invalid
        """
        # Load env file first (if it exists)
        _load_env_file()

        volume_raw = os.getenv("LOFISTREAM_VOLUME")
        volume = _env_float("LOFISTREAM_VOLUME", 0.0) if volume_raw else None

        config = cls(
            buffer_size=_env_int("LOFISTREAM_BUFFER_SIZE", 5, minimum=1),
            fetch_workers=_env_int("LOFISTREAM_FETCH_WORKERS", 1, minimum=1),
            fetch_timeout=_env_float("LOFISTREAM_FETCH_TIMEOUT", 3.0),
            retry_delay=_env_float("LOFISTREAM_RETRY_DELAY", 3.0, minimum=0.0),
            paused=_env_bool("LOFISTREAM_PAUSED", False),
            volume=volume,
            output=os.getenv("LOFISTREAM_OUTPUT", "sounddevice"),
            output_device=os.getenv("LOFISTREAM_OUTPUT_DEVICE") or None,
            wav_path=os.getenv("LOFISTREAM_WAV_PATH", "/tmp/lofistream_output.wav"),
            track_list=_env_path("LOFISTREAM_TRACK_LIST", None),
            config_dir=_env_path("LOFISTREAM_CONFIG_DIR", "~/.config/lofistream"),
            data_dir=_env_path("LOFISTREAM_DATA_DIR", "~/.local/share/lofistream"),
            progress_interval=_env_float("LOFISTREAM_PROGRESS_INTERVAL", 0.1),
            width=_env_int("LOFISTREAM_WIDTH", 3, minimum=0),
            log_level=os.getenv("LOFISTREAM_LOG_LEVEL", "INFO").upper(),
            log_file=_env_path("LOFISTREAM_LOG_FILE", None),
            debug=_env_bool("LOFISTREAM_DEBUG", False),
        )
        return config
