"""
Main entry point for lofistream.

Parses command-line flags on top of the environment configuration, wires
the player and the console front end, and runs until quit or a signal.
"""

import argparse
import logging
import logging.handlers
import signal
import sys
from pathlib import Path
from typing import List, Optional

from lofistream import __version__
from lofistream.app.console import ConsoleInput, StatusPrinter
from lofistream.app.messages import Message
from lofistream.app.player import Player
from lofistream.config import PlayerConfig
from lofistream.errors import ConfigError, EngineError, TrackListError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lofistream", description="Stream lofi tracks from a track list.")
    parser.add_argument("track_list", nargs="?", type=Path, help="Track list file (overrides LOFISTREAM_TRACK_LIST)")
    parser.add_argument("--track-list", dest="track_list_flag", type=Path, help="Track list file")
    parser.add_argument("--buffer-size", type=int, help="Number of tracks to prefetch")
    parser.add_argument("--fetch-workers", type=int, help="Concurrent fetch workers")
    parser.add_argument("--paused", action="store_true", default=None, help="Start paused")
    parser.add_argument("--output", choices=("sounddevice", "wav", "null"), help="Audio output")
    parser.add_argument("--width", type=int, help="Width multiplier of the status bars")
    parser.add_argument("--debug", action="store_true", default=None, help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def apply_args(config: PlayerConfig, args: argparse.Namespace) -> PlayerConfig:
    """
    Override configuration values with flags that were given.

    Raises:
        ConfigError: If an overridden value is invalid
    """
    track_list = args.track_list_flag or args.track_list
    if track_list is not None:
        config.track_list = track_list
    if args.buffer_size is not None:
        config.buffer_size = args.buffer_size
    if args.fetch_workers is not None:
        config.fetch_workers = args.fetch_workers
    if args.paused:
        config.paused = True
    if args.output is not None:
        config.output = args.output
    if args.width is not None:
        config.width = args.width
    if args.debug:
        config.debug = True
        config.log_level = "DEBUG"
    config.validate()
    return config


def setup_logging(config: PlayerConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )

    if config.log_file is None:
        return

    try:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.WatchedFileHandler(str(config.log_file), mode="a")
    except OSError as e:
        logger.warning(f"Unable to open log file {config.log_file}: {e}")
        return

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    original_emit = handler.emit

    def safe_emit(record):
        try:
            original_emit(record)
        except OSError:
            # Log file failures degrade silently
            pass

    handler.emit = safe_emit
    logging.getLogger().addHandler(handler)


def main(args: Optional[List[str]] = None) -> None:
    """
    Main entry point for lofistream.

    Exits with status 1 when configuration, the track list or the audio
    output cannot be set up.
    """
    parsed = build_parser().parse_args(args)

    try:
        config = apply_args(PlayerConfig.load_config(), parsed)
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    setup_logging(config)
    logger.info(f"lofistream {__version__} starting")

    try:
        player = Player.build(config)
    except (ConfigError, TrackListError, EngineError) as e:
        logger.error(f"Failed to start: {e}")
        sys.exit(1)

    def signal_handler(sig, frame):
        signal_name = "SIGTERM" if sig == signal.SIGTERM else "SIGINT"
        logger.info(f"[PLAYER] Received {signal_name} - quitting")
        player.send(Message.QUIT)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    printer = StatusPrinter(player, sys.stdout, config.bar_width)
    printer.start()
    player.start()
    player.send(Message.INIT)
    ConsoleInput(player, sys.stdin).start()

    try:
        while not player.wait(timeout=0.1):
            pass
    finally:
        printer.stop()
        sys.stdout.write("\n")
        logger.info("lofistream stopped")


if __name__ == "__main__":
    main()
