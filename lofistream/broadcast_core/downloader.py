"""
Track downloader for lofistream.

Single responsibility: turn a TrackCandidate into a ReadyTrack, or raise
FetchError. Remote tracks are fetched with httpx under a fixed per-attempt
timeout; file:// and plain local paths are read from disk. Payloads are
validated with ffprobe, which also supplies the duration.
"""

import json
import logging
import subprocess
import time
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote, urljoin, urlparse

import httpx

from lofistream import __version__
from lofistream.broadcast_core.track import ReadyTrack, TrackCandidate, TrackInfo
from lofistream.errors import FetchError

logger = logging.getLogger(__name__)

USER_AGENT = f"lofistream/{__version__}"

# Anything smaller cannot hold a single decodable audio frame
MIN_PAYLOAD_BYTES = 128


class InvalidPayload(Exception):
    """Raised by a prober when the payload is not decodable audio."""


def probe_duration(data: bytes, timeout: float = 5.0) -> Optional[float]:
    """
    Validate an encoded payload with ffprobe and return its duration.

    Args:
        data: Encoded audio bytes
        timeout: Seconds before ffprobe is abandoned

    Returns:
        Duration in seconds, or None if ffprobe is unavailable or reports none

    Raises:
        InvalidPayload: If ffprobe rejects the payload
    """
    cmd = [
        "ffprobe",
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "json",
        "-i", "pipe:0",
    ]
    try:
        result = subprocess.run(cmd, input=data, capture_output=True, timeout=timeout)
    except FileNotFoundError:
        logger.debug("[FETCH] ffprobe not installed, skipping payload validation")
        return None
    except subprocess.TimeoutExpired as e:
        raise InvalidPayload(f"ffprobe timed out after {timeout}s") from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise InvalidPayload(stderr or f"ffprobe exited with {result.returncode}")

    try:
        info = json.loads(result.stdout or b"{}")
        duration = info.get("format", {}).get("duration")
        return float(duration) if duration else None
    except (json.JSONDecodeError, ValueError, TypeError):
        return None


class Downloader:
    """
    Fetches and validates track payloads.

    Thread-safe: the underlying httpx.Client may be shared by several
    fetch workers.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 3.0,
        client: Optional[httpx.Client] = None,
        prober: Callable[[bytes], Optional[float]] = probe_duration,
    ):
        """
        Initialize the downloader.

        Args:
            base_url: Base that relative track identifiers are resolved against
            timeout: Per-attempt timeout in seconds
            client: Optional preconfigured httpx client (tests pass a MockTransport client)
            prober: Callable validating a payload and returning its duration
        """
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout
        self._prober = prober
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            headers={"user-agent": USER_AGENT},
        )

        # Suppress httpx INFO level logging (one line per request otherwise)
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    def resolve(self, identifier: str) -> str:
        """Resolve a track identifier to its full origin."""
        if urlparse(identifier).scheme in ("http", "https", "file"):
            return identifier
        if Path(identifier).is_absolute():
            return identifier
        return urljoin(self.base_url, identifier)

    def fetch(self, candidate: TrackCandidate) -> ReadyTrack:
        """
        Retrieve and validate a candidate.

        Args:
            candidate: Track to fetch

        Returns:
            ReadyTrack with probed duration

        Raises:
            FetchError: On network error, timeout, HTTP error status or invalid payload
        """
        full_path = self.resolve(candidate.identifier)
        data = self._read(candidate.identifier, full_path)

        if len(data) < MIN_PAYLOAD_BYTES:
            raise FetchError(candidate.identifier, f"payload too small ({len(data)} bytes)")

        try:
            duration = self._prober(data)
        except InvalidPayload as e:
            raise FetchError(candidate.identifier, f"invalid payload: {e}") from e

        info = TrackInfo.build(candidate, full_path=full_path, duration=duration)
        logger.debug(f"[FETCH] Fetched {info.display_name} ({len(data)} bytes, duration={duration})")
        return ReadyTrack(info=info, data=data)

    def _read(self, identifier: str, full_path: str) -> bytes:
        parsed = urlparse(full_path)
        if parsed.scheme in ("http", "https"):
            return self._download(identifier, full_path)

        local = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(full_path)
        try:
            return local.read_bytes()
        except OSError as e:
            raise FetchError(identifier, f"cannot read {local}: {e.strerror or e}") from e

    def _download(self, identifier: str, url: str) -> bytes:
        """
        Stream the body under one deadline for the whole transfer.

        The httpx timeout alone bounds each read, not the transfer.
        """
        deadline = time.monotonic() + self.timeout
        try:
            with self._client.stream("GET", url, timeout=self.timeout) as response:
                response.raise_for_status()
                chunks = []
                for chunk in response.iter_bytes():
                    if time.monotonic() > deadline:
                        raise FetchError(identifier, f"timed out after {self.timeout}s")
                    chunks.append(chunk)
                return b"".join(chunks)
        except httpx.TimeoutException as e:
            raise FetchError(identifier, f"timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise FetchError(identifier, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FetchError(identifier, f"network error: {e}") from e

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
