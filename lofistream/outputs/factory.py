from typing import TYPE_CHECKING

from lofistream.errors import ConfigError
from .base_sink import BaseSink
from .null_sink import NullSink
from .file_sink import FileSink

if TYPE_CHECKING:
    from lofistream.config import PlayerConfig


def create_output_sink(config: "PlayerConfig") -> BaseSink:
    """
    Create an output sink based on configuration.

    Modes (config.output):
        "sounddevice": default audio device (real playback)
        "wav": write PCM to config.wav_path
        "null": discard audio, paced in real time so tracks still end naturally

    Returns:
        BaseSink instance

    Raises:
        EngineError: If the audio device cannot be opened
        ConfigError: If the mode is unknown
    """
    mode = config.output.lower()

    if mode == "sounddevice":
        from .sounddevice_sink import SoundDeviceSink
        return SoundDeviceSink(device=config.output_device)

    if mode == "wav":
        return FileSink(config.wav_path)

    if mode == "null":
        return NullSink(realtime=True)

    raise ConfigError(f"Unknown output mode: {config.output!r} (expected sounddevice, wav or null)")
