"""Container encoding for raw PCM captured from an input device.

Wraps ``soundfile`` so the sounddevice backend can hand the capture session
a complete, playable file instead of bare samples.
"""

import io

import numpy as np
import soundfile as sf

# mime type -> (soundfile format, subtype)
CONTAINER_FORMATS: dict[str, tuple[str, str]] = {
    "audio/wav": ("WAV", "PCM_16"),
    "audio/flac": ("FLAC", "PCM_16"),
    "audio/ogg": ("OGG", "VORBIS"),
}


class AudioEncoder:
    """Encodes 16-bit PCM into one of the containers ``soundfile`` can write.

    Args:
        sample_rate: Audio sample rate in Hz (default: 16 kHz).
        channels: Number of interleaved channels in the PCM input.
    """

    sample_width = 2

    def __init__(self, sample_rate: int = 16000, channels: int = 1) -> None:
        self.sample_rate = sample_rate
        self.channels = channels

    @staticmethod
    def supports(mime_type: str) -> bool:
        """Return True if *mime_type* can be written by the installed libsndfile."""
        container = CONTAINER_FORMATS.get(mime_type)
        if container is None:
            return False
        return container[0] in sf.available_formats()

    def pcm_to_ndarray(self, pcm_data: bytes) -> np.ndarray:
        """Convert interleaved 16-bit PCM bytes to an ``(frames, channels)`` array.

        Raises:
            ValueError: If data length is not aligned to the sample frame size.
        """
        frame_size = self.sample_width * self.channels
        if len(pcm_data) % frame_size != 0:
            raise ValueError(
                f"PCM data length ({len(pcm_data)}) is not aligned to frame size ({frame_size})"
            )
        return np.frombuffer(pcm_data, dtype=np.int16).reshape(-1, self.channels)

    def duration_of(self, pcm_data: bytes) -> float:
        """Return the playback length of *pcm_data* in seconds."""
        return len(pcm_data) / (self.sample_rate * self.sample_width * self.channels)

    def encode(self, pcm_data: bytes, mime_type: str) -> bytes:
        """Encode raw PCM into a complete file of the given container type.

        Raises:
            ValueError: If *mime_type* is not a supported container.
        """
        container = CONTAINER_FORMATS.get(mime_type)
        if container is None:
            raise ValueError(f"Unsupported container: {mime_type}")
        fmt, subtype = container
        buffer = io.BytesIO()
        sf.write(
            buffer,
            self.pcm_to_ndarray(pcm_data),
            self.sample_rate,
            format=fmt,
            subtype=subtype,
        )
        return buffer.getvalue()
