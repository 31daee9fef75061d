"""
Capture device mechanisms.

A ``CaptureBackend`` acquires an input stream, records it into a container
format and reports data and stop events through callbacks. Callbacks are
always delivered on the asyncio event loop thread that acquired the stream,
so the capture session never sees concurrent events.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from voxnotes.core.exceptions import DeviceUnavailableError
from voxnotes.services.audio.encoder import AudioEncoder

logger = logging.getLogger(__name__)

DataCallback = Callable[[bytes], None]
StopCallback = Callable[[], None]
ErrorCallback = Callable[[Exception], None]


class CaptureBackend(ABC):
    """Interface that every capture mechanism must implement."""

    @abstractmethod
    async def acquire_stream(self) -> Any:
        """Open the input device and return an opaque stream handle.

        Raises:
            DeviceUnavailableError: Permission denied or no input device.
        """

    @abstractmethod
    def is_type_supported(self, mime_type: str) -> bool:
        """Return True if recordings can be produced in *mime_type*."""

    @abstractmethod
    def start_recording(
        self,
        stream: Any,
        mime_type: str,
        on_data: DataCallback,
        on_stop: StopCallback,
        on_error: ErrorCallback,
    ) -> None:
        """Begin recording *stream*; data fragments go to *on_data*.

        *on_stop* fires exactly once after the last fragment of a recording
        that was ended with ``stop_recording``.
        """

    @abstractmethod
    def stop_recording(self) -> None:
        """Ask the mechanism to flush remaining data and confirm the stop."""

    @abstractmethod
    def release_stream(self, stream: Any) -> None:
        """Close the device stream so the input device is no longer held."""


def list_input_devices(sd) -> list[dict]:
    """Return all devices with at least one input channel."""
    return [d for d in sd.query_devices() if d.get("max_input_channels", 0) > 0]


def select_input_device(candidates: list[dict], prefer_name: str | None = None) -> dict | None:
    """Pick the first device whose name contains *prefer_name*.

    Returns None (system default input) when no name is preferred or none
    matches.
    """
    if not candidates:
        raise DeviceUnavailableError("No input devices found.")
    if prefer_name:
        preferred = [d for d in candidates if prefer_name.lower() in d.get("name", "").lower()]
        if preferred:
            return preferred[0]
        logger.warning("Input device %r not found; using system default", prefer_name)
    return None


class SoundDeviceBackend(CaptureBackend):
    """Captures microphone audio with ``sounddevice`` (PortAudio).

    PCM is buffered while recording and encoded into a single container
    fragment when the recording stops, followed by the stop confirmation.

    Args:
        sample_rate: Capture sample rate in Hz.
        channels: Number of input channels.
        device_name: Optional input device name substring.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        device_name: str | None = None,
    ) -> None:
        self._encoder = AudioEncoder(sample_rate=sample_rate, channels=channels)
        self._device_name = device_name or None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stream: Any = None
        self._pcm = bytearray()
        self._mime_type: str | None = None
        self._recording = False
        self._stop_task: asyncio.Task | None = None
        self._on_data: DataCallback | None = None
        self._on_stop: StopCallback | None = None
        self._on_error: ErrorCallback | None = None

    @staticmethod
    def _import_sounddevice():
        try:
            import sounddevice as sd
        except Exception as exc:  # pragma: no cover - environment-dependent
            raise DeviceUnavailableError("sounddevice (PortAudio) is required for recording.") from exc
        return sd

    async def acquire_stream(self) -> Any:
        sd = self._import_sounddevice()
        self._loop = asyncio.get_running_loop()
        try:
            return await asyncio.to_thread(self._open_stream, sd)
        except DeviceUnavailableError:
            raise
        except Exception as exc:
            raise DeviceUnavailableError(f"Could not open input device: {exc}") from exc

    def _open_stream(self, sd) -> Any:
        device = select_input_device(list_input_devices(sd), self._device_name)
        return sd.InputStream(
            samplerate=self._encoder.sample_rate,
            channels=self._encoder.channels,
            dtype="int16",
            device=device.get("index") if device else None,
            callback=self._callback,
            finished_callback=self._finished,
        )

    def is_type_supported(self, mime_type: str) -> bool:
        return AudioEncoder.supports(mime_type)

    def start_recording(self, stream, mime_type, on_data, on_stop, on_error) -> None:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._stream = stream
        self._mime_type = mime_type
        self._on_data, self._on_stop, self._on_error = on_data, on_stop, on_error
        self._pcm = bytearray()
        self._recording = True
        try:
            stream.start()
        except Exception as exc:
            self._recording = False
            raise DeviceUnavailableError(f"Could not start input stream: {exc}") from exc

    def stop_recording(self) -> None:
        if not self._recording:
            return
        self._recording = False
        # PortAudio drains pending buffers on stop; keep that off the loop thread
        self._stop_task = self._loop.create_task(asyncio.to_thread(self._stop_stream, self._stream))
        self._stop_task.add_done_callback(lambda _task: self._finish())

    @staticmethod
    def _stop_stream(stream: Any) -> None:
        try:
            stream.stop()
        except Exception as exc:
            logger.warning("Input stream did not stop cleanly: %s", exc)

    def release_stream(self, stream: Any) -> None:
        if self._stop_task is not None and not self._stop_task.done():
            # Close only once the pending stop has drained the stream
            self._stop_task.add_done_callback(lambda _task: stream.close(ignore_errors=True))
        else:
            stream.close(ignore_errors=True)
        if stream is self._stream:
            self._stream = None

    # -- audio thread -----------------------------------------------------

    def _callback(self, indata, _frames, _time, status) -> None:
        if status:
            logger.debug("Input stream status: %s", status)
        if self._recording and self._loop is not None:
            self._loop.call_soon_threadsafe(self._pcm.extend, indata.tobytes())

    def _finished(self) -> None:
        if self._recording and self._loop is not None:
            # Stream ended without stop_recording: device lost
            self._recording = False
            self._loop.call_soon_threadsafe(
                self._on_error, DeviceUnavailableError("Input stream stopped unexpectedly")
            )

    # -- event loop -------------------------------------------------------

    def _finish(self) -> None:
        try:
            data = self._encoder.encode(bytes(self._pcm), self._mime_type)
        except Exception as exc:
            logger.exception("Failed to encode %s recording", self._mime_type)
            self._on_error(exc)
            return
        finally:
            self._pcm = bytearray()
        self._on_data(data)
        self._on_stop()


def create_backend(provider: str, **kwargs) -> CaptureBackend:
    """Factory function to create a capture backend instance.

    Args:
        provider: Backend name ("sounddevice").
        **kwargs: Backend-specific configuration.

    Raises:
        ValueError: If provider is unknown.
    """
    if provider == "sounddevice":
        return SoundDeviceBackend(**kwargs)
    raise ValueError(f"Unknown capture backend: {provider}")
