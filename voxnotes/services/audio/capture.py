"""Audio capture session: live input stream -> one finalized recording.

States: idle -> acquiring -> recording -> finalizing -> idle, with
acquiring/recording -> error -> idle when the device fails.

Usage::

    session = AudioCaptureSession(backend, on_complete=coordinator.on_recording_complete)
    await session.start()
    ...
    session.stop()   # on_complete fires once the backend confirms the stop
"""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from typing import Any

from voxnotes.core.exceptions import (
    CaptureAlreadyActiveError,
    DeviceUnavailableError,
    NoSupportedFormatError,
)
from voxnotes.core.models import CaptureState, FinalizedRecording
from voxnotes.services.audio.backends import CaptureBackend
from voxnotes.services.audio.webm import fix_webm_duration

logger = logging.getLogger(__name__)

DEFAULT_MIME_CANDIDATES: tuple[str, ...] = (
    "audio/webm",
    "audio/mp4",
    "audio/ogg",
    "audio/wav",
    "audio/aac",
)

# Containers whose streamed output does not report its duration reliably
_DURATION_FIXERS: dict[str, Callable[[bytes, float], bytes]] = {
    "audio/webm": fix_webm_duration,
}


def _base_mime(mime_type: str) -> str:
    return mime_type.split(";", 1)[0].strip().lower()


class AudioCaptureSession:
    """Turns a live input stream into a single duration-correct recording.

    Data fragments are buffered in arrival order and concatenated when the
    backend confirms the stop. At most one finalized recording is kept;
    starting a new recording discards it.

    Args:
        backend: The capture device mechanism.
        on_complete: Called with each ``FinalizedRecording``.
        mime_candidates: Container preference order; the first supported wins.
        on_tick: Called with the elapsed-seconds counter once per tick.
        tick_interval: Seconds between ticks of the live duration counter.
        clock: Wall-clock source in seconds, used for the finalized duration.
    """

    def __init__(
        self,
        backend: CaptureBackend,
        on_complete: Callable[[FinalizedRecording], None] | None = None,
        mime_candidates: Sequence[str] = DEFAULT_MIME_CANDIDATES,
        on_tick: Callable[[int], None] | None = None,
        tick_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._on_complete = on_complete
        self._mime_candidates = tuple(mime_candidates)
        self._on_tick = on_tick
        self._tick_interval = tick_interval
        self._clock = clock

        self._state = CaptureState.idle
        self._stream: Any = None
        self._fragments: list[bytes] = []
        self._mime_type: str | None = None
        self._started_at: float | None = None
        self._elapsed = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tick_handle: asyncio.TimerHandle | None = None
        self._last_recording: FinalizedRecording | None = None
        self._epoch = 0  # bumped by close()

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is CaptureState.recording

    @property
    def elapsed_seconds(self) -> int:
        """Live duration counter; display only, never used for the final duration."""
        return self._elapsed

    @property
    def mime_type(self) -> str | None:
        return self._mime_type

    @property
    def last_recording(self) -> FinalizedRecording | None:
        return self._last_recording

    @property
    def holds_device(self) -> bool:
        return self._stream is not None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Acquire the device (if needed) and begin a new recording.

        Raises:
            CaptureAlreadyActiveError: A recording is already in progress.
            DeviceUnavailableError: Permission denied or no input device.
            NoSupportedFormatError: No candidate container is supported.
        """
        if self._state is not CaptureState.idle:
            raise CaptureAlreadyActiveError()

        self._last_recording = None
        self._loop = asyncio.get_running_loop()
        self._state = CaptureState.acquiring
        epoch = self._epoch
        try:
            if self._stream is None:
                stream = await self._backend.acquire_stream()
                if epoch != self._epoch:
                    # close() ran while the device was being opened
                    logger.info("Capture closed during device acquisition; releasing device")
                    self._release_orphan(stream)
                    return
                self._stream = stream
            mime_type = self._select_mime_type()
            self._fragments.clear()
            self._mime_type = mime_type
            self._started_at = self._clock()
            self._backend.start_recording(
                self._stream,
                mime_type,
                on_data=self._handle_data,
                on_stop=self._handle_stop,
                on_error=self._handle_error,
            )
        except (DeviceUnavailableError, NoSupportedFormatError) as exc:
            logger.warning("Could not start recording: %s", exc.detail)
            self._reset_after_error()
            raise
        except Exception:
            logger.exception("Unexpected failure while starting a recording")
            self._reset_after_error()
            raise

        self._state = CaptureState.recording
        self._elapsed = 0
        self._schedule_tick()
        logger.info("Recording started (%s)", mime_type)

    def stop(self) -> None:
        """Request finalization; a no-op unless currently recording."""
        if self._state is not CaptureState.recording:
            logger.debug("stop() ignored in state %s", self._state)
            return
        self._state = CaptureState.finalizing
        self._cancel_tick()
        self._elapsed = 0
        self._backend.stop_recording()

    def discard(self) -> None:
        """Forget the last finalized recording."""
        self._last_recording = None

    def close(self) -> None:
        """Tear down: stop any recording, drop buffered data, release the device."""
        self._epoch += 1
        self._cancel_tick()
        if self._state in (CaptureState.recording, CaptureState.finalizing):
            self._state = CaptureState.idle
            try:
                self._backend.stop_recording()
            except Exception:
                logger.exception("Backend failed to stop during close")
        self._fragments.clear()
        self._elapsed = 0
        self._state = CaptureState.idle
        self._release_stream()

    # ------------------------------------------------------------------
    # Backend callbacks
    # ------------------------------------------------------------------

    def _handle_data(self, fragment: bytes) -> None:
        if self._state not in (CaptureState.recording, CaptureState.finalizing):
            logger.debug("Dropping %d-byte fragment in state %s", len(fragment), self._state)
            return
        if not fragment:
            return
        self._fragments.append(bytes(fragment))

    def _handle_stop(self) -> None:
        if self._state not in (CaptureState.recording, CaptureState.finalizing):
            logger.debug("Stop confirmation ignored in state %s", self._state)
            return
        self._cancel_tick()
        self._elapsed = 0

        duration = self._clock() - self._started_at
        data = b"".join(self._fragments)
        fixer = _DURATION_FIXERS.get(_base_mime(self._mime_type))
        if fixer is not None:
            data = fixer(data, duration * 1000.0)

        recording = FinalizedRecording(data=data, mime_type=self._mime_type, duration=duration)
        self._fragments.clear()
        self._last_recording = recording
        self._state = CaptureState.idle
        self._release_stream()
        logger.info(
            "Recording finalized: %d bytes, %.2fs (%s)",
            recording.size,
            recording.duration,
            recording.mime_type,
        )
        if self._on_complete is not None:
            self._on_complete(recording)

    def _handle_error(self, exc: Exception) -> None:
        logger.warning("Capture device failed in state %s: %s", self._state, exc)
        self._reset_after_error()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _select_mime_type(self) -> str:
        for mime_type in self._mime_candidates:
            if self._backend.is_type_supported(mime_type):
                return mime_type
        raise NoSupportedFormatError(self._mime_candidates)

    def _reset_after_error(self) -> None:
        self._state = CaptureState.error
        self._cancel_tick()
        self._fragments.clear()
        self._elapsed = 0
        self._release_stream()
        self._state = CaptureState.idle

    def _release_stream(self) -> None:
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        try:
            self._backend.release_stream(stream)
        except Exception:
            logger.exception("Failed to release input stream")

    def _release_orphan(self, stream: Any) -> None:
        try:
            self._backend.release_stream(stream)
        except Exception:
            logger.exception("Failed to release input stream")

    def _schedule_tick(self) -> None:
        self._tick_handle = self._loop.call_later(self._tick_interval, self._tick)

    def _tick(self) -> None:
        if self._state is not CaptureState.recording:
            return
        self._elapsed += 1
        if self._on_tick is not None:
            self._on_tick(self._elapsed)
        self._schedule_tick()

    def _cancel_tick(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None
