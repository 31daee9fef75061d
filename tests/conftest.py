"""Shared pytest fixtures for the VoxNotes test suite.

Provides a scriptable capture backend, controllable clocks, an in-memory
annotation store and factories for transcripts and records. No audio device
or speech model is needed by any test.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from voxnotes.core.exceptions import DeviceUnavailableError
from voxnotes.core.models import (
    AnnotationRecord,
    TranscriberOutput,
    TranscriptChunk,
    Transcription,
)
from voxnotes.services.audio.backends import CaptureBackend
from voxnotes.services.audio.capture import AudioCaptureSession
from voxnotes.services.coordinator import SessionCoordinator
from voxnotes.services.storage.medium import MemoryMedium
from voxnotes.services.storage.store import AnnotationStore

# ---------------------------------------------------------------------------
# Capture fixtures
# ---------------------------------------------------------------------------


class FakeBackend(CaptureBackend):
    """Capture backend driven by the test: it emits fragments on request."""

    def __init__(self, supported=("audio/wav",), fail_acquire: bool = False) -> None:
        self.supported = set(supported)
        self.fail_acquire = fail_acquire
        self.acquired = 0
        self.released: list[str] = []
        self.started: list[tuple[str, str]] = []
        self.stop_requests = 0
        self.on_data = None
        self.on_stop = None
        self.on_error = None

    async def acquire_stream(self):
        if self.fail_acquire:
            raise DeviceUnavailableError("Permission denied")
        self.acquired += 1
        return f"stream-{self.acquired}"

    def is_type_supported(self, mime_type: str) -> bool:
        return mime_type in self.supported

    def start_recording(self, stream, mime_type, on_data, on_stop, on_error) -> None:
        self.started.append((stream, mime_type))
        self.on_data, self.on_stop, self.on_error = on_data, on_stop, on_error

    def stop_recording(self) -> None:
        self.stop_requests += 1

    def release_stream(self, stream) -> None:
        self.released.append(stream)

    # -- test helpers --

    def emit(self, fragment: bytes) -> None:
        self.on_data(fragment)

    def confirm_stop(self) -> None:
        self.on_stop()

    def fail(self, exc: Exception | None = None) -> None:
        self.on_error(exc or DeviceUnavailableError("Device unplugged"))


class GatedBackend(FakeBackend):
    """FakeBackend whose device acquisition waits until the test opens a gate."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.gate = asyncio.Event()
        self.acquiring = asyncio.Event()

    async def acquire_stream(self):
        self.acquiring.set()
        await self.gate.wait()
        return await super().acquire_stream()


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SteppingClock:
    """UTC datetime source that advances one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2025, 3, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(seconds=1)
        return value


@pytest.fixture
def backend():
    """A FakeBackend that only supports WAV."""
    return FakeBackend()


@pytest.fixture
def gated_backend():
    return GatedBackend()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def completed():
    """Collects recordings passed to the capture completion callback."""
    return []


@pytest.fixture
def capture(backend, clock, completed):
    """AudioCaptureSession over the fake backend and clock."""
    return AudioCaptureSession(backend, on_complete=completed.append, clock=clock)


# ---------------------------------------------------------------------------
# Store / coordinator fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def medium():
    return MemoryMedium()


@pytest.fixture
def store(medium):
    return AnnotationStore(medium)


@pytest.fixture
def stepping_clock():
    return SteppingClock()


@pytest.fixture
def resets():
    """Counts pipeline-reset signals from the coordinator."""
    return []


@pytest.fixture
def coordinator(store, stepping_clock, resets):
    return SessionCoordinator(
        store,
        on_reset=lambda: resets.append(True),
        clock=stepping_clock,
    )


# ---------------------------------------------------------------------------
# Transcript / record factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_output():
    """Build a TranscriberOutput with *n* chunks."""

    def _make(n: int = 2, is_busy: bool = False, open_end: bool = False) -> TranscriberOutput:
        chunks = [
            TranscriptChunk(text=f" part {i}", timestamp=(float(i), float(i + 1)))
            for i in range(n)
        ]
        if open_end and chunks:
            chunks[-1] = TranscriptChunk(text=chunks[-1].text, timestamp=(float(n - 1), None))
        return TranscriberOutput(
            is_busy=is_busy,
            text="".join(c.text for c in chunks).strip(),
            chunks=chunks,
        )

    return _make


@pytest.fixture
def make_record():
    """Build an AnnotationRecord with sensible defaults."""

    def _make(record_id: str = "annotation_1_abc", **overrides) -> AnnotationRecord:
        created = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)
        fields = {
            "id": record_id,
            "name": "Ada Lovelace",
            "address": "12 St James's Square",
            "phone": "+44 20 7946 0000",
            "notes": "Follow up next week",
            "transcription": Transcription(
                text="Hello there",
                chunks=(
                    TranscriptChunk(text=" Hello", timestamp=(0.0, 0.8)),
                    TranscriptChunk(text=" there", timestamp=(0.8, None)),
                ),
            ),
            "created_at": created,
            "updated_at": created,
        }
        fields.update(overrides)
        return AnnotationRecord(**fields)

    return _make
