"""
Pydantic v2 models shared by the capture, storage, coordinator and API layers.

Persisted and API payloads use camelCase field names (``createdAt``,
``isBusy``) so annotation collections written by the browser build of the
recorder load unchanged; either spelling is accepted on input.
"""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: datetime


# ---------------------------------------------------------------------------
# Transcription
# ---------------------------------------------------------------------------


class TranscriptChunk(BaseModel):
    """One timestamped segment of recognized text.

    ``timestamp`` is ``(start, end)`` in seconds; ``end`` is ``None`` while
    the engine has not closed the segment yet.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    timestamp: tuple[float, float | None]


class Transcription(BaseModel):
    """Immutable snapshot of a completed transcription, as stored on a record."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    chunks: tuple[TranscriptChunk, ...] = ()


class TranscriberOutput(BaseModel):
    """Latest output of the external speech-recognition engine.

    Updates arrive incrementally while ``is_busy`` is true; the final update
    has ``is_busy`` false.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    is_busy: bool = False
    text: str = ""
    chunks: tuple[TranscriptChunk, ...] = ()

    @property
    def is_complete(self) -> bool:
        """True when the engine has finished and produced at least one chunk."""
        return not self.is_busy and len(self.chunks) > 0

    def snapshot(self) -> Transcription:
        return Transcription(text=self.text, chunks=self.chunks)


# ---------------------------------------------------------------------------
# Annotation
# ---------------------------------------------------------------------------


class AnnotationFormData(BaseModel):
    """User-editable annotation fields."""

    name: str = ""
    address: str = ""
    phone: str = ""
    notes: str = ""

    @field_validator("name", "address", "phone", "notes", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value


class AnnotationRecord(AnnotationFormData):
    """A persisted annotation: contact-like metadata plus a transcript snapshot."""

    model_config = _CAMEL

    id: str
    transcription: Transcription = Field(default_factory=Transcription)
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps read back from older payloads are UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @model_validator(mode="after")
    def _check_timestamps(self) -> "AnnotationRecord":
        if self.created_at > self.updated_at:
            raise ValueError("createdAt must not be later than updatedAt")
        return self

    def form_data(self) -> AnnotationFormData:
        """Return the editable fields of this record."""
        return AnnotationFormData(
            name=self.name,
            address=self.address,
            phone=self.phone,
            notes=self.notes,
        )


class AnnotationSummary(BaseModel):
    """Compact annotation entry for list views."""

    model_config = _CAMEL

    id: str
    display_name: str
    created_at: datetime
    address: str = ""
    phone: str = ""
    preview: str = ""
    notes_preview: str = ""


# ---------------------------------------------------------------------------
# Session coordinator
# ---------------------------------------------------------------------------


class CoordinatorMode(StrEnum):
    """Which transcript the session is looking at."""

    new_transcription = "new_transcription"
    viewing = "viewing"


class SelectRequest(BaseModel):
    """POST /session/select body; ``id`` null returns to a new transcription."""

    id: str | None = None


class SessionView(BaseModel):
    """Derived, read-only state handed to presentation."""

    model_config = _CAMEL

    mode: CoordinatorMode
    selected_id: str | None = None
    effective_transcription: TranscriberOutput | None = None
    ready_to_save: bool = False
    is_busy: bool = False
    form: AnnotationFormData = Field(default_factory=AnnotationFormData)
    annotations: list[AnnotationRecord] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Audio capture
# ---------------------------------------------------------------------------


class CaptureState(StrEnum):
    """Possible states of an audio capture session."""

    idle = "idle"
    acquiring = "acquiring"
    recording = "recording"
    finalizing = "finalizing"
    error = "error"


class FinalizedRecording(BaseModel):
    """A single playable audio blob produced by one recording action."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str
    duration: float  # wall-clock seconds

    @property
    def duration_ms(self) -> float:
        return self.duration * 1000.0

    @property
    def size(self) -> int:
        return len(self.data)


class RecordingInfo(BaseModel):
    """Metadata of the last finalized recording (bytes served separately)."""

    model_config = _CAMEL

    mime_type: str
    duration: float
    size: int


class CaptureStatus(BaseModel):
    """GET /capture response."""

    model_config = _CAMEL

    state: CaptureState
    elapsed_seconds: int = 0
    elapsed_display: str = "00:00"
    mime_type: str | None = None
    last_recording: RecordingInfo | None = None
