"""
VoxNotes exception hierarchy.

All application-specific exceptions inherit from VoxNotesError,
enabling centralized error handling in the API middleware layer.
"""

from datetime import UTC, datetime


class VoxNotesError(Exception):
    """Base exception for all VoxNotes errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "VOXNOTES_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


class DeviceUnavailableError(VoxNotesError):
    """Raised when no audio input device can be acquired (denied or missing)."""

    def __init__(self, detail: str = "No audio input device is available") -> None:
        super().__init__(
            detail=detail,
            code="DEVICE_UNAVAILABLE",
            status_code=503,
        )


class NoSupportedFormatError(VoxNotesError):
    """Raised when none of the candidate container formats can be recorded."""

    def __init__(self, candidates: list[str] | tuple[str, ...] = ()) -> None:
        tried = ", ".join(candidates) if candidates else "none"
        super().__init__(
            detail=f"No supported recording format (tried: {tried})",
            code="NO_SUPPORTED_FORMAT",
            status_code=503,
        )


class CaptureAlreadyActiveError(VoxNotesError):
    """Raised when trying to start a recording while one is already active."""

    def __init__(self) -> None:
        super().__init__(
            detail="A recording is already active",
            code="CAPTURE_ALREADY_ACTIVE",
            status_code=409,
        )


class IncompleteTranscriptionError(VoxNotesError):
    """Raised when saving without a finished, non-empty transcription."""

    def __init__(
        self,
        detail: str = "Please complete a transcription first before saving an annotation.",
    ) -> None:
        super().__init__(
            detail=detail,
            code="INCOMPLETE_TRANSCRIPTION",
            status_code=422,
        )


class CorruptStoreError(VoxNotesError):
    """Raised internally when the persisted collection cannot be decoded.

    The store recovers from it by substituting an empty collection; it is
    never surfaced to the user.
    """

    def __init__(self, detail: str = "Stored annotations are corrupt") -> None:
        super().__init__(detail=detail, code="CORRUPT_STORE", status_code=500)


class StorageError(VoxNotesError):
    """Raised when the durable medium cannot be read or written."""

    def __init__(self, detail: str = "Storage operation failed") -> None:
        super().__init__(detail=detail, code="STORAGE_ERROR", status_code=500)


class AnnotationNotFoundError(VoxNotesError):
    """Raised by the HTTP layer when an annotation ID does not exist."""

    def __init__(self, annotation_id: str) -> None:
        super().__init__(
            detail=f"Annotation not found: {annotation_id}",
            code="ANNOTATION_NOT_FOUND",
            status_code=404,
        )


class NoRecordingError(VoxNotesError):
    """Raised by the HTTP layer when no finalized recording is available."""

    def __init__(self) -> None:
        super().__init__(
            detail="No finished recording is available",
            code="NO_RECORDING",
            status_code=404,
        )
