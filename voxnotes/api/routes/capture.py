"""
Microphone capture endpoints backed by the ``AudioCaptureSession``.
"""

from fastapi import APIRouter, Depends, Response

from voxnotes.api.deps import get_capture
from voxnotes.core.exceptions import NoRecordingError
from voxnotes.core.models import CaptureStatus, RecordingInfo
from voxnotes.core.utils import format_audio_timestamp
from voxnotes.services.audio.capture import AudioCaptureSession

router = APIRouter(prefix="/capture", tags=["capture"])


def _to_status(capture: AudioCaptureSession) -> CaptureStatus:
    last = capture.last_recording
    return CaptureStatus(
        state=capture.state,
        elapsed_seconds=capture.elapsed_seconds,
        elapsed_display=format_audio_timestamp(capture.elapsed_seconds),
        mime_type=capture.mime_type,
        last_recording=(
            RecordingInfo(mime_type=last.mime_type, duration=last.duration, size=last.size)
            if last is not None
            else None
        ),
    )


@router.get("", response_model=CaptureStatus)
async def get_capture_status(capture: AudioCaptureSession = Depends(get_capture)):
    """Current capture state and live duration counter."""
    return _to_status(capture)


@router.post("/start", response_model=CaptureStatus)
async def start_capture(capture: AudioCaptureSession = Depends(get_capture)):
    """Acquire the input device and start recording."""
    await capture.start()
    return _to_status(capture)


@router.post("/stop", response_model=CaptureStatus)
async def stop_capture(capture: AudioCaptureSession = Depends(get_capture)):
    """Stop recording; a no-op when not recording."""
    capture.stop()
    return _to_status(capture)


@router.get("/recording")
async def download_recording(capture: AudioCaptureSession = Depends(get_capture)):
    """Return the last finalized recording's bytes."""
    last = capture.last_recording
    if last is None:
        raise NoRecordingError()
    return Response(content=last.data, media_type=last.mime_type)
