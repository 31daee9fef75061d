"""FastAPI dependencies resolving the per-app service instances."""

from fastapi import Request

from voxnotes.services.audio.capture import AudioCaptureSession
from voxnotes.services.coordinator import SessionCoordinator


def get_coordinator(request: Request) -> SessionCoordinator:
    return request.app.state.coordinator


def get_capture(request: Request) -> AudioCaptureSession:
    return request.app.state.capture
