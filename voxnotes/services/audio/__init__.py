"""
Audio module - Capture session, device backends and container helpers.
"""

from .backends import CaptureBackend, SoundDeviceBackend, create_backend
from .capture import DEFAULT_MIME_CANDIDATES, AudioCaptureSession
from .encoder import AudioEncoder
from .webm import fix_webm_duration

__all__ = [
    "DEFAULT_MIME_CANDIDATES",
    "AudioCaptureSession",
    "AudioEncoder",
    "CaptureBackend",
    "SoundDeviceBackend",
    "create_backend",
    "fix_webm_duration",
]
