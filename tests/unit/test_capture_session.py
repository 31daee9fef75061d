"""Tests for AudioCaptureSession (state machine, buffering, finalization).

Drives the session through a scripted FakeBackend and a manual clock, so
durations and fragment order are fully deterministic.
"""

import asyncio
import struct

import pytest

from voxnotes.core.exceptions import (
    CaptureAlreadyActiveError,
    DeviceUnavailableError,
    NoSupportedFormatError,
)
from voxnotes.core.models import CaptureState
from voxnotes.services.audio.capture import AudioCaptureSession


class TestStart:
    """Verify device acquisition, format selection and the recording state."""

    async def test_enters_recording(self, capture, backend):
        await capture.start()
        assert capture.state is CaptureState.recording
        assert capture.is_recording
        assert capture.mime_type == "audio/wav"
        assert backend.started == [("stream-1", "audio/wav")]

    async def test_picks_first_supported_candidate(self, backend, clock):
        backend.supported = {"audio/ogg", "audio/wav"}
        session = AudioCaptureSession(backend, clock=clock)
        await session.start()
        # audio/ogg precedes audio/wav in the preference order
        assert session.mime_type == "audio/ogg"

    async def test_custom_candidate_order(self, backend, clock):
        backend.supported = {"audio/ogg", "audio/wav"}
        session = AudioCaptureSession(backend, clock=clock, mime_candidates=["audio/wav", "audio/ogg"])
        await session.start()
        assert session.mime_type == "audio/wav"

    async def test_device_unavailable_returns_to_idle(self, backend, capture):
        backend.fail_acquire = True
        with pytest.raises(DeviceUnavailableError):
            await capture.start()
        assert capture.state is CaptureState.idle
        assert not capture.holds_device

    async def test_no_supported_format_releases_device(self, backend, capture):
        backend.supported = set()
        with pytest.raises(NoSupportedFormatError) as excinfo:
            await capture.start()
        assert "audio/webm" in excinfo.value.detail
        assert capture.state is CaptureState.idle
        assert backend.released == ["stream-1"]
        assert not capture.holds_device

    async def test_start_while_recording_raises(self, capture):
        await capture.start()
        with pytest.raises(CaptureAlreadyActiveError):
            await capture.start()
        assert capture.state is CaptureState.recording


class TestFinalization:
    """Verify fragment buffering and the finalized recording."""

    async def test_zero_length_fragment_discarded(self, capture, backend, clock, completed):
        """10, 0 and 20 byte fragments over 2 seconds -> 30 bytes, 2.0 s."""
        await capture.start()
        backend.emit(b"a" * 10)
        backend.emit(b"")
        backend.emit(b"b" * 20)
        clock.advance(2.0)
        capture.stop()
        backend.confirm_stop()

        assert len(completed) == 1
        recording = completed[0]
        assert recording.data == b"a" * 10 + b"b" * 20
        assert recording.size == 30
        assert recording.duration == pytest.approx(2.0)
        assert recording.duration_ms == pytest.approx(2000.0)
        assert recording.mime_type == "audio/wav"

    async def test_fragments_kept_in_arrival_order(self, capture, backend, completed):
        await capture.start()
        for i in range(5):
            backend.emit(bytes([i]))
        capture.stop()
        backend.confirm_stop()
        assert completed[0].data == bytes([0, 1, 2, 3, 4])

    async def test_fragment_after_stop_request_is_kept(self, capture, backend, completed):
        """Backends flush their last fragment between stop request and confirmation."""
        await capture.start()
        backend.emit(b"early")
        capture.stop()
        assert capture.state is CaptureState.finalizing
        backend.emit(b"-late")
        backend.confirm_stop()
        assert completed[0].data == b"early-late"

    async def test_returns_to_idle_and_releases_device(self, capture, backend):
        await capture.start()
        capture.stop()
        backend.confirm_stop()
        assert capture.state is CaptureState.idle
        assert backend.released == ["stream-1"]
        assert not capture.holds_device

    async def test_next_recording_starts_with_empty_buffer(self, capture, backend, completed):
        await capture.start()
        backend.emit(b"first")
        capture.stop()
        backend.confirm_stop()

        await capture.start()
        assert capture.last_recording is None  # previous blob discarded
        backend.emit(b"second")
        capture.stop()
        backend.confirm_stop()
        assert completed[1].data == b"second"
        assert backend.acquired == 2

    async def test_webm_duration_is_rewritten(self, backend, clock, completed):
        backend.supported = {"audio/webm"}
        session = AudioCaptureSession(backend, on_complete=completed.append, clock=clock)
        webm = (
            bytes.fromhex("1A45DFA3") + b"\x80"
            + bytes.fromhex("18538067") + bytes.fromhex("01FFFFFFFFFFFFFF")
            + bytes.fromhex("1549A966") + b"\x87" + bytes.fromhex("2AD7B1") + b"\x83" + bytes.fromhex("0F4240")
        )
        await session.start()
        backend.emit(webm)
        clock.advance(1.5)
        session.stop()
        backend.confirm_stop()
        assert struct.pack(">d", 1500.0) in completed[0].data

    async def test_other_formats_are_untouched(self, capture, backend, completed):
        payload = b"RIFF\x00\x00\x00\x00WAVE"
        await capture.start()
        backend.emit(payload)
        capture.stop()
        backend.confirm_stop()
        assert completed[0].data == payload


class TestStop:
    """Verify stop() is a no-op outside the recording state."""

    def test_stop_when_idle_is_noop(self, capture, backend):
        capture.stop()
        assert capture.state is CaptureState.idle
        assert backend.stop_requests == 0

    async def test_double_stop_requests_once(self, capture, backend):
        await capture.start()
        capture.stop()
        capture.stop()
        assert backend.stop_requests == 1


class TestDurationCounter:
    """Verify the live elapsed-seconds counter."""

    async def test_ticks_while_recording_and_resets_on_stop(self, backend, clock):
        ticks = []
        session = AudioCaptureSession(backend, clock=clock, tick_interval=0.01, on_tick=ticks.append)
        await session.start()
        await asyncio.sleep(0.08)
        assert session.elapsed_seconds >= 1
        assert ticks == list(range(1, len(ticks) + 1))

        session.stop()
        assert session.elapsed_seconds == 0
        count = len(ticks)
        await asyncio.sleep(0.05)
        assert len(ticks) == count

    async def test_counter_does_not_affect_duration(self, backend, clock, completed):
        session = AudioCaptureSession(
            backend, on_complete=completed.append, clock=clock, tick_interval=0.01
        )
        await session.start()
        await asyncio.sleep(0.05)
        clock.advance(7.0)
        session.stop()
        backend.confirm_stop()
        assert completed[0].duration == pytest.approx(7.0)


class TestDeviceFailure:
    """Verify recording -> error -> idle on device loss."""

    async def test_error_discards_buffer_and_releases(self, capture, backend, completed):
        await capture.start()
        backend.emit(b"partial")
        backend.fail()
        assert capture.state is CaptureState.idle
        assert backend.released == ["stream-1"]
        assert completed == []

        # A late stop confirmation must not produce a recording
        backend.confirm_stop()
        assert completed == []

    async def test_can_record_again_after_error(self, capture, backend, completed):
        await capture.start()
        backend.fail()
        await capture.start()
        backend.emit(b"ok")
        capture.stop()
        backend.confirm_stop()
        assert completed[0].data == b"ok"


class TestClose:
    """Verify teardown releases the device."""

    async def test_close_while_recording(self, capture, backend, completed):
        await capture.start()
        backend.emit(b"data")
        capture.close()
        assert capture.state is CaptureState.idle
        assert backend.stop_requests == 1
        assert backend.released == ["stream-1"]
        backend.confirm_stop()
        assert completed == []

    def test_close_when_idle_is_safe(self, capture, backend):
        capture.close()
        assert backend.released == []

    async def test_discard_forgets_last_recording(self, capture, backend):
        await capture.start()
        capture.stop()
        backend.confirm_stop()
        assert capture.last_recording is not None
        capture.discard()
        assert capture.last_recording is None


class TestCloseDuringAcquisition:
    """Verify teardown while the device is still being opened."""

    async def test_device_released_and_recording_not_started(self, gated_backend, clock):
        backend = gated_backend
        session = AudioCaptureSession(backend, clock=clock)
        starting = asyncio.create_task(session.start())
        await backend.acquiring.wait()
        assert session.state is CaptureState.acquiring

        session.close()
        backend.gate.set()
        await starting

        assert session.state is CaptureState.idle
        assert not session.holds_device
        assert backend.started == []
        assert backend.released == ["stream-1"]

    async def test_can_start_again_after_aborted_acquisition(self, gated_backend, clock):
        backend = gated_backend
        session = AudioCaptureSession(backend, clock=clock)
        starting = asyncio.create_task(session.start())
        await backend.acquiring.wait()
        session.close()
        backend.gate.set()
        await starting

        await session.start()
        assert session.state is CaptureState.recording
        assert backend.started == [("stream-2", "audio/wav")]
