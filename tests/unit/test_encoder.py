"""Tests for AudioEncoder (PCM -> container bytes)."""

import io

import numpy as np
import pytest
import soundfile as sf

from voxnotes.services.audio.encoder import AudioEncoder


def _sine_pcm(seconds: float = 0.5, sample_rate: int = 16000) -> bytes:
    t = np.linspace(0, seconds, int(sample_rate * seconds), endpoint=False)
    samples = (np.sin(2 * np.pi * 440 * t) * 8000).astype(np.int16)
    return samples.tobytes()


class TestPcmConversion:
    def test_mono_shape(self):
        encoder = AudioEncoder()
        array = encoder.pcm_to_ndarray(b"\x00\x00" * 160)
        assert array.shape == (160, 1)
        assert array.dtype == np.int16

    def test_stereo_shape(self):
        encoder = AudioEncoder(channels=2)
        array = encoder.pcm_to_ndarray(b"\x01\x00\x02\x00" * 10)
        assert array.shape == (10, 2)
        assert array[0].tolist() == [1, 2]

    def test_misaligned_raises(self):
        encoder = AudioEncoder(channels=2)
        with pytest.raises(ValueError, match="not aligned"):
            encoder.pcm_to_ndarray(b"\x00" * 6)

    def test_duration(self):
        encoder = AudioEncoder(sample_rate=16000)
        assert encoder.duration_of(b"\x00\x00" * 32000) == pytest.approx(2.0)


class TestEncode:
    def test_wav_round_trip_preserves_frames(self):
        encoder = AudioEncoder()
        pcm = _sine_pcm(0.25)
        data = encoder.encode(pcm, "audio/wav")

        assert data[:4] == b"RIFF"
        samples, rate = sf.read(io.BytesIO(data), dtype="int16")
        assert rate == 16000
        assert samples.tobytes() == pcm

    def test_flac_header(self):
        data = AudioEncoder().encode(_sine_pcm(0.1), "audio/flac")
        assert data[:4] == b"fLaC"

    def test_unsupported_container_raises(self):
        with pytest.raises(ValueError, match="Unsupported container"):
            AudioEncoder().encode(b"\x00\x00", "audio/webm")


class TestSupports:
    def test_wav_supported(self):
        assert AudioEncoder.supports("audio/wav")

    def test_unknown_types_not_supported(self):
        assert not AudioEncoder.supports("audio/webm")
        assert not AudioEncoder.supports("audio/aac")
