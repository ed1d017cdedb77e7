"""Tests for BufferedSegmentRecorder and RawAudio."""

import io
import wave

import numpy as np
import pytest

from utterance_vad.audio.recorder import BufferedSegmentRecorder, RawAudio
from utterance_vad.audio.types import AudioFrame
from utterance_vad.core.errors import InvalidSession


def frame(value, n=320):
    return AudioFrame(pcm=np.full(n, value, dtype=np.float32), sample_rate=16000, timestamp_s=0.0)


class TestBufferedSegmentRecorder:
    def test_records_frames_between_start_and_stop(self):
        recorder = BufferedSegmentRecorder(pre_roll_ms=0)
        recorder.feed(frame(0.9))

        recorder.start(1000)
        recorder.feed(frame(0.1))
        recorder.feed(frame(0.2))
        audio = recorder.stop(1040)

        assert not recorder.is_recording
        assert len(audio.pcm) == 640
        assert audio.pcm[0] == pytest.approx(0.1)
        assert audio.started_at_ms == 1000
        assert audio.ended_at_ms == 1040
        assert audio.duration_ms == 40

    def test_pre_roll_prepended(self):
        recorder = BufferedSegmentRecorder(pre_roll_ms=40, frame_ms=20)
        for value in (0.1, 0.2, 0.3):
            recorder.feed(frame(value))

        recorder.start(0)
        recorder.feed(frame(0.4))
        audio = recorder.stop(20)

        starts = audio.pcm[::320]
        assert starts == pytest.approx([0.2, 0.3, 0.4])

    def test_pre_roll_not_reused_across_sessions(self):
        recorder = BufferedSegmentRecorder(pre_roll_ms=40, frame_ms=20)
        recorder.feed(frame(0.1))
        recorder.start(0)
        recorder.stop(10)

        recorder.start(20)
        audio = recorder.stop(30)

        assert len(audio.pcm) == 0

    def test_stop_while_idle_raises(self):
        with pytest.raises(InvalidSession):
            BufferedSegmentRecorder().stop(0)

    def test_double_start_raises(self):
        recorder = BufferedSegmentRecorder()
        recorder.start(0)
        with pytest.raises(InvalidSession):
            recorder.start(10)


class TestRawAudio:
    def test_wav_bytes_are_16bit_mono(self):
        pcm = np.array([0.0, 0.5, -0.5, 2.0], dtype=np.float32)
        audio = RawAudio(pcm=pcm, sample_rate=16000, started_at_ms=0, ended_at_ms=1)

        with wave.open(io.BytesIO(audio.to_wav_bytes()), "rb") as wave_file:
            assert wave_file.getnchannels() == 1
            assert wave_file.getsampwidth() == 2
            assert wave_file.getframerate() == 16000
            samples = np.frombuffer(wave_file.readframes(4), dtype=np.int16)

        # Out-of-range input is clipped
        assert samples.tolist() == [0, 16383, -16383, 32767]
