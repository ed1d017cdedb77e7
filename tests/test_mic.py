"""Tests for microphone audio capture."""

import time

import numpy as np
import pytest
from unittest.mock import Mock, patch, MagicMock

# sounddevice loads PortAudio at import time; skip on hosts without it
pytest.importorskip("sounddevice", exc_type=OSError)

from utterance_vad.audio.mic import Mic
from utterance_vad.audio.types import AudioFormat, AudioFrame, FrameConfig
from utterance_vad.core.shutdown import GracefulShutdown


def mock_stream_context():
    context = MagicMock()
    context.__enter__ = Mock(return_value=MagicMock())
    context.__exit__ = Mock(return_value=False)
    return context


class TestMic:
    """Test cases for Mic class."""

    @pytest.fixture
    def audio_format(self):
        return AudioFormat(sample_rate=16000, channels=1, dtype="float32")

    @pytest.fixture
    def frame_config(self):
        return FrameConfig(frame_ms=20, max_frames_queue=4)

    @pytest.fixture
    def stop_signal(self):
        return GracefulShutdown()

    def test_mic_captures_audio_frames(self, audio_format, frame_config, stop_signal):
        """Frames delivered by the stream callback come back from read_frames()."""
        mic = Mic(stop_signal=stop_signal, audio_format=audio_format, frame_cfg=frame_config)

        captured_callback = None
        context = mock_stream_context()

        def capture_callback(*args, **kwargs):
            nonlocal captured_callback
            captured_callback = kwargs.get('callback')
            return context

        with patch('utterance_vad.audio.mic.sd.InputStream', side_effect=capture_callback) as stream:
            mic.start()
            time.sleep(0.3)

            assert captured_callback is not None
            assert stream.call_args.kwargs["blocksize"] == 320

            captured_callback(np.random.randn(320, 1).astype(np.float32), 320, {}, None)
            frames = mic.read_frames()

            assert len(frames) == 1
            assert isinstance(frames[0], AudioFrame)
            assert frames[0].sample_rate == 16000
            assert frames[0].pcm.dtype == np.float32
            assert len(frames[0].pcm) == 320
            assert mic.read_frames() == []

            stop_signal.stop()
            mic.join(timeout=1.0)

        assert not mic.is_alive()
        assert mic.error is None

    def test_mic_stops_on_close(self, audio_format, frame_config, stop_signal):
        mic = Mic(stop_signal=stop_signal, audio_format=audio_format, frame_cfg=frame_config)

        with patch('utterance_vad.audio.mic.sd.InputStream', return_value=mock_stream_context()):
            mic.start()
            time.sleep(0.2)
            mic.close()
            mic.join(timeout=2.0)

        assert not mic.is_alive()

    def test_mic_drops_frames_when_queue_full(self, audio_format, frame_config, stop_signal):
        mic = Mic(stop_signal=stop_signal, audio_format=audio_format, frame_cfg=frame_config)

        captured_callback = None

        def capture_callback(*args, **kwargs):
            nonlocal captured_callback
            captured_callback = kwargs.get('callback')
            return mock_stream_context()

        with patch('utterance_vad.audio.mic.sd.InputStream', side_effect=capture_callback):
            mic.start()
            time.sleep(0.3)

            for _ in range(10):
                captured_callback(np.zeros((320, 1), dtype=np.float32), 320, {}, None)

            assert len(mic.read_frames()) == frame_config.max_frames_queue

            stop_signal.stop()
            mic.join(timeout=1.0)

    def test_int16_input_is_scaled(self, frame_config, stop_signal):
        mic = Mic(
            stop_signal=stop_signal,
            audio_format=AudioFormat(sample_rate=16000, channels=1, dtype="int16"),
            frame_cfg=frame_config,
        )

        captured_callback = None

        def capture_callback(*args, **kwargs):
            nonlocal captured_callback
            captured_callback = kwargs.get('callback')
            return mock_stream_context()

        with patch('utterance_vad.audio.mic.sd.InputStream', side_effect=capture_callback):
            mic.start()
            time.sleep(0.3)

            captured_callback(np.full((320, 1), 16384, dtype=np.int16), 320, {}, None)
            frame = mic.read_frames()[0]

            assert frame.pcm[0] == pytest.approx(0.5)

            stop_signal.stop()
            mic.join(timeout=1.0)

    def test_stream_failure_is_reported_through_error(self, audio_format, frame_config, stop_signal):
        mic = Mic(stop_signal=stop_signal, audio_format=audio_format, frame_cfg=frame_config)

        with patch('utterance_vad.audio.mic.sd.InputStream', side_effect=RuntimeError("no input device")):
            mic.start()
            mic.join(timeout=1.0)

        assert isinstance(mic.error, RuntimeError)
        assert "no input device" in str(mic.error)
