"""Tests for listener adapters."""

import queue
from unittest.mock import Mock

import numpy as np

from utterance_vad.audio.recorder import RawAudio
from utterance_vad.core.events import CallbackListener, NullListener, QueueListener, VADEventType


def raw_audio():
    return RawAudio(pcm=np.zeros(160, dtype=np.float32), sample_rate=16000, started_at_ms=0, ended_at_ms=10)


class TestQueueListener:
    def test_events_are_queued_in_order(self):
        events = queue.Queue()
        listener = QueueListener(events)
        audio = raw_audio()

        listener.on_speech_start()
        listener.on_volume_change(0.4)
        listener.on_segment_ready(audio)
        listener.on_error("boom")

        drained = [events.get_nowait() for _ in range(4)]
        assert [e.type for e in drained] == [
            VADEventType.SPEECH_START,
            VADEventType.VOLUME,
            VADEventType.SEGMENT_READY,
            VADEventType.ERROR,
        ]
        assert drained[1].volume == 0.4
        assert drained[2].audio is audio
        assert drained[3].message == "boom"

    def test_volume_events_can_be_suppressed(self):
        events = queue.Queue()
        listener = QueueListener(events, include_volume=False)

        listener.on_volume_change(0.4)

        assert events.empty()

    def test_full_queue_drops_oldest(self):
        events = queue.Queue(maxsize=2)
        listener = QueueListener(events)

        listener.on_volume_change(0.1)
        listener.on_volume_change(0.2)
        listener.on_volume_change(0.3)

        assert [events.get_nowait().volume for _ in range(2)] == [0.2, 0.3]


class TestCallbackListener:
    def test_only_given_callbacks_run(self):
        on_segment = Mock()
        listener = CallbackListener(on_segment_ready=on_segment)
        audio = raw_audio()

        listener.on_speech_start()
        listener.on_volume_change(0.1)
        listener.on_error("ignored")
        listener.on_segment_ready(audio)

        on_segment.assert_called_once_with(audio)

    def test_null_listener_accepts_everything(self):
        listener = NullListener()
        listener.on_speech_start()
        listener.on_volume_change(0.1)
        listener.on_segment_ready(raw_audio())
        listener.on_error("ignored")
