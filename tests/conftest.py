import pytest
import os
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from utterance_vad.audio.recorder import BufferedSegmentRecorder, RawAudio
from utterance_vad.audio.types import Sample
from utterance_vad.config.settings import VADConfig
from utterance_vad.core.errors import CaptureFailure
from utterance_vad.engine import ManualClock, VADEngine


class ScriptedSampler:
    """Stands in for LevelSampler: returns whatever volume the test sets."""

    def __init__(self):
        self.volume = 0.0
        self.low_band = 0.0
        self.fail_with: Optional[str] = None
        self.started = False
        self.closed = False

    def start(self):
        self.started = True

    def close(self):
        self.closed = True

    def sample(self) -> Sample:
        if self.fail_with is not None:
            raise CaptureFailure(self.fail_with)
        return Sample(volume=self.volume, low_band_energy=self.low_band)


@dataclass
class RecordingListener:
    """Collects every engine callback in order."""
    events: List[tuple] = field(default_factory=list)

    def on_speech_start(self):
        self.events.append(("speech_start",))

    def on_volume_change(self, volume):
        self.events.append(("volume", volume))

    def on_segment_ready(self, audio):
        self.events.append(("segment", audio))

    def on_error(self, message):
        self.events.append(("error", message))

    @property
    def speech_starts(self) -> int:
        return sum(1 for e in self.events if e[0] == "speech_start")

    @property
    def segments(self) -> List[RawAudio]:
        return [e[1] for e in self.events if e[0] == "segment"]

    @property
    def errors(self) -> List[str]:
        return [e[1] for e in self.events if e[0] == "error"]

    @property
    def volume_count(self) -> int:
        return sum(1 for e in self.events if e[0] == "volume")


@dataclass
class Harness:
    engine: VADEngine
    sampler: ScriptedSampler
    recorder: BufferedSegmentRecorder
    listener: RecordingListener
    clock: ManualClock

    def run(self, volume: float, duration_ms: int, step_ms: int = 10, low_band: float = 0.0) -> None:
        """Tick once per step at a constant volume; the clock moves after each tick."""
        for _ in range(duration_ms // step_ms):
            self.sampler.volume = volume
            self.sampler.low_band = low_band
            self.engine.tick()
            self.clock.advance(step_ms)

    def run_pattern(self, volumes, step_ms: int = 10, low_band: float = 0.0) -> None:
        for volume in volumes:
            self.sampler.volume = volume
            self.sampler.low_band = low_band
            self.engine.tick()
            self.clock.advance(step_ms)


@pytest.fixture
def make_harness():
    """Build a started engine around a scripted sampler and a fake clock."""

    def _make(**overrides) -> Harness:
        clock = ManualClock()
        sampler = ScriptedSampler()
        recorder = BufferedSegmentRecorder(pre_roll_ms=0)
        listener = RecordingListener()
        engine = VADEngine(
            sampler=sampler,
            recorder=recorder,
            listener=listener,
            config=VADConfig(**overrides),
            clock=clock,
        )
        engine.start()
        return Harness(engine=engine, sampler=sampler, recorder=recorder, listener=listener, clock=clock)

    return _make


@pytest.fixture
def setup_test_env():
    """Setup test environment variables"""
    original_env = os.environ.copy()

    os.environ["VAD_SILENCE_THRESHOLD"] = "0.05"
    os.environ["VAD_SILENCE_DURATION_MS"] = "1200"

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def mock_audio_data():
    """Mock audio data for testing"""
    return np.random.default_rng(0).uniform(-0.3, 0.3, 16000).astype(np.float32)  # 1 second at 16kHz
