"""Audio capture data types and configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, Union

import numpy as np


@dataclass(frozen=True)
class AudioFormat:
    """Audio format specification."""
    sample_rate: int = 16000
    channels: int = 1
    dtype: str = "float32"  # sounddevice dtype name


@dataclass(frozen=True)
class FrameConfig:
    """Frame-level audio capture configuration."""
    frame_ms: int = 20
    max_frames_queue: int = 400


@dataclass(frozen=True)
class SamplerConfig:
    """Spectrum analyser settings used to turn PCM into a level Sample."""
    fft_size: int = 256
    smoothing: float = 0.8
    min_db: float = -100.0
    max_db: float = -30.0
    low_band_bins: int = 32
    stall_ticks: int = 3     # empty reads before the source counts as silent


@dataclass
class AudioFrame:
    """Single block of captured audio."""
    pcm: np.ndarray          # shape: (n_samples,) float32
    sample_rate: int
    timestamp_s: float


@dataclass(frozen=True)
class Sample:
    """Level measurement produced once per tick."""
    volume: float            # 0..1
    low_band_energy: float   # sum of the low-frequency analyser bins


class AudioSource(Protocol):
    """Capture source the level sampler reads from."""

    @property
    def error(self) -> Optional[Union[BaseException, str]]: ...

    def start(self) -> None: ...

    def read_frames(self) -> List[AudioFrame]: ...

    def close(self) -> None: ...


class FrameSink(Protocol):
    def feed(self, frame: AudioFrame) -> None: ...
