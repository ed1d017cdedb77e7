"""Per-tick level measurement from a capture source."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import numpy as np

from ..core.errors import CaptureFailure
from .types import AudioSource, FrameSink, Sample, SamplerConfig

logger = logging.getLogger(__name__)


class LevelSampler:
    """
    Turns the most recent PCM of a capture source into a volume Sample.

    Mirrors a browser AnalyserNode: Blackman-windowed FFT over the last
    `fft_size` samples, exponential smoothing across calls, dB mapped onto
    0..255 bytes. Volume is the mean byte value scaled to 0..1 and the low-band
    energy is the sum of the first `low_band_bins` bytes. After `stall_ticks`
    consecutive reads without frames the window is treated as silence, so a
    stalled source fades to 0 the way a silent stream would.

    Every frame drained from the source is also forwarded to the frame sinks
    (the segment recorder) so recording and sampling see the same stream.
    """

    def __init__(
        self,
        source: AudioSource,
        cfg: SamplerConfig = SamplerConfig(),
        sinks: Optional[Iterable[FrameSink]] = None,
    ):
        self._source = source
        self._cfg = cfg
        self._sinks: List[FrameSink] = list(sinks or [])
        self._window = np.blackman(cfg.fft_size).astype(np.float32)
        self._recent = np.array([], dtype=np.float32)
        self._smoothed = np.zeros(cfg.fft_size // 2, dtype=np.float64)
        self._empty_reads = 0

    @property
    def source(self) -> AudioSource:
        return self._source

    def add_sink(self, sink: FrameSink) -> None:
        self._sinks.append(sink)

    def start(self) -> None:
        self._source.start()

    def close(self) -> None:
        self._source.close()

    def sample(self) -> Sample:
        """Non-blocking. Raises CaptureFailure once the source reports an error."""
        error = self._source.error
        if error is not None:
            raise CaptureFailure(f"Audio capture failed: {error}")

        frames = self._source.read_frames()
        for frame in frames:
            for sink in self._sinks:
                sink.feed(frame)
            self._recent = np.concatenate([self._recent, frame.pcm])[-self._cfg.fft_size:]

        if frames:
            self._empty_reads = 0
        else:
            self._empty_reads += 1
            if self._empty_reads >= self._cfg.stall_ticks and self._recent.size:
                # Stalled or exhausted source: analyse silence so the smoothed level decays to 0
                self._recent = np.zeros(self._cfg.fft_size, dtype=np.float32)

        if self._recent.size == 0:
            return Sample(volume=0.0, low_band_energy=0.0)

        levels = self._byte_frequency_data()
        return Sample(
            volume=float(levels.mean() / 255.0),
            low_band_energy=float(levels[:self._cfg.low_band_bins].sum()),
        )

    def _byte_frequency_data(self) -> np.ndarray:
        size = self._cfg.fft_size
        block = self._recent
        if block.size < size:
            block = np.concatenate([np.zeros(size - block.size, dtype=np.float32), block])

        magnitude = np.abs(np.fft.rfft(block * self._window))[: size // 2] / size
        tau = self._cfg.smoothing
        self._smoothed = tau * self._smoothed + (1.0 - tau) * magnitude

        with np.errstate(divide="ignore"):
            db = 20.0 * np.log10(self._smoothed)
        scaled = (db - self._cfg.min_db) * (255.0 / (self._cfg.max_db - self._cfg.min_db))
        return np.floor(np.clip(scaled, 0.0, 255.0))
