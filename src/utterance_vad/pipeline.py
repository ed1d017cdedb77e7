"""Capture-to-segment pipeline facade."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional

from .audio.recorder import BufferedSegmentRecorder
from .audio.sampler import LevelSampler
from .audio.types import AudioFormat, AudioSource, FrameConfig, SamplerConfig
from .config.settings import VADConfig
from .core.events import VADListener
from .core.shutdown import GracefulShutdown
from .engine import Clock, EngineRunner, VADEngine, monotonic_ms


@dataclass(frozen=True)
class PipelineConfig:
    """Configuration for the capture pipeline."""
    audio_format: AudioFormat = AudioFormat()
    frame: FrameConfig = FrameConfig()
    sampler: SamplerConfig = SamplerConfig()
    vad: VADConfig = field(default_factory=VADConfig)
    tick_interval_ms: int = 16
    pre_roll_ms: int = 200
    input_device: Optional[int] = None


class VADPipeline:
    """
    Audio input facade.

    Responsibilities:
    - Capture (microphone thread unless a custom source is given)
    - Level sampling and segment recording on the same frames
    - Engine ticking on its own thread

    Accepted utterances reach the caller only through the listener.
    """

    def __init__(
        self,
        shutdown_signal: GracefulShutdown,
        listener: VADListener,
        cfg: PipelineConfig = PipelineConfig(),
        source: Optional[AudioSource] = None,
        clock: Clock = monotonic_ms,
    ):
        self._shutdown_signal = shutdown_signal
        self._cfg = cfg

        if source is None:
            # sounddevice needs PortAudio at import time
            from .audio.mic import Mic

            source = Mic(
                stop_signal=shutdown_signal,
                audio_format=cfg.audio_format,
                frame_cfg=cfg.frame,
                device=cfg.input_device,
            )
        self.source: AudioSource = source
        self.recorder = BufferedSegmentRecorder(
            sample_rate=cfg.audio_format.sample_rate,
            pre_roll_ms=cfg.pre_roll_ms,
            frame_ms=cfg.frame.frame_ms,
        )
        self.sampler = LevelSampler(self.source, cfg=cfg.sampler, sinks=[self.recorder])
        self.engine = VADEngine(
            sampler=self.sampler,
            recorder=self.recorder,
            listener=listener,
            config=cfg.vad,
            clock=clock,
        )
        self._runner = EngineRunner(
            engine=self.engine,
            stop_signal=shutdown_signal,
            tick_interval_ms=cfg.tick_interval_ms,
        )

    def start(self) -> None:
        """Start capture and the engine thread."""
        self.engine.start()
        self._runner.start()

    def stop(self) -> None:
        """Signal the engine thread to stop and wait for it."""
        self._shutdown_signal.stop()
        self.join()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._runner.is_alive():
            self._runner.join(timeout)
        if isinstance(self.source, threading.Thread) and self.source.is_alive():
            self.source.join(timeout)
