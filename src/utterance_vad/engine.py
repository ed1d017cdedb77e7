"""VAD engine: wires sampling, thresholds and the segmentation state machine into a tick."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from .audio.recorder import SegmentRecorder
from .audio.sampler import LevelSampler
from .config.settings import VADConfig
from .core.errors import CaptureFailure
from .core.events import NullListener, VADListener
from .core.shutdown import StopSignal
from .vad.levels import AdaptiveThresholdCalculator, BackgroundEnergyTracker, VolumeWindow
from .vad.state_machine import SpeechSegmentStateMachine, VADState

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class ManualClock:
    """Clock advanced explicitly; used for offline replay and tests."""

    def __init__(self, start_ms: float = 0.0):
        self._now_ms = start_ms

    def __call__(self) -> float:
        return self._now_ms

    def advance(self, delta_ms: float) -> float:
        self._now_ms += delta_ms
        return self._now_ms


class VADEngine:
    """
    Single-threaded VAD engine driven by `tick()`.

    Each tick reads the configuration snapshot once, samples the level,
    reports the volume, refreshes the background window and advances the
    state machine. `tick()`, `stop()` and `update_config()` share one lock, so
    a configuration swap or teardown never lands in the middle of a tick.
    """

    def __init__(
        self,
        sampler: LevelSampler,
        recorder: SegmentRecorder,
        listener: Optional[VADListener] = None,
        config: Optional[VADConfig] = None,
        clock: Clock = monotonic_ms,
    ):
        self._sampler = sampler
        self._recorder = recorder
        self._listener: VADListener = listener or NullListener()
        self._config = config or VADConfig()
        self._clock = clock
        self._lock = threading.RLock()
        self._listening = False

        self._window = VolumeWindow()
        self._threshold = AdaptiveThresholdCalculator(self._window)
        self._background = BackgroundEnergyTracker(self._window)
        self._machine = SpeechSegmentStateMachine(recorder=recorder, listener=self._listener)

    @property
    def config(self) -> VADConfig:
        return self._config

    @property
    def state(self) -> VADState:
        return self._machine.state

    @property
    def machine(self) -> SpeechSegmentStateMachine:
        return self._machine

    @property
    def is_listening(self) -> bool:
        return self._listening

    def status(self) -> Dict[str, bool]:
        return {
            "listening": self._listening,
            "speaking": self._machine.state is VADState.SPEAKING,
        }

    def start(self) -> None:
        """Start the capture source. Failures are surfaced via on_error and re-raised."""
        with self._lock:
            if self._listening:
                return
            try:
                self._sampler.start()
            except CaptureFailure as e:
                logger.error(f"Failed to start audio capture: {e}")
                self._listener.on_error(str(e))
                raise
            self._listening = True
            logger.info("VAD engine listening")

    def update_config(self, config: Optional[VADConfig] = None, **changes: Any) -> VADConfig:
        """
        Replace the configuration snapshot; takes effect on the next tick.

        Pass a whole VADConfig, or keyword overrides applied to the current one.
        """
        with self._lock:
            base = config if config is not None else self._config
            if changes:
                # model_copy skips validation; rebuild so overrides are checked
                base = VADConfig(**{**base.model_dump(), **changes})
            self._config = base
            logger.debug(f"Configuration updated: {changes or 'replaced'}")
            return self._config

    def tick(self) -> bool:
        """Run one sampling step. Returns False once the engine is no longer listening."""
        with self._lock:
            if not self._listening:
                return False

            cfg = self._config
            now_ms = self._clock()
            try:
                sample = self._sampler.sample()
            except CaptureFailure as e:
                logger.error(f"Capture failure, stopping engine: {e}")
                self._listener.on_error(str(e))
                self._teardown(now_ms)
                return False

            self._listener.on_volume_change(sample.volume)

            self._window.push(sample.volume)
            background_level = self._background.update(cfg)
            threshold = self._threshold.threshold(cfg)

            self._machine.step(sample, now_ms, cfg, threshold, background_level)
            return True

    def stop(self) -> None:
        """Cancel timers, drop any live session unvalidated and release the capture source."""
        with self._lock:
            if not self._listening:
                return
            self._teardown(self._clock())
            logger.info("VAD engine stopped")

    def _teardown(self, now_ms: float) -> None:
        self._listening = False
        try:
            self._machine.abort(now_ms)
        finally:
            self._sampler.close()
            self._window.clear()
            self._background.reset()


class EngineRunner(threading.Thread):
    """Calls `engine.tick()` at a fixed cadence until stopped or capture fails."""

    def __init__(
        self,
        engine: VADEngine,
        stop_signal: StopSignal,
        tick_interval_ms: int = 16,
    ):
        super().__init__(name="VADEngineThread", daemon=True)
        self._engine = engine
        self._stop_signal = stop_signal
        self._interval_s = tick_interval_ms / 1000.0

    def run(self) -> None:
        try:
            next_tick = time.monotonic()
            while not self._stop_signal.is_set():
                if not self._engine.tick():
                    break
                next_tick += self._interval_s
                delay = next_tick - time.monotonic()
                if delay > 0:
                    self._stop_signal.wait(delay)
                else:
                    # Fell behind; resync instead of bursting ticks
                    next_tick = time.monotonic()
        finally:
            self._engine.stop()
            logger.info("VAD engine thread exited")
