"""Sliding-window volume statistics: adaptive threshold and background floor."""

from __future__ import annotations

from collections import deque
from typing import Deque

import numpy as np

from ..config.settings import VADConfig

WINDOW_SIZE = 100
RECENT_SIZE = 50
MIN_SAMPLES = 20


class VolumeWindow:
    """Ring buffer of the last 100 volumes, refreshed every tick regardless of state."""

    def __init__(self, size: int = WINDOW_SIZE):
        self._volumes: Deque[float] = deque(maxlen=size)

    def push(self, volume: float) -> None:
        self._volumes.append(volume)

    def __len__(self) -> int:
        return len(self._volumes)

    def recent(self, count: int = RECENT_SIZE) -> np.ndarray:
        return np.fromiter(self._volumes, dtype=np.float64)[-count:]

    def clear(self) -> None:
        self._volumes.clear()


class AdaptiveThresholdCalculator:
    """
    Raises the silence threshold when the recent signal sits on a bed of energy.

    threshold = max(base, min + 0.3 * (avg - min)), never above 3 * base.
    Falls back to the static threshold until 20 samples exist or when
    adaptive detection is disabled.
    """

    def __init__(self, window: VolumeWindow):
        self._window = window

    def threshold(self, cfg: VADConfig) -> float:
        base = cfg.silence_threshold
        if not cfg.adaptive_silence_detection or len(self._window) < MIN_SAMPLES:
            return base

        recent = self._window.recent()
        avg = float(recent.mean())
        low = float(recent.min())
        adaptive = max(base, low + (avg - low) * 0.3)
        return min(adaptive, base * 3)


class BackgroundEnergyTracker:
    """Noise floor: 25th percentile (lower-quartile element) of the last 50 volumes."""

    def __init__(self, window: VolumeWindow):
        self._window = window
        self._level = 0.0

    @property
    def level(self) -> float:
        return self._level

    def update(self, cfg: VADConfig) -> float:
        if cfg.background_music_detection and len(self._window) >= MIN_SAMPLES:
            ordered = np.sort(self._window.recent())
            self._level = float(ordered[int(len(ordered) * 0.25)])
        return self._level

    def reset(self) -> None:
        self._level = 0.0
