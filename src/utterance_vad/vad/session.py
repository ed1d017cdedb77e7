"""Per-utterance statistics collected while the state machine is speaking."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional

VARIANCE_HISTORY_SIZE = 20
LOW_BAND_HISTORY_SIZE = 50


@dataclass
class SpeechSession:
    """
    Opened on Idle -> Speaking, closed on Speaking -> Idle.

    `volume_history` only holds loud ticks (volume above the active threshold);
    `variance_history` holds |delta| between successive loud ticks.
    """
    started_at_ms: float
    last_speech_at_ms: float
    generation: int
    volume_history: List[float] = field(default_factory=list)
    variance_history: Deque[float] = field(default_factory=lambda: deque(maxlen=VARIANCE_HISTORY_SIZE))
    low_band_history: Deque[float] = field(default_factory=lambda: deque(maxlen=LOW_BAND_HISTORY_SIZE))
    closed_at_ms: Optional[float] = None

    def record_speech(self, volume: float, now_ms: float) -> None:
        self.last_speech_at_ms = max(self.last_speech_at_ms, now_ms)
        if self.volume_history:
            self.variance_history.append(abs(volume - self.volume_history[-1]))
        self.volume_history.append(volume)

    def record_low_band(self, energy: float) -> None:
        self.low_band_history.append(energy)

    def close(self, now_ms: float) -> None:
        self.closed_at_ms = now_ms

    def speech_duration_ms(self) -> float:
        """Time between onset and the latest loud tick."""
        return self.last_speech_at_ms - self.started_at_ms

    def age_ms(self, now_ms: float) -> float:
        return now_ms - self.started_at_ms

    def total_duration_ms(self) -> float:
        """Wall time from onset to closure (trailing silence included)."""
        end = self.closed_at_ms if self.closed_at_ms is not None else self.last_speech_at_ms
        return end - self.started_at_ms
