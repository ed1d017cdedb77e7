"""Classifies a closed speech session as speech, a cough, or stationary noise."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

import numpy as np

from ..config.settings import VADConfig
from .session import SpeechSession

logger = logging.getLogger(__name__)

PEAK_DELTA = 0.05


class VerdictReason(Enum):
    ACCEPTED = auto()
    TOO_QUIET = auto()
    TOO_SHORT = auto()
    COUGH_PATTERN = auto()
    NOISE_PATTERN = auto()


@dataclass(frozen=True)
class UtteranceVerdict:
    accepted: bool
    reason: VerdictReason
    detail: str = ""

    @classmethod
    def accept(cls, detail: str = "") -> "UtteranceVerdict":
        return cls(accepted=True, reason=VerdictReason.ACCEPTED, detail=detail)

    @classmethod
    def reject(cls, reason: VerdictReason, detail: str) -> "UtteranceVerdict":
        return cls(accepted=False, reason=reason, detail=detail)


def count_peaks(volumes: np.ndarray, delta: float = PEAK_DELTA) -> int:
    """Local maxima that exceed both neighbours by more than `delta`."""
    if len(volumes) < 3:
        return 0
    current = volumes[1:-1]
    peaks = (current > volumes[:-2] + delta) & (current > volumes[2:] + delta)
    return int(peaks.sum())


class UtteranceValidator:
    """
    Rules run in order and the first failing one rejects:
    basic volume/duration checks, then cough shapes, then noise shapes.
    Never raises: a rejection is a normal outcome.
    """

    def validate(self, session: SpeechSession, cfg: VADConfig) -> UtteranceVerdict:
        volumes = np.asarray(session.volume_history, dtype=np.float64)

        if not cfg.noise_filter_enabled:
            if volumes.size:
                return UtteranceVerdict.accept("noise filter disabled")
            return UtteranceVerdict.reject(VerdictReason.TOO_QUIET, "no speech samples")

        if volumes.size == 0:
            return UtteranceVerdict.reject(VerdictReason.TOO_QUIET, "no speech samples")

        return (
            self._basic_validation(session, volumes, cfg)
            or self._cough_pattern(session, volumes)
            or self._noise_pattern(session, volumes, cfg)
            or UtteranceVerdict.accept(
                f"speech={session.speech_duration_ms():.0f}ms total={session.total_duration_ms():.0f}ms"
            )
        )

    def _basic_validation(
        self, session: SpeechSession, volumes: np.ndarray, cfg: VADConfig
    ) -> Optional[UtteranceVerdict]:
        mean = float(volumes.mean())
        peak = float(volumes.max())
        duration = session.speech_duration_ms()

        if mean < cfg.min_speech_volume:
            return UtteranceVerdict.reject(VerdictReason.TOO_QUIET, f"mean volume {mean:.3f}")
        if peak < cfg.min_speech_volume * 2:
            return UtteranceVerdict.reject(VerdictReason.TOO_QUIET, f"peak volume {peak:.3f}")
        if duration < cfg.min_speech_duration_ms:
            return UtteranceVerdict.reject(VerdictReason.TOO_SHORT, f"speech lasted {duration:.0f}ms")
        return None

    def _cough_pattern(self, session: SpeechSession, volumes: np.ndarray) -> Optional[UtteranceVerdict]:
        duration = session.speech_duration_ms()
        total = session.total_duration_ms()
        mean = float(volumes.mean())
        peak = float(volumes.max())
        variances = np.asarray(session.variance_history, dtype=np.float64)

        # Short burst followed by the recorder idling on trailing silence
        if duration < 800 and total > duration + 500:
            return UtteranceVerdict.reject(
                VerdictReason.COUGH_PATTERN, f"speech {duration:.0f}ms inside {total:.0f}ms recording"
            )

        if duration < 1000 and peak > 0.1 and (peak - mean) > 0.05:
            return UtteranceVerdict.reject(
                VerdictReason.COUGH_PATTERN, f"sharp spike peak={peak:.3f} mean={mean:.3f}"
            )

        if variances.size >= 6 and duration < 800:
            if variances.max() > 0.08 and variances.mean() > 0.03:
                return UtteranceVerdict.reject(
                    VerdictReason.COUGH_PATTERN, f"extreme jitter max={variances.max():.3f}"
                )

        if volumes.size >= 10 and duration < 1500:
            peaks = count_peaks(volumes)
            if peaks >= 2:
                return UtteranceVerdict.reject(VerdictReason.COUGH_PATTERN, f"{peaks} staccato peaks")

        return None

    def _noise_pattern(
        self, session: SpeechSession, volumes: np.ndarray, cfg: VADConfig
    ) -> Optional[UtteranceVerdict]:
        mean = float(volumes.mean())
        peak = float(volumes.max())
        variances = np.asarray(session.variance_history, dtype=np.float64)
        low_band = np.asarray(session.low_band_history, dtype=np.float64)

        # Flat, low-energy hum such as breathing
        if variances.size >= 8 and variances.mean() < cfg.volume_stability_threshold and peak < 0.05:
            return UtteranceVerdict.reject(
                VerdictReason.NOISE_PATTERN, f"stable volume jitter={variances.mean():.4f} peak={peak:.3f}"
            )

        # Energy concentrated in the low band with no real amplitude
        if low_band.size >= 15:
            recent = low_band[-15:]
            if recent.mean() > recent.max() * 0.9 and mean < 0.03:
                return UtteranceVerdict.reject(
                    VerdictReason.NOISE_PATTERN, f"low-band rumble mean={recent.mean():.1f}"
                )

        if volumes.size >= 12:
            recent = volumes[-12:]
            spread = float(recent.max() - recent.min())
            if spread < cfg.min_speech_volume * 0.5 and float(recent.mean()) < cfg.min_speech_volume * 1.2:
                return UtteranceVerdict.reject(
                    VerdictReason.NOISE_PATTERN, f"flat envelope range={spread:.4f}"
                )

        return None
