"""Forced-closure heuristics for long-running background sources (system audio, BGM)."""

from __future__ import annotations

from typing import Optional

from ..config.settings import VADConfig
from .session import SpeechSession

PAUSE_MIN_AGE_MS = 5000
PAUSE_MIN_LOW_MS = 1000
PAUSE_CONFIRM_MS = 800


def background_heuristics_enabled(cfg: VADConfig) -> bool:
    return cfg.background_source and cfg.background_music_detection


def pause_detection_enabled(cfg: VADConfig) -> bool:
    return cfg.background_source and cfg.speech_pause_threshold > 0


def background_force_stop_reason(
    session: SpeechSession, now_ms: float, last_low_volume_at_ms: Optional[float]
) -> Optional[str]:
    """Return why a BGM-dominated session should be cut now, or None."""
    age = session.age_ms(now_ms)
    since_speech = now_ms - session.last_speech_at_ms

    if age > 20000:
        return f"session exceeded 20000ms ({age:.0f}ms)"
    if age > 10000 and since_speech > 3000:
        return f"music-dominated: {since_speech:.0f}ms since last speech"
    if last_low_volume_at_ms is not None:
        since_low = now_ms - last_low_volume_at_ms
        if since_low > 4000 and age > 8000:
            return f"{since_low:.0f}ms since the last quiet stretch began"
    return None


def is_pause_candidate(
    session: SpeechSession,
    volume: float,
    now_ms: float,
    cfg: VADConfig,
    background_level: float,
    last_low_volume_at_ms: Optional[float],
) -> bool:
    """A low-but-not-silent tick, more than 1s into a quiet stretch, in a session older than 5s."""
    if session.age_ms(now_ms) < PAUSE_MIN_AGE_MS:
        return False
    if not (background_level < volume < cfg.speech_pause_threshold):
        return False
    if last_low_volume_at_ms is None:
        return False
    return now_ms - last_low_volume_at_ms >= PAUSE_MIN_LOW_MS


def pause_confirmed(session: SpeechSession, now_ms: float, last_low_volume_at_ms: Optional[float]) -> bool:
    age = session.age_ms(now_ms)
    if now_ms - session.last_speech_at_ms >= 800 and age >= 8000:
        return True
    if last_low_volume_at_ms is not None and now_ms - last_low_volume_at_ms >= 2000 and age >= 6000:
        return True
    return False
