"""Idle/Speaking segmentation state machine with silence, pause and max-duration timers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Union

from ..audio.recorder import SegmentRecorder
from ..audio.types import Sample
from ..config.settings import VADConfig
from ..core.errors import InvalidSession
from ..core.events import VADListener
from ..core.scheduler import Scheduler, TaskHandle, TimerKind
from .heuristics import (
    PAUSE_CONFIRM_MS,
    background_force_stop_reason,
    background_heuristics_enabled,
    is_pause_candidate,
    pause_confirmed,
    pause_detection_enabled,
)
from .session import SpeechSession
from .validator import UtteranceValidator, UtteranceVerdict

logger = logging.getLogger(__name__)

SHORT_SPEECH_MIN_MS = 100
SHORT_SPEECH_MAX_MS = 1000
SHORT_SPEECH_SILENCE_MS = 500
LOW_VOLUME_EDGE_MS = 200


class VADState(Enum):
    IDLE = auto()
    SPEAKING = auto()


@dataclass(frozen=True)
class Idle:
    state: VADState = VADState.IDLE


@dataclass(frozen=True)
class Speaking:
    session: SpeechSession
    state: VADState = VADState.SPEAKING


Phase = Union[Idle, Speaking]

IDLE = Idle()


class SpeechSegmentStateMachine:
    """
    Drives one recorder through Idle -> Speaking -> Idle transitions.

    Call `step()` once per tick. Within a tick the closure paths run in a fixed
    precedence: max-duration guard, BGM force-stop, pause confirmation, silence
    timer. The first one that closes the session wins and the rest see Idle.
    The sample is then applied to whatever state remains, so a loud sample in
    the same tick may open the next session.
    """

    def __init__(
        self,
        recorder: SegmentRecorder,
        listener: VADListener,
        validator: Optional[UtteranceValidator] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self._recorder = recorder
        self._listener = listener
        self._validator = validator or UtteranceValidator()
        self._scheduler = scheduler or Scheduler()
        self._phase: Phase = IDLE
        self._cfg = VADConfig()
        self._generation = 0
        self._last_low_volume_at_ms: Optional[float] = None
        self.last_verdict: Optional[UtteranceVerdict] = None

    @property
    def state(self) -> VADState:
        return self._phase.state

    @property
    def session(self) -> Optional[SpeechSession]:
        return self._phase.session if isinstance(self._phase, Speaking) else None

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def sessions_opened(self) -> int:
        return self._generation

    def step(
        self,
        sample: Sample,
        now_ms: float,
        cfg: VADConfig,
        threshold: float,
        background_level: float = 0.0,
    ) -> None:
        self._cfg = cfg
        self._run_closure_paths(now_ms)

        if sample.volume > threshold:
            self._on_loud(sample.volume, now_ms)
        else:
            self._on_quiet(now_ms)

        session = self.session
        if session is None:
            return
        session.record_low_band(sample.low_band_energy)

        if pause_detection_enabled(cfg) and not self._scheduler.is_armed(TimerKind.PAUSE_CONFIRM):
            if is_pause_candidate(
                session, sample.volume, now_ms, cfg, background_level, self._last_low_volume_at_ms
            ):
                self._scheduler.schedule(
                    TimerKind.PAUSE_CONFIRM,
                    PAUSE_CONFIRM_MS,
                    self._on_pause_timer,
                    now_ms=now_ms,
                    generation=session.generation,
                )

    def abort(self, now_ms: float) -> None:
        """Discard the live session without a verdict (engine teardown)."""
        self._scheduler.cancel_all()
        if isinstance(self._phase, Speaking):
            if self._recorder.is_recording:
                self._recorder.stop(now_ms)
            logger.info("Speech session discarded on stop")
        self._phase = IDLE
        self._last_low_volume_at_ms = None

    # Transitions

    def _open(self, now_ms: float) -> SpeechSession:
        self._generation += 1
        session = SpeechSession(
            started_at_ms=now_ms,
            last_speech_at_ms=now_ms,
            generation=self._generation,
        )
        self._recorder.start(now_ms)
        self._phase = Speaking(session=session)
        logger.info(f"Speech started (session {session.generation})")
        self._listener.on_speech_start()

        if self._cfg.max_recording_duration_ms > 0:
            self._scheduler.schedule(
                TimerKind.MAX_DURATION,
                self._cfg.max_recording_duration_ms,
                self._on_max_duration_timer,
                now_ms=now_ms,
                generation=session.generation,
            )
        return session

    def _close(self, now_ms: float, cause: str) -> UtteranceVerdict:
        if not isinstance(self._phase, Speaking):
            raise InvalidSession(f"Cannot close a session while idle (cause: {cause})")
        session = self._phase.session

        self._scheduler.cancel_all()
        audio = self._recorder.stop(now_ms)
        session.close(now_ms)
        self._phase = IDLE

        verdict = self._validator.validate(session, self._cfg)
        self.last_verdict = verdict
        if verdict.accepted:
            logger.info(
                f"Speech ended by {cause}: accepted {session.total_duration_ms():.0f}ms utterance "
                f"(session {session.generation})"
            )
            self._listener.on_segment_ready(audio)
        else:
            logger.debug(f"Speech ended by {cause}: rejected as {verdict.reason.name} ({verdict.detail})")
        return verdict

    # Per-tick handling

    def _on_loud(self, volume: float, now_ms: float) -> None:
        session = self.session
        if session is None:
            session = self._open(now_ms)
        session.record_speech(volume, now_ms)
        self._scheduler.cancel_kind(TimerKind.SILENCE)

    def _on_quiet(self, now_ms: float) -> None:
        session = self.session
        # Marks the leading edge of a quiet stretch that follows speech
        if self._last_low_volume_at_ms is None or (
            session is not None and now_ms - session.last_speech_at_ms < LOW_VOLUME_EDGE_MS
        ):
            self._last_low_volume_at_ms = now_ms

        if session is not None and not self._scheduler.is_armed(TimerKind.SILENCE):
            self._scheduler.schedule(
                TimerKind.SILENCE,
                self._silence_wait_ms(session),
                self._on_silence_timer,
                now_ms=now_ms,
                generation=session.generation,
            )

    def _silence_wait_ms(self, session: SpeechSession) -> float:
        wait = self._cfg.silence_duration_ms
        speech_ms = session.speech_duration_ms()
        if SHORT_SPEECH_MIN_MS < speech_ms < SHORT_SPEECH_MAX_MS:
            wait = min(SHORT_SPEECH_SILENCE_MS, wait)
            logger.debug(f"Short utterance ({speech_ms:.0f}ms): silence wait shortened to {wait}ms")
        return wait

    def _run_closure_paths(self, now_ms: float) -> None:
        due = self._scheduler.pop_due(now_ms)

        self._fire(due.get(TimerKind.MAX_DURATION), now_ms)

        session = self.session
        if session is not None and background_heuristics_enabled(self._cfg):
            reason = background_force_stop_reason(session, now_ms, self._last_low_volume_at_ms)
            if reason is not None:
                logger.info(f"Forcing stop for background audio: {reason}")
                self._close(now_ms, "background force-stop")

        self._fire(due.get(TimerKind.PAUSE_CONFIRM), now_ms)
        self._fire(due.get(TimerKind.SILENCE), now_ms)

    def _fire(self, handle: Optional[TaskHandle], now_ms: float) -> None:
        if handle is None or handle.cancelled:
            return
        session = self.session
        if session is None or session.generation != handle.generation:
            logger.debug(f"Ignoring stale {handle.kind.name} timer (generation {handle.generation})")
            return
        handle.callback(now_ms)

    # Timer callbacks

    def _on_max_duration_timer(self, now_ms: float) -> None:
        logger.info(f"Max recording duration ({self._cfg.max_recording_duration_ms}ms) reached")
        self._close(now_ms, "max-duration guard")

    def _on_pause_timer(self, now_ms: float) -> None:
        session = self.session
        if session is not None and pause_confirmed(session, now_ms, self._last_low_volume_at_ms):
            logger.info(
                f"Natural pause detected: {now_ms - session.last_speech_at_ms:.0f}ms since speech, "
                f"session age {session.age_ms(now_ms):.0f}ms"
            )
            self._close(now_ms, "speech pause")

    def _on_silence_timer(self, now_ms: float) -> None:
        self._close(now_ms, "silence")
