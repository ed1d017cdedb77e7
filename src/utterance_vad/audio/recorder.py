"""Segment recorder: captures the PCM of one speech session."""

from __future__ import annotations

import io
import logging
import wave
from collections import deque
from dataclasses import dataclass
from typing import List, Optional, Protocol

import numpy as np

from ..core.errors import InvalidSession
from .types import AudioFrame

logger = logging.getLogger(__name__)


@dataclass
class RawAudio:
    """Complete utterance audio segment."""
    pcm: np.ndarray  # full utterance audio float32
    sample_rate: int
    started_at_ms: float
    ended_at_ms: float

    @property
    def duration_ms(self) -> float:
        return self.ended_at_ms - self.started_at_ms

    def to_wav_bytes(self) -> bytes:
        """Encode as 16-bit mono PCM WAV."""
        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wave_file:
            wave_file.setnchannels(1)
            wave_file.setsampwidth(2)
            wave_file.setframerate(self.sample_rate)

            audio_int16 = (np.clip(self.pcm, -1.0, 1.0) * 32767).astype(np.int16)
            wave_file.writeframes(audio_int16.tobytes())
        return buffer.getvalue()


class SegmentRecorder(Protocol):
    """Bytes-capture sink driven in lockstep with the speech state machine."""

    @property
    def is_recording(self) -> bool: ...

    def start(self, now_ms: float) -> None: ...

    def stop(self, now_ms: float) -> RawAudio: ...


class BufferedSegmentRecorder:
    """
    Keeps frames fed to it while recording and returns them as RawAudio on stop.

    While idle it retains `pre_roll_ms` of the most recent audio, which is
    prepended to the next recording so the speech onset is not clipped.
    """

    def __init__(self, sample_rate: int = 16000, pre_roll_ms: int = 200, frame_ms: int = 20):
        self._sample_rate = sample_rate
        pre_roll_frames = int(pre_roll_ms / frame_ms) if frame_ms > 0 else 0
        self._pre_roll_buffer: Optional[deque[np.ndarray]] = (
            deque(maxlen=pre_roll_frames) if pre_roll_frames > 0 else None
        )
        self._parts: List[np.ndarray] = []
        self._recording = False
        self._started_at_ms = 0.0

    @property
    def is_recording(self) -> bool:
        return self._recording

    def feed(self, frame: AudioFrame) -> None:
        self._sample_rate = frame.sample_rate
        if self._recording:
            self._parts.append(frame.pcm)
        elif self._pre_roll_buffer is not None:
            self._pre_roll_buffer.append(frame.pcm)

    def start(self, now_ms: float) -> None:
        if self._recording:
            raise InvalidSession("Recorder start() called while already recording")
        self._recording = True
        self._started_at_ms = now_ms
        self._parts = list(self._pre_roll_buffer) if self._pre_roll_buffer is not None else []
        if self._pre_roll_buffer is not None:
            self._pre_roll_buffer.clear()

    def stop(self, now_ms: float) -> RawAudio:
        if not self._recording:
            raise InvalidSession("Recorder stop() called while idle")
        self._recording = False
        pcm = np.concatenate(self._parts) if self._parts else np.array([], dtype=np.float32)
        self._parts = []
        logger.debug(f"Recorder stopped: {len(pcm)} samples over {now_ms - self._started_at_ms:.0f}ms")
        return RawAudio(
            pcm=pcm,
            sample_rate=self._sample_rate,
            started_at_ms=self._started_at_ms,
            ended_at_ms=now_ms,
        )
