"""Non-microphone audio sources: caller-fed queues and WAV file replay."""

from __future__ import annotations

import queue
import logging
import threading
import wave
from pathlib import Path
from typing import Callable, List, Optional

import numpy as np

from ..core.errors import CaptureFailure
from .types import AudioFrame, FrameConfig

logger = logging.getLogger("AudioSources")


class QueueAudioSource:
    """
    An AudioSource that consumes frames pushed by the caller.
    Useful for loopback/system audio captured elsewhere, or tests.
    """

    def __init__(self, frames_queue: Optional[queue.Queue[AudioFrame]] = None):
        self._frames_queue = frames_queue if frames_queue is not None else queue.Queue(maxsize=400)
        self._closed = threading.Event()
        self._error: Optional[str] = None

    @property
    def error(self) -> Optional[str]:
        return self._error

    def start(self) -> None:
        if self._closed.is_set():
            raise CaptureFailure("QueueAudioSource was already closed")
        logger.info("QueueAudioSource started")

    def push(self, frame: AudioFrame) -> None:
        """External API to push frames into this source."""
        if self._closed.is_set():
            return
        try:
            self._frames_queue.put_nowait(frame)
        except queue.Full:
            logger.warning("QueueAudioSource: internal queue full, dropping frame")

    def fail(self, message: str) -> None:
        """Report a hard failure of the upstream stream; the engine treats it as fatal."""
        self._error = message

    def read_frames(self) -> List[AudioFrame]:
        frames = []
        while True:
            try:
                frames.append(self._frames_queue.get_nowait())
            except queue.Empty:
                return frames

    def close(self) -> None:
        self._closed.set()
        logger.info("QueueAudioSource closed")


def read_wav(path: Path) -> tuple[np.ndarray, int]:
    """Load a PCM WAV file as mono float32 in [-1, 1]."""
    with wave.open(str(path), "rb") as wave_file:
        channels = wave_file.getnchannels()
        sample_width = wave_file.getsampwidth()
        sample_rate = wave_file.getframerate()
        raw = wave_file.readframes(wave_file.getnframes())

    if sample_width == 2:
        pcm = np.frombuffer(raw, dtype=np.int16).astype(np.float32) / 32768.0
    elif sample_width == 4:
        pcm = np.frombuffer(raw, dtype=np.int32).astype(np.float32) / 2147483648.0
    elif sample_width == 1:
        pcm = (np.frombuffer(raw, dtype=np.uint8).astype(np.float32) - 128.0) / 128.0
    else:
        raise CaptureFailure(f"Unsupported WAV sample width: {sample_width} bytes")

    if channels > 1:
        pcm = pcm.reshape(-1, channels)[:, 0]
    return pcm, sample_rate


class WavFileSource:
    """
    Replays a WAV file in step with the engine clock.

    Each `read_frames()` call returns the frames whose audio lies before the
    current clock position, so a virtual clock replays faster than real time.
    """

    def __init__(
        self,
        path: Path,
        clock_ms: Callable[[], float],
        frame_cfg: FrameConfig = FrameConfig(),
    ):
        self._path = Path(path)
        self._clock_ms = clock_ms
        self._frame_cfg = frame_cfg
        self._pcm = np.array([], dtype=np.float32)
        self._sample_rate = 16000
        self._position = 0
        self._origin_ms: Optional[float] = None
        self._error: Optional[str] = None
        self._closed = False

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def exhausted(self) -> bool:
        return self._position >= len(self._pcm)

    def start(self) -> None:
        try:
            self._pcm, self._sample_rate = read_wav(self._path)
        except (OSError, EOFError, wave.Error) as e:
            raise CaptureFailure(f"Cannot open {self._path}: {e}") from e
        if len(self._pcm) == 0:
            raise CaptureFailure(f"{self._path} contains no audio")
        self._origin_ms = self._clock_ms()
        logger.info(f"Replaying {self._path} ({len(self._pcm) / self._sample_rate:.1f}s @ {self._sample_rate} Hz)")

    def read_frames(self) -> List[AudioFrame]:
        if self._closed or self._origin_ms is None:
            return []

        elapsed_ms = self._clock_ms() - self._origin_ms
        target = min(len(self._pcm), int(elapsed_ms * self._sample_rate / 1000))
        frame_len = max(1, int(self._sample_rate * self._frame_cfg.frame_ms / 1000))

        frames = []
        while self._position + frame_len <= target or (target == len(self._pcm) and self._position < target):
            end = min(self._position + frame_len, len(self._pcm))
            frames.append(AudioFrame(
                pcm=self._pcm[self._position:end],
                sample_rate=self._sample_rate,
                timestamp_s=end / self._sample_rate,
            ))
            self._position = end
        return frames

    def close(self) -> None:
        self._closed = True
