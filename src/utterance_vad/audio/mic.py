"""Microphone audio capture."""

from __future__ import annotations

import threading
import queue
import time
import logging
from typing import List, Optional

import numpy as np
import sounddevice as sd

from ..core.shutdown import StopSignal

from .types import AudioFormat, AudioFrame, FrameConfig

logger = logging.getLogger(__name__)


class Mic(threading.Thread):
    """
    Continuously captures microphone audio into an internal frames queue.

    The level sampler drains the queue with `read_frames()` once per tick.
    Important: keep callback lightweight; no level analysis here.
    """

    def __init__(
        self,
        stop_signal: StopSignal,
        audio_format: AudioFormat,
        frame_cfg: FrameConfig,
        device: Optional[int] = None,
    ):
        super().__init__(name="MicThread", daemon=True)
        self._stop_signal = stop_signal
        self._audio_format = audio_format
        self._frame_cfg = frame_cfg
        self._frames_queue: queue.Queue[AudioFrame] = queue.Queue(maxsize=frame_cfg.max_frames_queue)
        self._device = device
        self._closed = threading.Event()
        self._error: Optional[BaseException] = None

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def read_frames(self) -> List[AudioFrame]:
        """Return every frame captured since the previous call without blocking."""
        frames = []
        while True:
            try:
                frames.append(self._frames_queue.get_nowait())
            except queue.Empty:
                return frames

    def close(self) -> None:
        self._closed.set()

    def _should_run(self) -> bool:
        return not self._stop_signal.is_set() and not self._closed.is_set()

    def run(self) -> None:
        """Start microphone capture loop."""
        # Calculate blocksize (number of samples per frame)
        blocksize = int(self._audio_format.sample_rate * self._frame_cfg.frame_ms / 1000)

        # Convert dtype string to numpy dtype
        dtype_map = {
            "float32": np.float32,
            "int16": np.int16,
            "int32": np.int32,
        }
        dtype = dtype_map.get(self._audio_format.dtype, np.float32)

        def audio_callback(indata, frames, time_info, status):
            """Callback function for sounddevice audio stream."""
            if status:
                logger.warning(f"Audio callback status: {status}")

            # indata shape is (frames, channels), we take first channel
            if indata.shape[1] > 0:
                pcm = indata[:, 0].astype(np.float32)
            else:
                pcm = indata.flatten().astype(np.float32)

            if dtype is np.int16:
                pcm = pcm / 32768.0
            elif dtype is np.int32:
                pcm = pcm / 2147483648.0

            frame = AudioFrame(
                pcm=pcm,
                sample_rate=self._audio_format.sample_rate,
                timestamp_s=time.time()
            )

            # Put frame into queue (non-blocking)
            try:
                self._frames_queue.put_nowait(frame)
            except queue.Full:
                logger.warning("Frames queue is full, dropping audio frame")

        try:
            with sd.InputStream(
                callback=audio_callback,
                samplerate=self._audio_format.sample_rate,
                channels=self._audio_format.channels,
                blocksize=blocksize,
                dtype=dtype,
                device=self._device,
            ):
                # Keep running until stop signal is set or the source is closed
                while self._should_run():
                    time.sleep(0.1)
        except Exception as e:
            logger.error(f"Error in microphone capture: {e}", exc_info=True)
            self._error = e
        finally:
            logger.info("Microphone capture stopped")
