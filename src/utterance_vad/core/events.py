"""Engine output events and listener implementations."""

from __future__ import annotations

import logging
import queue
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Callable, Optional, Protocol

if TYPE_CHECKING:
    from ..audio.recorder import RawAudio

logger = logging.getLogger(__name__)


class VADEventType(Enum):
    SPEECH_START = auto()    # Idle -> Speaking
    VOLUME = auto()          # Every tick
    SEGMENT_READY = auto()   # Accepted utterance audio
    ERROR = auto()           # Capture or session failure


@dataclass(frozen=True)
class VADEvent:
    """One item emitted by the engine."""
    type: VADEventType
    volume: Optional[float] = None
    audio: Optional["RawAudio"] = None
    message: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


class VADListener(Protocol):
    """Observer for everything the engine surfaces to its owner."""

    def on_speech_start(self) -> None: ...

    def on_volume_change(self, volume: float) -> None: ...

    def on_segment_ready(self, audio: "RawAudio") -> None: ...

    def on_error(self, message: str) -> None: ...


class NullListener:
    def on_speech_start(self) -> None:
        pass

    def on_volume_change(self, volume: float) -> None:
        pass

    def on_segment_ready(self, audio: "RawAudio") -> None:
        pass

    def on_error(self, message: str) -> None:
        pass


class CallbackListener:
    """Adapts up to four plain functions to the VADListener protocol."""

    def __init__(
        self,
        on_speech_start: Optional[Callable[[], None]] = None,
        on_volume_change: Optional[Callable[[float], None]] = None,
        on_segment_ready: Optional[Callable[["RawAudio"], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ):
        self._on_speech_start = on_speech_start
        self._on_volume_change = on_volume_change
        self._on_segment_ready = on_segment_ready
        self._on_error = on_error

    def on_speech_start(self) -> None:
        if self._on_speech_start:
            self._on_speech_start()

    def on_volume_change(self, volume: float) -> None:
        if self._on_volume_change:
            self._on_volume_change(volume)

    def on_segment_ready(self, audio: "RawAudio") -> None:
        if self._on_segment_ready:
            self._on_segment_ready(audio)

    def on_error(self, message: str) -> None:
        if self._on_error:
            self._on_error(message)


class QueueListener:
    """
    Pushes a VADEvent per callback onto a queue for a consumer thread.

    Volume events arrive every tick; pass include_volume=False when the consumer
    only cares about speech boundaries.
    """

    def __init__(self, events_queue: "queue.Queue[VADEvent]", include_volume: bool = True):
        self._events_queue = events_queue
        self._include_volume = include_volume

    def _put(self, event: VADEvent) -> None:
        # Try to put event in queue with drop_oldest strategy
        try:
            self._events_queue.put_nowait(event)
        except queue.Full:
            try:
                dropped = self._events_queue.get_nowait()
                logger.warning(f"Event queue is full, dropping {dropped.type.name} event")
            except queue.Empty:
                pass
            self._events_queue.put_nowait(event)

    def on_speech_start(self) -> None:
        self._put(VADEvent(type=VADEventType.SPEECH_START))

    def on_volume_change(self, volume: float) -> None:
        if self._include_volume:
            self._put(VADEvent(type=VADEventType.VOLUME, volume=volume))

    def on_segment_ready(self, audio: "RawAudio") -> None:
        self._put(VADEvent(type=VADEventType.SEGMENT_READY, audio=audio))

    def on_error(self, message: str) -> None:
        self._put(VADEvent(type=VADEventType.ERROR, message=message))
