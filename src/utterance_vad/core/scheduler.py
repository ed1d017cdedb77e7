"""Cancellable one-shot timers polled from the engine tick."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class TimerKind(Enum):
    """Timer kinds owned by a speech session, in closure precedence order."""
    MAX_DURATION = 0
    PAUSE_CONFIRM = 1
    SILENCE = 2


@dataclass
class TaskHandle:
    """A scheduled callback. `generation` ties the handle to the session that armed it."""
    kind: TimerKind
    due_at_ms: float
    generation: int
    callback: Callable[[float], None] = field(repr=False)
    cancelled: bool = False


class Scheduler:
    """
    Holds at most one pending timer per TimerKind.

    Nothing runs on its own thread: the owner calls `pop_due(now_ms)` once per tick
    and fires the returned handles itself, so callbacks always execute inside a tick.
    Scheduling a kind that is already pending cancels the previous handle first.
    """

    def __init__(self):
        self._pending: Dict[TimerKind, TaskHandle] = {}

    def schedule(
        self,
        kind: TimerKind,
        delay_ms: float,
        callback: Callable[[float], None],
        *,
        now_ms: float,
        generation: int,
    ) -> TaskHandle:
        previous = self._pending.get(kind)
        if previous is not None:
            self.cancel(previous)

        handle = TaskHandle(
            kind=kind,
            due_at_ms=now_ms + delay_ms,
            generation=generation,
            callback=callback,
        )
        self._pending[kind] = handle
        logger.debug(f"Armed {kind.name} timer for {delay_ms:.0f}ms (generation {generation})")
        return handle

    def cancel(self, handle: Optional[TaskHandle]) -> None:
        if handle is None:
            return
        handle.cancelled = True
        if self._pending.get(handle.kind) is handle:
            del self._pending[handle.kind]

    def cancel_kind(self, kind: TimerKind) -> None:
        self.cancel(self._pending.get(kind))

    def cancel_all(self) -> None:
        for handle in list(self._pending.values()):
            self.cancel(handle)

    def pending(self, kind: TimerKind) -> Optional[TaskHandle]:
        return self._pending.get(kind)

    def is_armed(self, kind: TimerKind) -> bool:
        return kind in self._pending

    def pop_due(self, now_ms: float) -> Dict[TimerKind, TaskHandle]:
        """Remove and return every handle whose deadline has passed, keyed by kind."""
        due = {
            kind: handle
            for kind, handle in self._pending.items()
            if handle.due_at_ms <= now_ms
        }
        for kind in due:
            del self._pending[kind]
        return due
