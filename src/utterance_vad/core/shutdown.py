import threading
from typing import Protocol


class StopSignal(Protocol):
    """Protocol for shutdown signals used by capture and engine threads."""

    def is_set(self) -> bool: ...

    def wait(self, timeout: float) -> bool: ...


class GracefulShutdown:
    def __init__(self):
        self.stop_event = threading.Event()

    def stop(self):
        self.stop_event.set()

    def is_set(self) -> bool:
        return self.stop_event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to `timeout` seconds; returns True as soon as stop is requested."""
        return self.stop_event.wait(timeout)
