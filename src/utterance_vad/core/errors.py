"""Exception types raised by the VAD engine."""


class VADError(Exception):
    """Base class for engine errors."""


class CaptureFailure(VADError):
    """Capture source closed or unavailable. Fatal: the engine stops ticking."""


class InvalidSession(VADError):
    """Internal consistency violation, e.g. stopping a recorder that never started."""
