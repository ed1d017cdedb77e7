"""Real-time voice activity detection and utterance segmentation."""

from .config.settings import AppConfig, VADConfig, load_config
from .core.errors import CaptureFailure, InvalidSession, VADError
from .core.events import CallbackListener, QueueListener, VADEvent, VADEventType, VADListener
from .engine import EngineRunner, ManualClock, VADEngine
from .pipeline import PipelineConfig, VADPipeline

__all__ = [
    "AppConfig",
    "VADConfig",
    "load_config",
    "CaptureFailure",
    "InvalidSession",
    "VADError",
    "CallbackListener",
    "QueueListener",
    "VADEvent",
    "VADEventType",
    "VADListener",
    "EngineRunner",
    "ManualClock",
    "VADEngine",
    "PipelineConfig",
    "VADPipeline",
]
