"""Speech segmentation: thresholds, state machine and utterance validation."""

from .levels import AdaptiveThresholdCalculator, BackgroundEnergyTracker, VolumeWindow
from .session import SpeechSession
from .state_machine import SpeechSegmentStateMachine, VADState
from .validator import UtteranceValidator, UtteranceVerdict, VerdictReason

__all__ = [
    "AdaptiveThresholdCalculator",
    "BackgroundEnergyTracker",
    "VolumeWindow",
    "SpeechSession",
    "SpeechSegmentStateMachine",
    "VADState",
    "UtteranceValidator",
    "UtteranceVerdict",
    "VerdictReason",
]
