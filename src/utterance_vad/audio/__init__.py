"""Audio capture, level sampling and segment recording."""

from .types import AudioFormat, AudioFrame, AudioSource, FrameConfig, Sample, SamplerConfig
from .sampler import LevelSampler
from .recorder import BufferedSegmentRecorder, RawAudio, SegmentRecorder
from .sources import QueueAudioSource, WavFileSource

__all__ = [
    "AudioFormat",
    "AudioFrame",
    "AudioSource",
    "FrameConfig",
    "Sample",
    "SamplerConfig",
    "LevelSampler",
    "BufferedSegmentRecorder",
    "RawAudio",
    "SegmentRecorder",
    "QueueAudioSource",
    "WavFileSource",
]
