import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict
from dotenv import load_dotenv
import logging

logger = logging.getLogger(__name__)


class VADConfig(BaseModel):
    """Engine thresholds. Immutable; replace the whole snapshot to change it."""

    model_config = ConfigDict(frozen=True)

    silence_threshold: float = Field(default=0.03, ge=0.0, le=1.0, description="Static volume floor below which input counts as silence")
    silence_duration_ms: int = Field(default=1500, ge=0, description="Continuous sub-threshold time before a session closes")
    noise_filter_enabled: bool = Field(default=True, description="When False, any non-empty session is accepted")
    min_speech_volume: float = Field(default=0.02, ge=0.0, le=1.0, description="Minimum average volume of valid speech (peak must reach twice this)")
    min_speech_duration_ms: int = Field(default=600, ge=0, description="Minimum speech duration of valid speech")
    volume_stability_threshold: float = Field(default=0.01, ge=0.0, description="Mean volume jitter below which a quiet segment is treated as noise")
    max_recording_duration_ms: int = Field(default=15000, ge=0, description="Hard cap on session length; 0 disables the guard")
    speech_pause_threshold: float = Field(default=0.005, ge=0.0, le=1.0, description="Upper bound of the pause detector's low-volume band; 0 disables it")
    adaptive_silence_detection: bool = Field(default=True, description="Derive the silence threshold from recent volume statistics")
    background_music_detection: bool = Field(default=True, description="Track the background floor and enable BGM force-stop heuristics")
    background_source: bool = Field(default=False, description="Long-running system/loopback source; enables BGM force-stop and pause detection")


class AppConfig(BaseModel):
    """Process-level settings for the command line front end."""

    vad: VADConfig = Field(default_factory=VADConfig)
    input_device: Optional[int] = Field(default=None, description="sounddevice input device index (None = system default)")
    sample_rate: int = Field(default=16000, gt=0, description="Capture sample rate in Hz")
    tick_interval_ms: int = Field(default=16, gt=0, description="Level sampling cadence (~60 Hz)")
    pre_roll_ms: int = Field(default=200, ge=0, description="Audio kept from before speech onset")
    output_dir: Optional[Path] = Field(default=None, description="Directory for accepted segments as WAV files")
    log_level: str = Field(default="INFO", description="Logging level")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_optional_int(name: str) -> Optional[int]:
    value = os.getenv(name, "")
    return int(value) if value.strip() else None


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    if config_path is None:
        config_path = Path(".env")

    if config_path.exists():
        load_dotenv(config_path)
        logger.info(f"Loaded environment variables from {config_path}")
    else:
        logger.warning(f"Config file {config_path} not found, using environment variables only")

    try:
        vad = VADConfig(
            silence_threshold=float(os.getenv("VAD_SILENCE_THRESHOLD", "0.03")),
            silence_duration_ms=int(os.getenv("VAD_SILENCE_DURATION_MS", "1500")),
            noise_filter_enabled=_env_bool("VAD_NOISE_FILTER_ENABLED", "true"),
            min_speech_volume=float(os.getenv("VAD_MIN_SPEECH_VOLUME", "0.02")),
            min_speech_duration_ms=int(os.getenv("VAD_MIN_SPEECH_DURATION_MS", "600")),
            volume_stability_threshold=float(os.getenv("VAD_VOLUME_STABILITY_THRESHOLD", "0.01")),
            max_recording_duration_ms=int(os.getenv("VAD_MAX_RECORDING_DURATION_MS", "15000")),
            speech_pause_threshold=float(os.getenv("VAD_SPEECH_PAUSE_THRESHOLD", "0.005")),
            adaptive_silence_detection=_env_bool("VAD_ADAPTIVE_SILENCE_DETECTION", "true"),
            background_music_detection=_env_bool("VAD_BACKGROUND_MUSIC_DETECTION", "true"),
            background_source=_env_bool("VAD_BACKGROUND_SOURCE", "false"),
        )
        output_dir = os.getenv("VAD_OUTPUT_DIR", "")
        config = AppConfig(
            vad=vad,
            input_device=_env_optional_int("VAD_INPUT_DEVICE"),
            sample_rate=int(os.getenv("VAD_SAMPLE_RATE", "16000")),
            tick_interval_ms=int(os.getenv("VAD_TICK_INTERVAL_MS", "16")),
            pre_roll_ms=int(os.getenv("VAD_PRE_ROLL_MS", "200")),
            output_dir=Path(output_dir) if output_dir.strip() else None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

        if vad.silence_duration_ms == 0:
            logger.warning("VAD_SILENCE_DURATION_MS is 0. Sessions will close on the first quiet tick.")

        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise


def create_example_env_file(path: Path = Path(".env.example")):
    example_content = """# Static silence threshold (0-1); input at or below it counts as silence
VAD_SILENCE_THRESHOLD=0.03

# Milliseconds of continuous silence before an utterance is closed
VAD_SILENCE_DURATION_MS=1500

# Reject coughs, breaths and hum (true/false)
VAD_NOISE_FILTER_ENABLED=true

# Minimum average volume and duration of valid speech
VAD_MIN_SPEECH_VOLUME=0.02
VAD_MIN_SPEECH_DURATION_MS=600

# Volume jitter below which a quiet segment is treated as noise
VAD_VOLUME_STABILITY_THRESHOLD=0.01

# Hard cap on a single utterance in milliseconds (0 = no cap)
VAD_MAX_RECORDING_DURATION_MS=15000

# Upper bound of the pause detector's low-volume band (0 = disabled)
VAD_SPEECH_PAUSE_THRESHOLD=0.005

# Adaptive threshold and background music handling (true/false)
VAD_ADAPTIVE_SILENCE_DETECTION=true
VAD_BACKGROUND_MUSIC_DETECTION=true

# Set to true for long-running system/loopback audio (enables BGM heuristics)
VAD_BACKGROUND_SOURCE=false

# Capture settings (leave VAD_INPUT_DEVICE empty for the default device)
VAD_INPUT_DEVICE=
VAD_SAMPLE_RATE=16000
VAD_TICK_INTERVAL_MS=16
VAD_PRE_ROLL_MS=200

# Write accepted utterances here as WAV files (empty = don't write)
VAD_OUTPUT_DIR=

# Logging level
LOG_LEVEL=INFO
"""

    with open(path, "w") as f:
        f.write(example_content)

    logger.info(f"Created example environment file at {path}")


def setup_logging(log_level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
