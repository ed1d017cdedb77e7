import argparse
import logging
import queue
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from .audio.recorder import BufferedSegmentRecorder, RawAudio
from .audio.sampler import LevelSampler
from .audio.sources import WavFileSource
from .audio.types import AudioFormat, FrameConfig
from .config.settings import AppConfig, create_example_env_file, load_config, setup_logging
from .core.errors import CaptureFailure
from .core.events import QueueListener, VADEvent, VADEventType
from .core.shutdown import GracefulShutdown
from .engine import ManualClock, VADEngine
from .pipeline import PipelineConfig, VADPipeline
from .vad.state_machine import VADState

logger = logging.getLogger(__name__)

TAIL_SETTLE_MS = 2000


class SegmentWriter:
    """Writes accepted segments as numbered WAV files."""

    def __init__(self, output_dir: Path):
        self._output_dir = output_dir
        self._output_dir.mkdir(parents=True, exist_ok=True)
        self._count = 0

    def write(self, audio: RawAudio) -> Path:
        self._count += 1
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        path = self._output_dir / f"utterance-{stamp}-{self._count:04d}.wav"
        path.write_bytes(audio.to_wav_bytes())
        return path


def print_event(event: VADEvent, writer: Optional[SegmentWriter]) -> None:
    if event.type == VADEventType.SPEECH_START:
        print("[speech] started")
    elif event.type == VADEventType.SEGMENT_READY and event.audio is not None:
        line = f"[segment] {event.audio.duration_ms / 1000:.2f}s"
        if writer is not None:
            line += f" -> {writer.write(event.audio)}"
        print(line)
    elif event.type == VADEventType.ERROR:
        print(f"[error] {event.message}", file=sys.stderr)


def drain(events: "queue.Queue[VADEvent]", writer: Optional[SegmentWriter]) -> None:
    while True:
        try:
            print_event(events.get_nowait(), writer)
        except queue.Empty:
            return


def run_microphone(config: AppConfig, writer: Optional[SegmentWriter]) -> int:
    events: queue.Queue[VADEvent] = queue.Queue(maxsize=1000)
    shutdown = GracefulShutdown()
    pipeline = VADPipeline(
        shutdown_signal=shutdown,
        listener=QueueListener(events, include_volume=False),
        cfg=PipelineConfig(
            audio_format=AudioFormat(sample_rate=config.sample_rate),
            vad=config.vad,
            tick_interval_ms=config.tick_interval_ms,
            pre_roll_ms=config.pre_roll_ms,
            input_device=config.input_device,
        ),
    )

    try:
        pipeline.start()
    except CaptureFailure as e:
        print(f"Audio capture error: {e}", file=sys.stderr)
        return 1

    print("Listening... press Ctrl+C to stop.")
    exit_code = 0
    try:
        while pipeline.engine.is_listening and not shutdown.is_set():
            try:
                event = events.get(timeout=0.1)
            except queue.Empty:
                continue
            print_event(event, writer)
            if event.type == VADEventType.ERROR:
                exit_code = 1
    except KeyboardInterrupt:
        print("\nKeyboardInterrupt detected. Shutting down...")
    finally:
        pipeline.stop()
        drain(events, writer)
    return exit_code


def replay_file(path: Path, config: AppConfig, writer: Optional[SegmentWriter]) -> int:
    """Run a WAV file through the engine on a virtual clock, faster than real time."""
    events: queue.Queue[VADEvent] = queue.Queue()
    clock = ManualClock()
    frame_cfg = FrameConfig()
    source = WavFileSource(path, clock_ms=clock, frame_cfg=frame_cfg)
    recorder = BufferedSegmentRecorder(pre_roll_ms=config.pre_roll_ms, frame_ms=frame_cfg.frame_ms)
    engine = VADEngine(
        sampler=LevelSampler(source, sinks=[recorder]),
        recorder=recorder,
        listener=QueueListener(events, include_volume=False),
        config=config.vad,
        clock=clock,
    )

    try:
        engine.start()
    except CaptureFailure as e:
        print(f"Audio capture error: {e}", file=sys.stderr)
        return 1

    tick_ms = config.tick_interval_ms
    while not source.exhausted and engine.tick():
        clock.advance(tick_ms)
        drain(events, writer)

    # The exhausted source reads as silence and the level fades out; keep ticking
    # until the last utterance is closed by its silence timer
    tail_ms = config.vad.silence_duration_ms + TAIL_SETTLE_MS
    elapsed = 0
    while engine.state is VADState.SPEAKING and elapsed < tail_ms and engine.tick():
        clock.advance(tick_ms)
        elapsed += tick_ms

    engine.stop()
    drain(events, writer)
    return 0


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Real-time voice activity detection and utterance segmentation")
    parser.add_argument("--config", type=str, help="Path to config file", default=".env")
    parser.add_argument("--create-config", action="store_true", help="Create example config file")
    parser.add_argument("--file", type=str, help="Replay a WAV file instead of the microphone")
    parser.add_argument("--device", type=int, help="Input device index")
    parser.add_argument("--background-source", action="store_true", help="Treat input as long-running system audio (BGM heuristics)")
    parser.add_argument("--output-dir", type=str, help="Write accepted utterances here as WAV files")
    parser.add_argument("--log-level", type=str, help="Override LOG_LEVEL")

    args = parser.parse_args(argv)

    if args.create_config:
        create_example_env_file()
        print("Example configuration file created at .env.example")
        print("Copy it to .env and adjust the thresholds.")
        return 0

    try:
        config = load_config(Path(args.config) if args.config else None)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    updates = {}
    if args.device is not None:
        updates["input_device"] = args.device
    if args.output_dir:
        updates["output_dir"] = Path(args.output_dir)
    if args.log_level:
        updates["log_level"] = args.log_level
    if args.background_source:
        updates["vad"] = config.vad.model_copy(update={"background_source": True})
    if updates:
        config = config.model_copy(update=updates)

    setup_logging(config.log_level)
    writer = SegmentWriter(config.output_dir) if config.output_dir else None

    if args.file:
        return replay_file(Path(args.file), config, writer)
    return run_microphone(config, writer)


if __name__ == "__main__":
    sys.exit(main())
