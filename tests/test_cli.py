"""End-to-end tests for the command line front end using WAV replay."""

import os
from unittest.mock import patch

import numpy as np
import pytest

from utterance_vad.audio.recorder import RawAudio
from utterance_vad.audio.sources import read_wav
from utterance_vad.cli import SegmentWriter, main, replay_file
from utterance_vad.config.settings import AppConfig, VADConfig


def write_utterance_wav(path, sample_rate=16000):
    """0.5s silence, 2s of broadband noise standing in for speech, 1s silence."""
    rng = np.random.default_rng(7)
    pcm = np.concatenate([
        np.zeros(sample_rate // 2),
        rng.uniform(-0.3, 0.3, sample_rate * 2),
        np.zeros(sample_rate),
    ]).astype(np.float32)
    audio = RawAudio(pcm=pcm, sample_rate=sample_rate, started_at_ms=0, ended_at_ms=0)
    path.write_bytes(audio.to_wav_bytes())
    return path


@pytest.fixture
def utterance_wav(tmp_path):
    return write_utterance_wav(tmp_path / "utterance.wav")


class TestReplay:
    def test_replay_writes_one_segment(self, utterance_wav, tmp_path, capsys):
        out_dir = tmp_path / "segments"
        config = AppConfig(vad=VADConfig(adaptive_silence_detection=False))

        exit_code = replay_file(utterance_wav, config, SegmentWriter(out_dir))

        assert exit_code == 0
        written = sorted(out_dir.glob("utterance-*.wav"))
        assert len(written) == 1
        output = capsys.readouterr().out
        assert output.count("[speech] started") == 1
        assert "[segment]" in output

        pcm, sample_rate = read_wav(written[0])
        assert sample_rate == 16000
        # Roughly the two seconds of noise plus pre-roll and trailing silence
        assert 1.5 < len(pcm) / sample_rate < 4.0

    @patch.dict(os.environ, {}, clear=True)
    def test_file_ending_mid_speech_still_yields_segment(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        rng = np.random.default_rng(11)
        pcm = np.concatenate([np.zeros(8000), rng.uniform(-0.5, 0.5, 32000)]).astype(np.float32)
        path = tmp_path / "cut.wav"
        path.write_bytes(RawAudio(pcm=pcm, sample_rate=16000, started_at_ms=0, ended_at_ms=0).to_wav_bytes())

        assert main(["--file", str(path)]) == 0

        output = capsys.readouterr().out
        assert output.count("[speech] started") == 1
        assert "[segment]" in output

    def test_replay_missing_file(self, tmp_path, capsys):
        exit_code = replay_file(tmp_path / "nope.wav", AppConfig(), None)

        assert exit_code == 1
        assert "Audio capture error" in capsys.readouterr().err


class TestMain:
    def test_create_config(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)

        assert main(["--create-config"]) == 0
        assert (tmp_path / ".env.example").exists()
        assert "VAD_SILENCE_THRESHOLD" in (tmp_path / ".env.example").read_text()

    @patch.dict(os.environ, {"VAD_ADAPTIVE_SILENCE_DETECTION": "false"}, clear=True)
    def test_file_replay_with_output_dir(self, utterance_wav, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        out_dir = tmp_path / "out"

        exit_code = main(["--file", str(utterance_wav), "--output-dir", str(out_dir), "--log-level", "WARNING"])

        assert exit_code == 0
        assert len(list(out_dir.glob("*.wav"))) == 1

    @patch.dict(os.environ, {"VAD_SILENCE_THRESHOLD": "7"}, clear=True)
    def test_bad_configuration(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)

        assert main(["--file", "whatever.wav"]) == 2
        assert "Configuration error" in capsys.readouterr().err
