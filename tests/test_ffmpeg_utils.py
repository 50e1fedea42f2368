from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from cuesync.exceptions import DependencyMissingError
from cuesync.utils import ffmpeg


def test_build_extract_audio_cmd_is_mono_16k_mp3() -> None:
    cmd = ffmpeg.build_extract_audio_cmd("in.mp4", Path("out.mp3"))
    assert cmd[0] == "ffmpeg"
    assert cmd[cmd.index("-i") + 1] == "in.mp4"
    assert "-vn" in cmd
    assert cmd[cmd.index("-ac") + 1] == "1"
    assert cmd[cmd.index("-ar") + 1] == "16000"
    assert cmd[cmd.index("-c:a") + 1] == "libmp3lame"
    assert cmd[-1] == "out.mp3"


def test_is_audio_file() -> None:
    assert ffmpeg.is_audio_file("talk.WAV")
    assert ffmpeg.is_audio_file(Path("talk.mp3"))
    assert not ffmpeg.is_audio_file("clip.mp4")


def test_run_ffmpeg_raises_on_failure(monkeypatch, tmp_path: Path) -> None:
    def fake_run(cmd, capture_output, text):  # noqa: ANN001
        return SimpleNamespace(returncode=1, stdout="", stderr="bad input")

    monkeypatch.setattr(ffmpeg.subprocess, "run", fake_run)
    log_path = tmp_path / "ffmpeg.log"
    with pytest.raises(RuntimeError, match="bad input"):
        ffmpeg.run_ffmpeg(["ffmpeg", "-i", "x"], stderr_path=log_path)
    assert log_path.read_text(encoding="utf-8") == "bad input"


def test_probe_duration(monkeypatch) -> None:
    monkeypatch.setattr(ffmpeg.shutil, "which", lambda _: None)
    assert ffmpeg.probe_duration("clip.mp4") is None

    def fake_run(cmd, capture_output, text):  # noqa: ANN001
        return SimpleNamespace(returncode=0, stdout="12.5\n", stderr="")

    monkeypatch.setattr(ffmpeg.shutil, "which", lambda _: "ffprobe")
    monkeypatch.setattr(ffmpeg.subprocess, "run", fake_run)
    assert ffmpeg.probe_duration("clip.mp4") == 12.5


def test_ensure_ffmpeg_missing(monkeypatch) -> None:
    from cuesync.utils import checks

    monkeypatch.setattr(checks.shutil, "which", lambda _: None)
    with pytest.raises(DependencyMissingError, match="ffmpeg"):
        ffmpeg.ensure_ffmpeg()
