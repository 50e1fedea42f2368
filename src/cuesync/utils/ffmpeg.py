from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

from cuesync.utils.checks import require_binary

AUDIO_SUFFIXES = frozenset({".mp3", ".wav", ".m4a", ".aac", ".flac", ".ogg", ".opus"})
TRANSCRIPTION_SAMPLE_RATE = 16000


def ensure_ffmpeg() -> None:
    require_binary("ffmpeg", purpose="extract audio from video files")


def is_audio_file(path: str | Path) -> bool:
    return Path(path).suffix.lower() in AUDIO_SUFFIXES


def build_extract_audio_cmd(
    media: str | Path,
    out: str | Path,
    *,
    sample_rate: int = TRANSCRIPTION_SAMPLE_RATE,
) -> list[str]:
    """Mono mp3 at the transcription sample rate, video stream dropped."""
    return [
        "ffmpeg",
        "-y",
        "-hide_banner",
        "-loglevel",
        "error",
        "-i",
        str(media),
        "-vn",
        "-ac",
        "1",
        "-ar",
        str(sample_rate),
        "-c:a",
        "libmp3lame",
        "-q:a",
        "4",
        str(out),
    ]


def run_ffmpeg(cmd: list[str], *, stderr_path: Path | None = None) -> subprocess.CompletedProcess[str]:
    proc = subprocess.run(cmd, capture_output=True, text=True)
    if stderr_path is not None:
        stderr_path.write_text(proc.stderr or "", encoding="utf-8")
    if proc.returncode != 0:
        raise RuntimeError(
            "ffmpeg failed.\n"
            f"STDOUT:\n{proc.stdout}\n\n"
            f"STDERR:\n{proc.stderr}"
        )
    return proc


def probe_duration(path: str | Path) -> float | None:
    ffprobe = shutil.which("ffprobe")
    if not ffprobe:
        return None
    proc = subprocess.run(
        [
            ffprobe,
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(path),
        ],
        capture_output=True,
        text=True,
    )
    if proc.returncode != 0:
        return None
    try:
        return float(proc.stdout.strip())
    except ValueError:
        return None
