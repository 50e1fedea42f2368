"""
Pipeline orchestration for cuesync.

The pipeline executes a single caption generation for one media file:

1) Extract audio (skipped when the input already is audio) and measure its length
2) Transcribe (OpenAI Whisper or faster-whisper)
3) Synthesize cues
4) Store the track for the media file

Responsibilities:
- Coordinate collaborator execution order
- Report coarse progress in [0, 1]
- Record per-step timings

Does NOT:
- Implement vendor-specific logic (OpenAI, faster-whisper, ffmpeg)
- Store anything when an earlier step fails
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from cuesync.config.settings import Settings
from cuesync.domain.cues import Track
from cuesync.domain.language import ScriptFamily
from cuesync.services.storage import TrackStore, media_key
from cuesync.services.synthesizer import CueSynthesizer
from cuesync.services.transcription import ProgressCallback, TranscriptionBackend, report_progress
from cuesync.utils.ffmpeg import (
    build_extract_audio_cmd,
    ensure_ffmpeg,
    is_audio_file,
    probe_duration,
    run_ffmpeg,
)
from cuesync.utils.logging import get_logger
from cuesync.utils.timing import StepTimer, StepTiming, utc_now

log = get_logger(__name__)


def _check_coverage(track: Track, media_duration: float | None) -> None:
    if media_duration is None:
        return
    late = [cue for cue in track if cue.start > media_duration]
    if late:
        log.warning(
            "%d cue(s) start after the media ends (%.2fs); first at %.2fs",
            len(late),
            media_duration,
            late[0].start,
        )


@dataclass
class GenerationResult:
    track: Track
    key: str
    audio_path: Path
    steps: list[StepTiming] = field(default_factory=list)
    stored: bool = False
    media_duration: float | None = None


class GenerationPipeline:
    """
    Orchestrates one media -> Track generation.

    The transcription backend is injected (see `create_transcription_backend`)
    so tests can run the whole flow with a fake.
    """

    def __init__(
        self,
        backend: TranscriptionBackend,
        *,
        store: TrackStore | None = None,
        synthesizer: CueSynthesizer | None = None,
    ) -> None:
        self.backend = backend
        self.store = store
        self.synthesizer = synthesizer

    def _extract_audio(self, media_path: Path, workdir: Path) -> Path:
        if is_audio_file(media_path):
            log.info("Input is audio; skipping extraction: %s", media_path)
            return media_path
        ensure_ffmpeg()
        audio_dir = workdir / "audio"
        audio_dir.mkdir(parents=True, exist_ok=True)
        out = audio_dir / f"{media_path.stem}.mp3"
        run_ffmpeg(
            build_extract_audio_cmd(media_path, out),
            stderr_path=audio_dir / f"{media_path.stem}.ffmpeg.log",
        )
        log.info("Extracted audio: %s", out)
        return out

    def run(
        self,
        media_path: str | Path,
        *,
        settings: Settings,
        workdir: str | Path,
        progress: Optional[ProgressCallback] = None,
    ) -> GenerationResult:
        media_path = Path(media_path)
        workdir = Path(workdir).expanduser()
        timer = StepTimer(clock=utc_now)
        report_progress(progress, 0.05)

        key = media_key(media_path)
        synthesizer = self.synthesizer or CueSynthesizer.from_settings(settings)
        script = ScriptFamily.parse(settings.language)

        with timer.step("extract_audio"):
            audio_path = self._extract_audio(media_path, workdir)
            media_duration = probe_duration(audio_path)

        # Backend progress covers 0.1..0.5 of the overall run.
        with timer.step("transcribe"):
            segments = self.backend.transcribe(audio_path, progress=progress)
        report_progress(progress, 0.6)

        with timer.step("synthesize"):
            track = synthesizer.synthesize(segments, script=script)
        _check_coverage(track, media_duration)
        report_progress(progress, 0.8)

        stored = False
        if self.store is not None:
            with timer.step("store"):
                self.store.store(
                    key,
                    track,
                    file_name=media_path.name,
                    file_size=media_path.stat().st_size,
                )
                stored = True
        report_progress(progress, 0.9)

        report_progress(progress, 1.0)
        log.info("Generated %d cues for %s", len(track), media_path.name)
        return GenerationResult(
            track=track,
            key=key,
            audio_path=audio_path,
            steps=list(timer.steps),
            stored=stored,
            media_duration=media_duration,
        )
