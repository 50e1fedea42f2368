from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import typer

from cuesync.config.settings import Settings
from cuesync.domain.cues import Track
from cuesync.domain.language import ScriptFamily
from cuesync.exceptions import ConfigurationError, CueSyncError
from cuesync.pipeline import GenerationPipeline, GenerationResult
from cuesync.services.retime import retime_track
from cuesync.services.scenes import SceneRules
from cuesync.services.session import PlaybackSession
from cuesync.services.storage import TrackStore, media_key
from cuesync.services.sync import SyncConfig
from cuesync.services.synthesizer import CueSynthesizer
from cuesync.services.timestamps import TimeFormat, serialize_track
from cuesync.services.transcription import create_transcription_backend
from cuesync.utils.doctor import run_doctor
from cuesync.utils.logging import configure_logging, get_logger
from cuesync.utils.timing import total_duration

app = typer.Typer(add_completion=False)
tracks_app = typer.Typer(add_completion=False, help="Manage stored tracks.")
app.add_typer(tracks_app, name="tracks")
log = get_logger(__name__)


@contextmanager
def _report_errors() -> Iterator[None]:
    try:
        yield
    except CueSyncError as exc:
        typer.echo(f"{exc.label()}: {exc.message}", err=True)
        raise typer.Exit(code=exc.exit_code or 1) from exc


def _settings(
    *,
    workdir: str | None = None,
    language: str | None = None,
    backend: str | None = None,
    log_level: str | None = None,
) -> Settings:
    settings = Settings()

    # Apply CLI overrides on top of env/.env settings
    if workdir is not None:
        settings.workdir = workdir
    if language is not None:
        settings.language = language
    if backend is not None:
        settings.transcription_backend = backend

    # Configure logging after overrides so we use the final resolved level
    configure_logging(log_level or settings.log_level)
    return settings


def _track_store(settings: Settings) -> TrackStore:
    return TrackStore(
        Path(settings.workdir).expanduser() / "tracks",
        synthesizer=CueSynthesizer.from_settings(settings),
    )


def _parse_format(value: str | None, fallback: TimeFormat) -> TimeFormat:
    if value is None:
        return fallback
    try:
        return TimeFormat(value.strip().lower())
    except ValueError:
        raise typer.BadParameter(f"Unknown format '{value}'. Use: srt, vtt.") from None


def _read_caption_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ConfigurationError(f"'{path}' is not UTF-8 text: {exc}") from exc


def _load_caption_file(path: Path, settings: Settings) -> Track:
    synthesizer = CueSynthesizer.from_settings(settings)
    script = ScriptFamily.parse(settings.language)
    return synthesizer.load(_read_caption_file(path), filename=path, script=script)


def _run_generation(
    media: Path,
    *,
    settings: Settings,
    store: TrackStore | None,
) -> GenerationResult:
    backend = create_transcription_backend(settings)
    pipeline = GenerationPipeline(backend, store=store)

    def _progress(value: float) -> None:
        log.debug("Generation progress: %.0f%%", value * 100)

    return pipeline.run(
        media,
        settings=settings,
        workdir=settings.workdir,
        progress=_progress,
    )


@app.command()
def config() -> None:
    """Print resolved config."""
    s = Settings()
    typer.echo(json.dumps(s.to_public_dict(), indent=2))


@app.command()
def doctor() -> None:
    """Run environment diagnostics."""
    with _report_errors():
        settings = Settings()
        code = run_doctor(settings)
    raise typer.Exit(code=code)


@app.command()
def generate(
    media: Path = typer.Argument(..., exists=True, dir_okay=False, help="Video or audio file."),
    out: Path = typer.Option(None, help="Output caption path (default: next to the media)."),
    fmt: str = typer.Option(None, "--format", help="Caption format: srt, vtt."),
    language: str = typer.Option(None, help="Language: auto, ja, en (overrides config)."),
    backend: str = typer.Option(None, help="Transcription backend: openai, faster-whisper."),
    workdir: str = typer.Option(None, help="Workdir for audio and stored tracks (overrides config)."),
    store: bool = typer.Option(True, "--store/--no-store", help="Persist the generated track."),
    reuse: bool = typer.Option(True, "--reuse/--no-reuse", help="Reuse a stored track for this media."),
    log_level: str = typer.Option(None, help="Log level (overrides config)."),
) -> None:
    """Transcribe media and write synthesized captions."""
    with _report_errors():
        settings = _settings(workdir=workdir, language=language, backend=backend, log_level=log_level)
        out_fmt = _parse_format(fmt, TimeFormat.from_path(out) if out else TimeFormat.SRT)
        out_path = out or media.with_suffix(f".{out_fmt.value}")
        track_store = _track_store(settings)

        track = track_store.load(media_key(media)) if reuse else None
        if track is not None:
            typer.echo(f"♻️ Reusing stored track ({len(track)} cues)")
        else:
            result = _run_generation(media, settings=settings, store=track_store if store else None)
            track = result.track
            log.info("Generated in %.2fs", total_duration(result.steps))
            log.debug("Step timings: %s", json.dumps([step.as_dict() for step in result.steps]))

        out_path.write_text(serialize_track(track, out_fmt), encoding="utf-8")
    typer.echo(f"✅ Done. {len(track)} cues")
    typer.echo(f"📦 Output: {out_path}")


@app.command()
def convert(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source SRT/VTT file."),
    output_path: Path = typer.Argument(..., help="Destination; the suffix picks SRT or VTT."),
    offset: float = typer.Option(0.0, help="Global offset in seconds (positive delays)."),
    frame_rate: float = typer.Option(None, help="Quantization frame rate (overrides config)."),
    language: str = typer.Option(None, help="Language: auto, ja, en (overrides config)."),
    log_level: str = typer.Option(None, help="Log level (overrides config)."),
) -> None:
    """Normalize, retime and re-encode a caption file."""
    with _report_errors():
        settings = _settings(language=language, log_level=log_level)
        if frame_rate is not None:
            settings.frame_rate = frame_rate
        track = _load_caption_file(input_path, settings)
        retimed = retime_track(
            track,
            global_offset=offset,
            frame_rate=settings.frame_rate,
            logographic_extension=settings.logographic_extension,
        )
        fmt = TimeFormat.from_path(output_path)
        output_path.write_text(serialize_track(retimed, fmt), encoding="utf-8")
    typer.echo(f"✅ Wrote {len(retimed)} cues ({fmt.value}) to {output_path}")


@app.command()
def inspect(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="SRT/VTT file."),
    language: str = typer.Option(None, help="Language: auto, ja, en (overrides config)."),
    log_level: str = typer.Option(None, help="Log level (overrides config)."),
) -> None:
    """Summarize a caption file after normalization."""
    with _report_errors():
        settings = _settings(language=language, log_level=log_level)
        track = _load_caption_file(input_path, settings)
    summary = {
        "cue_count": len(track),
        "script": track.script.value,
        "scene_count": track.scene_count,
        "start": track[0].start if len(track) else None,
        "end": track[-1].end if len(track) else None,
        "durations": track.stats(),
        "overlaps": len(track.overlaps()),
    }
    typer.echo(json.dumps(summary, indent=2, ensure_ascii=False))


@app.command()
def play(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="SRT/VTT file."),
    start: float = typer.Option(0.0, help="Playback start (seconds)."),
    end: float = typer.Option(None, help="Playback end (default: last cue end + 1s)."),
    step: float = typer.Option(0.1, help="Clock tick (seconds)."),
    offset: float = typer.Option(0.0, help="Manual offset (positive delays captions)."),
    language: str = typer.Option(None, help="Language: auto, ja, en (overrides config)."),
    log_level: str = typer.Option(None, help="Log level (overrides config)."),
) -> None:
    """Simulate a playback clock and print each caption change."""
    if step <= 0:
        raise typer.BadParameter("--step must be positive.")
    with _report_errors():
        settings = _settings(language=language, log_level=log_level)
        track = _load_caption_file(input_path, settings)
    session = PlaybackSession(
        track,
        sync_config=SyncConfig.from_settings(settings),
        rules=SceneRules.from_settings(settings, track.script),
        frame_rate=settings.frame_rate,
        logographic_extension=settings.logographic_extension,
    )
    session.set_manual_offset(offset)
    stop = end if end is not None else (track[-1].end + 1.0 if len(track) else start)

    shown = ""
    ticks = int((stop - start) / step) + 1
    for idx in range(max(0, ticks)):
        t = start + idx * step
        text = session.tick(t)
        if text != shown:
            label = text.replace("\n", " / ") if text else "(clear)"
            typer.echo(f"{t:8.3f}\t{label}")
            shown = text


@tracks_app.command("list")
def tracks_list(
    workdir: str = typer.Option(None, help="Workdir for stored tracks (overrides config)."),
) -> None:
    """List stored tracks, newest first."""
    with _report_errors():
        settings = _settings(workdir=workdir)
        summaries = _track_store(settings).list()
    typer.echo("key\tfile_name\tcues\tdate_generated")
    for summary in summaries:
        typer.echo(f"{summary.key}\t{summary.file_name}\t{summary.cue_count}\t{summary.date_generated}")


@tracks_app.command("show")
def tracks_show(
    key: str = typer.Argument(..., help="Media key (see `cuesync tracks list`)."),
    fmt: str = typer.Option("srt", "--format", help="Caption format: srt, vtt."),
    workdir: str = typer.Option(None, help="Workdir for stored tracks (overrides config)."),
) -> None:
    """Print a stored track."""
    out_fmt = _parse_format(fmt, TimeFormat.SRT)
    with _report_errors():
        settings = _settings(workdir=workdir)
        track = _track_store(settings).load(key)
    if track is None:
        raise typer.BadParameter(f"No stored track for key '{key}'.")
    typer.echo(serialize_track(track, out_fmt), nl=False)


@tracks_app.command("delete")
def tracks_delete(
    key: str = typer.Argument(..., help="Media key (see `cuesync tracks list`)."),
    workdir: str = typer.Option(None, help="Workdir for stored tracks (overrides config)."),
) -> None:
    """Delete a stored track."""
    with _report_errors():
        settings = _settings(workdir=workdir)
        deleted = _track_store(settings).delete(key)
    if not deleted:
        raise typer.BadParameter(f"No stored track for key '{key}'.")
    typer.echo(f"🗑️ Deleted {key}")


def _main() -> None:
    app()


if __name__ == "__main__":
    _main()
