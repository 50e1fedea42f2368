"""
Transcription collaborators for cuesync.

Turns an audio file into RawSegments using either the OpenAI Whisper API
or a local faster-whisper model.

Responsibilities:
- Produce ordered RawSegments (start/end seconds, text)
- Report coarse progress while the blocking call runs
- Surface service failures verbatim as TranscriptionError

Does NOT:
- Retry or throttle requests
- Refine segment timing (see synthesizer.py)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from cuesync.config.settings import Settings
from cuesync.domain.cues import RawSegment
from cuesync.exceptions import (
    ConfigurationError,
    DependencyMissingError,
    TranscriptionError,
    TranscriptionRateLimitError,
)
from cuesync.utils.logging import get_logger

log = get_logger(__name__)

ProgressCallback = Callable[[float], None]

OPENAI_API_KEY_ENV = "CUESYNC_OPENAI_API_KEY"


def report_progress(progress: Optional[ProgressCallback], value: float) -> None:
    if progress is not None:
        progress(max(0.0, min(1.0, value)))


class TranscriptionBackend(Protocol):
    def transcribe(
        self,
        audio_path: Path,
        *,
        progress: Optional[ProgressCallback] = None,
    ) -> list[RawSegment]: ...


def _field(obj: Any, name: str) -> Any:
    value = getattr(obj, name, None)
    if value is None and isinstance(obj, dict):
        value = obj.get(name)
    return value


def segments_from_response(resp: Any) -> list[RawSegment]:
    """Read segments from an object-like or dict-like verbose_json response."""
    segments = _field(resp, "segments")
    if not segments:
        raise TranscriptionError("No segments returned by transcription; cannot build cues.")
    result: list[RawSegment] = []
    for seg in segments:
        start = _field(seg, "start")
        end = _field(seg, "end")
        if start is None or end is None:
            continue
        result.append(RawSegment(start=float(start), end=float(end), text=str(_field(seg, "text") or "")))
    return result


def _is_rate_limit(exc: Exception, openai_module: Any) -> bool:
    rate_limit_cls = getattr(openai_module, "RateLimitError", None)
    if rate_limit_cls is not None and isinstance(exc, rate_limit_cls):
        return True
    return "rate limit" in str(exc).lower()


class OpenAITranscribeBackend:
    """
    OpenAI Whisper backend.

    Uses `response_format="verbose_json"` to obtain segment timestamps.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "whisper-1",
        *,
        client: Any = None,
    ) -> None:
        import openai  # local import

        self._openai = openai
        self._client = client or openai.OpenAI(api_key=api_key)
        self._model = model

    def _request_transcription(self, *, audio_path: Path):
        with audio_path.open("rb") as f:
            return self._client.audio.transcriptions.create(
                model=self._model,
                file=f,
                response_format="verbose_json",
            )

    def transcribe(
        self,
        audio_path: Path,
        *,
        progress: Optional[ProgressCallback] = None,
    ) -> list[RawSegment]:
        report_progress(progress, 0.1)
        log.info("Transcribing %s via OpenAI (%s)", audio_path, self._model)
        try:
            resp = self._request_transcription(audio_path=audio_path)
        except Exception as exc:
            if _is_rate_limit(exc, self._openai):
                raise TranscriptionRateLimitError(str(exc)) from exc
            if isinstance(exc, self._openai.APIError):
                raise TranscriptionError(str(exc)) from exc
            raise
        report_progress(progress, 0.5)
        segments = segments_from_response(resp)
        log.info("Received %d segments from OpenAI", len(segments))
        return segments


@dataclass
class FasterWhisperBackend:
    """Local transcription via faster-whisper (optional dependency)."""

    model_size: str = "base"
    device: str = "cpu"
    compute_type: str = "int8"

    def _load_model(self):
        try:
            from faster_whisper import WhisperModel  # type: ignore
        except ImportError as exc:
            raise DependencyMissingError(
                "faster-whisper not installed; install the 'whisper' extra for local transcription."
            ) from exc
        return WhisperModel(self.model_size, device=self.device, compute_type=self.compute_type)

    def transcribe(
        self,
        audio_path: Path,
        *,
        progress: Optional[ProgressCallback] = None,
    ) -> list[RawSegment]:
        model = self._load_model()
        report_progress(progress, 0.1)
        log.info("Transcribing %s via faster-whisper (%s)", audio_path, self.model_size)
        segments, info = model.transcribe(str(audio_path))
        total = float(getattr(info, "duration", 0.0) or 0.0)
        result: list[RawSegment] = []
        for seg in segments:
            result.append(RawSegment(start=float(seg.start), end=float(seg.end), text=str(seg.text)))
            if total > 0:
                report_progress(progress, 0.1 + 0.4 * min(1.0, float(seg.end) / total))
        report_progress(progress, 0.5)
        return result


def create_transcription_backend(settings: Settings) -> TranscriptionBackend:
    """
    Factory: pick the configured backend, failing fast on missing credentials.
    """
    name = settings.transcription_backend.strip().lower()
    if name == "openai":
        api_key = os.getenv(OPENAI_API_KEY_ENV)
        if not api_key:
            raise ConfigurationError(
                f"{OPENAI_API_KEY_ENV} is not set; cannot use the OpenAI transcription backend."
            )
        log.info("Transcription backend: OpenAI (%s)", settings.openai_model)
        return OpenAITranscribeBackend(api_key=api_key, model=settings.openai_model)
    if name in {"faster-whisper", "faster_whisper", "local"}:
        log.info("Transcription backend: faster-whisper (%s)", settings.whisper_model)
        return FasterWhisperBackend(model_size=settings.whisper_model)
    raise ConfigurationError(
        f"Unknown transcription backend '{settings.transcription_backend}'; use openai or faster-whisper."
    )
