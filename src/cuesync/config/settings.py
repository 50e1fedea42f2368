from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime configuration for cuesync.

    All settings are loaded from environment variables with the
    `CUESYNC_` prefix and optional `.env` support.

    Synthesis, scene and sync tunables live here so a deployment can
    adjust them without code changes; the core components receive them
    through their `from_settings` constructors.
    """

    model_config = SettingsConfigDict(
        env_prefix="CUESYNC_",
        env_file=".env",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Runtime
    # ------------------------------------------------------------------
    workdir: str = Field(
        default=".cuesync",
        description="Root directory for extracted audio and stored tracks.",
    )
    language: str = Field(
        default="auto",
        description="Script family of captions: auto, ja (logographic) or en (alphabetic).",
    )

    # ------------------------------------------------------------------
    # Transcription
    # ------------------------------------------------------------------
    transcription_backend: str = Field(
        default="openai",
        description="Transcription backend: openai or faster-whisper.",
    )
    openai_model: str = Field(
        default="whisper-1",
        description="OpenAI transcription model name.",
    )
    whisper_model: str = Field(
        default="base",
        description="faster-whisper model size for local transcription.",
    )

    # ------------------------------------------------------------------
    # Cue synthesis
    # ------------------------------------------------------------------
    base_min_duration: float = Field(
        default=1.2,
        description="Absolute minimum cue duration in seconds.",
    )
    extra_time: float = Field(
        default=0.3,
        description="Seconds added to the reading time of every cue.",
    )
    overlap_allowance: float = Field(
        default=0.5,
        description="How far an extended cue may run into its successor (seconds).",
    )
    scene_lead_seconds: float = Field(
        default=0.5,
        description="A cue before a new scene ends this many seconds before it.",
    )
    trailing_grace: float = Field(
        default=3.0,
        description="Extra seconds granted to the final cue of a track.",
    )
    stitch_gap_seconds: float = Field(
        default=1.0,
        description="Cues closer than this within a scene are merged.",
    )
    max_chars_per_cue: int = Field(
        default=60,
        description="Maximum characters in a single cue.",
    )
    max_lines_per_cue: int = Field(
        default=2,
        description="Maximum lines a cue is wrapped into.",
    )
    min_gap_seconds: float = Field(
        default=0.1,
        description="Gaps shorter than this collapse to a shared boundary.",
    )
    drift_warning_seconds: float = Field(
        default=2.0,
        description="Warn when minimum durations push a cue this far past its spoken start.",
    )

    # ------------------------------------------------------------------
    # Scene detection
    # ------------------------------------------------------------------
    scene_gap_seconds: float = Field(
        default=2.0,
        description="Silence longer than this starts a new scene.",
    )
    scene_max_id_distance: int = Field(
        default=3,
        description="Skipping more cues than this during playback counts as a cut.",
    )

    # ------------------------------------------------------------------
    # Playback sync
    # ------------------------------------------------------------------
    adaptive_step: float = Field(
        default=0.05,
        description="Adaptive offset correction per observed early/late cue (seconds).",
    )
    adaptive_offset_min: float = Field(
        default=-0.8,
        description="Lower clamp for the adaptive offset (seconds).",
    )
    adaptive_offset_max: float = Field(
        default=-0.1,
        description="Upper clamp for the adaptive offset (seconds).",
    )
    early_fraction: float = Field(
        default=0.1,
        description="A cue matched before this fraction of its window counts as early.",
    )
    late_fraction: float = Field(
        default=0.9,
        description="A cue matched after this fraction of its window counts as late.",
    )

    # ------------------------------------------------------------------
    # Retiming
    # ------------------------------------------------------------------
    frame_rate: float = Field(
        default=24.0,
        description="Reference frame rate used to quantize cue boundaries.",
    )
    logographic_extension: float = Field(
        default=0.1,
        description="Fractional duration extension applied to logographic cues.",
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR).",
    )

    # ------------------------------------------------------------------
    # Public / safe export
    # ------------------------------------------------------------------
    def to_public_dict(self) -> dict:
        """
        Return a dictionary of non-sensitive settings suitable
        for logging or CLI display.
        """
        return {
            "workdir": self.workdir,
            "language": self.language,
            "transcription_backend": self.transcription_backend,
            "openai_model": self.openai_model,
            "whisper_model": self.whisper_model,
            "base_min_duration": self.base_min_duration,
            "extra_time": self.extra_time,
            "overlap_allowance": self.overlap_allowance,
            "scene_lead_seconds": self.scene_lead_seconds,
            "trailing_grace": self.trailing_grace,
            "stitch_gap_seconds": self.stitch_gap_seconds,
            "max_chars_per_cue": self.max_chars_per_cue,
            "max_lines_per_cue": self.max_lines_per_cue,
            "min_gap_seconds": self.min_gap_seconds,
            "drift_warning_seconds": self.drift_warning_seconds,
            "scene_gap_seconds": self.scene_gap_seconds,
            "scene_max_id_distance": self.scene_max_id_distance,
            "adaptive_step": self.adaptive_step,
            "adaptive_offset_min": self.adaptive_offset_min,
            "adaptive_offset_max": self.adaptive_offset_max,
            "early_fraction": self.early_fraction,
            "late_fraction": self.late_fraction,
            "frame_rate": self.frame_rate,
            "logographic_extension": self.logographic_extension,
            "log_level": self.log_level,
        }
