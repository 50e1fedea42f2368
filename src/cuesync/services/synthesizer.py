"""
Cue synthesis for cuesync.

Turns raw, irregularly timed transcription segments into a finalized
Track. Every pass is a pure list -> list builder so each one can be
tested on its own and no pass ever edits a list it is iterating.

Passes:
0) cleanup: trim text, drop empties, split inline furigana
1) scene tagging on the raw timings (extended ends would hide gaps)
2) duration extension bounded by the successor and the scene
3) short-gap stitching within each scene
4) length-bounded splitting (sentences first, then word wrap)
5) normalization: minimum duration, no overlap, micro-gap collapse, ids

Does NOT:
- Call the transcription service (see transcription.py)
- Shift or frame-quantize timing (see retime.py)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from itertools import groupby
from typing import TYPE_CHECKING, Iterable, Sequence

from cuesync.domain.cues import Cue, RawSegment, Track
from cuesync.domain.furigana import join_readings, parse_furigana
from cuesync.domain.language import (
    ALPHABETIC_PROFILE,
    LanguageProfile,
    ScriptFamily,
    detect_script,
    profile_for,
)
from cuesync.services.scenes import SceneRules
from cuesync.services.timestamps import TimeFormat, detect_format, parse_track
from cuesync.utils.logging import get_logger
from cuesync.utils.text import normalize_text

if TYPE_CHECKING:
    from pathlib import Path

    from cuesync.config.settings import Settings

log = get_logger(__name__)

MIN_CUE_SECONDS = 0.001


@dataclass(frozen=True)
class SynthesisConfig:
    base_min_duration: float = 1.2
    extra_time: float = 0.3
    overlap_allowance: float = 0.5
    scene_lead_seconds: float = 0.5
    trailing_grace: float = 3.0
    stitch_gap_seconds: float = 1.0
    max_chars_per_cue: int = 60
    max_lines_per_cue: int = 2
    min_gap_seconds: float = 0.1
    drift_warning_seconds: float = 2.0

    @classmethod
    def from_settings(cls, settings: "Settings") -> "SynthesisConfig":
        return cls(
            base_min_duration=settings.base_min_duration,
            extra_time=settings.extra_time,
            overlap_allowance=settings.overlap_allowance,
            scene_lead_seconds=settings.scene_lead_seconds,
            trailing_grace=settings.trailing_grace,
            stitch_gap_seconds=settings.stitch_gap_seconds,
            max_chars_per_cue=settings.max_chars_per_cue,
            max_lines_per_cue=settings.max_lines_per_cue,
            min_gap_seconds=settings.min_gap_seconds,
            drift_warning_seconds=settings.drift_warning_seconds,
        )

    @property
    def line_width(self) -> int:
        # Room for the newlines between lines inside one cue.
        lines = max(1, self.max_lines_per_cue)
        return max(1, (self.max_chars_per_cue - (lines - 1)) // lines)


def min_duration(cue: Cue, *, config: SynthesisConfig, profile: LanguageProfile) -> float:
    return max(
        config.base_min_duration,
        profile.reading_time(cue.char_count) + config.extra_time,
    )


def _nonspace_len(text: str) -> int:
    return len("".join(text.split()))


# ----------------------------------------------------------------------
# Pass 0: cleanup
# ----------------------------------------------------------------------
def clean_segments(segments: Iterable[RawSegment]) -> list[Cue]:
    cues: list[Cue] = []
    for seg in segments:
        annotated = parse_furigana(normalize_text(seg.text))
        text = normalize_text(annotated.main_text)
        if not text:
            continue
        start = max(0.0, float(seg.start))
        end = max(start, float(seg.end))
        cues.append(
            Cue(
                id=len(cues) + 1,
                start=start,
                end=end,
                text=text,
                reading=annotated.reading,
            )
        )
    return cues


# ----------------------------------------------------------------------
# Pass 1: scene tagging
# ----------------------------------------------------------------------
def tag_scenes(cues: Sequence[Cue], rules: SceneRules) -> list[Cue]:
    if not cues:
        return []
    scene_id = 1
    tagged = [replace(cues[0], scene_id=scene_id)]
    for prev, cue in zip(cues, cues[1:]):
        if rules.is_boundary(prev, cue):
            scene_id += 1
        tagged.append(replace(cue, scene_id=scene_id))
    return tagged


# ----------------------------------------------------------------------
# Pass 2: duration extension
# ----------------------------------------------------------------------
def extend_durations(
    cues: Sequence[Cue],
    *,
    config: SynthesisConfig,
    profile: LanguageProfile,
) -> list[Cue]:
    """
    Stretch each cue to its reading-time minimum.

    A cue may run at most `overlap_allowance` into a successor from the
    same scene. Before a successor that opens a new scene it is cut to end
    `scene_lead_seconds` early instead. The last cue gets a trailing grace.
    """
    extended: list[Cue] = []
    for idx, cue in enumerate(cues):
        end = max(cue.end, cue.start + min_duration(cue, config=config, profile=profile))
        if idx + 1 < len(cues):
            nxt = cues[idx + 1]
            if nxt.scene_id != cue.scene_id:
                end = min(end, nxt.start - config.scene_lead_seconds)
            else:
                end = min(end, nxt.start + config.overlap_allowance)
        else:
            end += config.trailing_grace
        end = max(end, cue.start + MIN_CUE_SECONDS)
        extended.append(cue.with_times(cue.start, end))
    return extended


# ----------------------------------------------------------------------
# Pass 3: short-gap stitching
# ----------------------------------------------------------------------
def _stitch_scene(cues: list[Cue], config: SynthesisConfig, joiner: str) -> list[Cue]:
    stitched: list[Cue] = []
    buffer = cues[0]
    for cue in cues[1:]:
        gap = cue.start - buffer.end
        joined = f"{buffer.text}{joiner}{cue.text}"
        if gap < config.stitch_gap_seconds and len(joined) <= config.max_chars_per_cue:
            buffer = replace(
                buffer,
                text=joined,
                end=max(buffer.end, cue.end),
                reading=join_readings(buffer.reading, cue.reading),
            )
            continue
        stitched.append(buffer)
        buffer = cue
    stitched.append(buffer)
    return stitched


def stitch(
    cues: Sequence[Cue],
    *,
    config: SynthesisConfig,
    profile: LanguageProfile = ALPHABETIC_PROFILE,
) -> list[Cue]:
    """Merge near-adjacent cues of the same scene while they fit in one cue."""
    merged: list[Cue] = []
    for _scene_id, group in groupby(cues, key=lambda c: c.scene_id):
        merged.extend(_stitch_scene(list(group), config, profile.sentence_joiner))
    return merged


# ----------------------------------------------------------------------
# Pass 4: length-bounded splitting
# ----------------------------------------------------------------------
def _pack_sentences(sentences: list[str], *, max_chars: int, joiner: str) -> list[str]:
    packed: list[str] = []
    current = ""
    for sentence in sentences:
        candidate = f"{current}{joiner}{sentence}" if current else sentence
        if len(candidate) <= max_chars or not current:
            current = candidate
            continue
        packed.append(current)
        current = sentence
    if current:
        packed.append(current)
    return packed


def _wrap_lines(text: str, *, width: int, profile: LanguageProfile) -> list[str]:
    units, joiner = profile.wrap_units(text)
    # A unit wider than a line (a URL, an unspaced run) is chopped.
    pieces: list[str] = []
    for unit in units:
        if len(unit) <= width:
            pieces.append(unit)
        else:
            pieces.extend(unit[i : i + width] for i in range(0, len(unit), width))

    lines: list[str] = []
    current = ""
    for piece in pieces:
        candidate = f"{current}{joiner}{piece}" if current else piece
        if len(candidate) <= width:
            current = candidate
            continue
        lines.append(current)
        current = piece
    if current:
        lines.append(current)
    return lines


def wrap_fragments(text: str, *, config: SynthesisConfig, profile: LanguageProfile) -> list[str]:
    lines = _wrap_lines(text, width=config.line_width, profile=profile)
    per_cue = max(1, config.max_lines_per_cue)
    return ["\n".join(lines[i : i + per_cue]) for i in range(0, len(lines), per_cue)]


def split_text(text: str, *, config: SynthesisConfig, profile: LanguageProfile) -> list[str]:
    if len(text) <= config.max_chars_per_cue:
        return [text]
    sentences = profile.split_sentences(text)
    if len(sentences) <= 1:
        return wrap_fragments(text, config=config, profile=profile)
    fragments: list[str] = []
    for chunk in _pack_sentences(
        sentences,
        max_chars=config.max_chars_per_cue,
        joiner=profile.sentence_joiner,
    ):
        if len(chunk) <= config.max_chars_per_cue:
            fragments.append(chunk)
        else:
            fragments.extend(wrap_fragments(chunk, config=config, profile=profile))
    return fragments


def split_cue(cue: Cue, *, config: SynthesisConfig, profile: LanguageProfile) -> list[Cue]:
    """
    Split an over-long cue into fragments that each fit in one cue.

    Fragment spans are proportional to their share of the original
    (non-whitespace) characters and are carved out of the original span,
    so the total duration is conserved exactly.
    """
    fragments = split_text(cue.text, config=config, profile=profile)
    if len(fragments) <= 1:
        return [cue]
    total = sum(_nonspace_len(f) for f in fragments) or 1
    duration = cue.duration
    cues: list[Cue] = []
    consumed = 0
    start = cue.start
    for idx, fragment in enumerate(fragments):
        consumed += _nonspace_len(fragment)
        end = cue.end if idx == len(fragments) - 1 else cue.start + duration * consumed / total
        cues.append(
            replace(
                cue,
                start=start,
                end=end,
                text=fragment,
                reading=cue.reading if idx == 0 else None,
            )
        )
        start = end
    return cues


def split_long_cues(
    cues: Sequence[Cue],
    *,
    config: SynthesisConfig,
    profile: LanguageProfile,
) -> list[Cue]:
    result: list[Cue] = []
    for cue in cues:
        if cue.char_count > config.max_chars_per_cue:
            result.extend(split_cue(cue, config=config, profile=profile))
        else:
            result.append(cue)
    return result


# ----------------------------------------------------------------------
# Pass 5: normalization
# ----------------------------------------------------------------------
def normalize_cues(
    cues: Sequence[Cue],
    *,
    config: SynthesisConfig,
    profile: LanguageProfile,
) -> list[Cue]:
    """
    Enforce the track invariants.

    Overlaps are resolved at a split point weighted by text length, never
    taking the earlier cue below its minimum duration. Every cue is then
    held to its minimum duration, pushing its successor if needed. Gaps
    under `min_gap_seconds` collapse to their midpoint. Ids are renumbered.

    Minimum durations can cascade through dense speech and push later cues
    well past their spoken start; a push beyond `drift_warning_seconds` is
    logged.
    """
    ordered = sorted(cues, key=lambda c: c.start)
    spans: list[list[float]] = []
    for idx, cue in enumerate(ordered):
        start, end = cue.start, cue.end
        if spans:
            prev = ordered[idx - 1]
            prev_span = spans[-1]
            if start < prev_span[1]:
                total = prev.char_count + cue.char_count
                weight = prev.char_count / total if total else 0.5
                split_at = start + (prev_span[1] - start) * weight
                prev_floor = prev_span[0] + min_duration(prev, config=config, profile=profile)
                split_at = min(max(split_at, prev_floor), prev_span[1])
                prev_span[1] = split_at
                start = split_at
        end = max(end, start + min_duration(cue, config=config, profile=profile))
        spans.append([start, end])

    for cur, nxt in zip(spans, spans[1:]):
        gap = nxt[0] - cur[1]
        if 0 < gap < config.min_gap_seconds:
            midpoint = (cur[1] + nxt[0]) / 2
            cur[1] = midpoint
            nxt[0] = midpoint

    drifts = [span[0] - cue.start for cue, span in zip(ordered, spans)]
    worst = max(drifts, default=0.0)
    if worst > config.drift_warning_seconds:
        idx = drifts.index(worst)
        log.warning(
            "Minimum durations pushed cue %d %.2fs past its spoken start (%.2fs -> %.2fs)",
            idx + 1,
            worst,
            ordered[idx].start,
            spans[idx][0],
        )

    return [
        replace(cue, id=idx, start=span[0], end=span[1])
        for idx, (cue, span) in enumerate(zip(ordered, spans), start=1)
    ]


# ----------------------------------------------------------------------
# Orchestration
# ----------------------------------------------------------------------
class CueSynthesizer:
    """Batch transform from raw segments (or a caption file) to a Track."""

    def __init__(
        self,
        config: SynthesisConfig | None = None,
        rules: SceneRules | None = None,
    ) -> None:
        self.config = config or SynthesisConfig()
        self.rules = rules or SceneRules()

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CueSynthesizer":
        return cls(
            config=SynthesisConfig.from_settings(settings),
            rules=SceneRules.from_settings(settings),
        )

    def synthesize(
        self,
        segments: Iterable[RawSegment],
        *,
        script: ScriptFamily | None = None,
        generation: int = 0,
    ) -> Track:
        cleaned = clean_segments(segments)
        if not cleaned:
            log.info("No usable segments; returning an empty track.")
            return Track(script=script or ScriptFamily.ALPHABETIC, generation=generation)

        script = script or detect_script([cue.text for cue in cleaned])
        profile = profile_for(script)
        rules = self.rules.for_script(script)

        tagged = tag_scenes(cleaned, rules)
        extended = extend_durations(tagged, config=self.config, profile=profile)
        stitched = stitch(extended, config=self.config, profile=profile)
        split = split_long_cues(stitched, config=self.config, profile=profile)
        final = normalize_cues(split, config=self.config, profile=profile)
        log.debug(
            "Synthesis passes: cleaned=%d stitched=%d split=%d",
            len(cleaned),
            len(stitched),
            len(split),
        )

        track = Track.from_cues(final, script=script, generation=generation)
        log.info(
            "Synthesized %d cues in %d scenes from %d segments (script=%s)",
            len(track),
            track.scene_count,
            len(cleaned),
            script.value,
        )
        return track

    def finalize(
        self,
        track: Track,
        *,
        script: ScriptFamily | None = None,
        keep_scenes: bool = False,
    ) -> Track:
        """
        Bring a parsed track up to the synthesized invariants.

        Scenes are re-detected unless `keep_scenes` is set, for tracks whose
        cues already carry the ids they were synthesized with.
        """
        if track.is_empty:
            return track
        script = script or track.script
        profile = profile_for(script)
        tagged = list(track) if keep_scenes else tag_scenes(list(track), self.rules.for_script(script))
        final = normalize_cues(tagged, config=self.config, profile=profile)
        return Track.from_cues(final, script=script, generation=track.generation)

    def load(
        self,
        content: str,
        *,
        filename: "str | Path | None" = None,
        fmt: TimeFormat | None = None,
        script: ScriptFamily | None = None,
    ) -> Track:
        fmt = fmt or detect_format(content, filename)
        parsed = parse_track(content, fmt)
        track = self.finalize(parsed, script=script)
        log.info("Loaded %d cues (%s, script=%s)", len(track), fmt.value, track.script.value)
        return track


def load_track(
    content: str,
    *,
    filename: "str | Path | None" = None,
    synthesizer: CueSynthesizer | None = None,
) -> Track:
    return (synthesizer or CueSynthesizer()).load(content, filename=filename)


def synthesize_track(
    segments: Iterable[RawSegment],
    *,
    script: ScriptFamily | None = None,
    synthesizer: CueSynthesizer | None = None,
) -> Track:
    return (synthesizer or CueSynthesizer()).synthesize(segments, script=script)


def cue_minimum(cue: Cue, track: Track, config: SynthesisConfig | None = None) -> float:
    """Minimum duration a finalized cue of `track` is guaranteed to have."""
    return min_duration(cue, config=config or SynthesisConfig(), profile=profile_for(track.script))


