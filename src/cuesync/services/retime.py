"""
Track retiming: global offset, logographic extension, frame quantization.

A new global offset never edits the visible track; `retime_track` builds
a fresh Track that a session can swap in atomically.
"""

from __future__ import annotations

from cuesync.domain.cues import Cue, Track
from cuesync.domain.language import ScriptFamily
from cuesync.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_FRAME_RATE = 24.0
MIN_FRAMES_PER_CUE = 2


def quantize(seconds: float, frame_rate: float = DEFAULT_FRAME_RATE) -> float:
    """Round a time to the nearest frame boundary of `frame_rate`."""
    if frame_rate <= 0:
        return seconds
    return round(seconds * frame_rate) / frame_rate


def shift_cue(cue: Cue, offset: float) -> Cue:
    start = cue.start + offset
    end = cue.end + offset
    if start < 0:
        # Keep the duration when clamping at zero.
        end -= start
        start = 0.0
    return cue.with_times(start, end)


def retime_track(
    track: Track,
    *,
    global_offset: float = 0.0,
    frame_rate: float = DEFAULT_FRAME_RATE,
    logographic_extension: float = 0.1,
) -> Track:
    if track.is_empty:
        return track
    frame = 1.0 / frame_rate if frame_rate > 0 else 0.0
    min_span = frame * MIN_FRAMES_PER_CUE

    retimed: list[Cue] = []
    for cue in track:
        cue = shift_cue(cue, global_offset)
        end = cue.end
        if track.script is ScriptFamily.LOGOGRAPHIC and logographic_extension > 0:
            end += cue.duration * logographic_extension
        start = quantize(cue.start, frame_rate)
        end = quantize(end, frame_rate)
        if end - start < min_span:
            end = start + min_span
        retimed.append(cue.with_times(start, end))

    # The extension may reach into the successor; trim back to its start
    # but never under the two-frame floor.
    trimmed: list[Cue] = []
    for idx, cue in enumerate(retimed):
        if idx + 1 < len(retimed):
            nxt_start = retimed[idx + 1].start
            if cue.end > nxt_start:
                cue = cue.with_times(cue.start, max(nxt_start, cue.start + min_span))
        if trimmed and cue.start < trimmed[-1].end:
            shift = trimmed[-1].end - cue.start
            cue = cue.with_times(trimmed[-1].end, cue.end + shift)
        trimmed.append(cue)

    log.debug(
        "Retimed %d cues (offset=%.3fs, fps=%.3f)", len(trimmed), global_offset, frame_rate
    )
    return Track.from_cues(trimmed, script=track.script, generation=track.generation)
