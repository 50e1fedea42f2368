"""
Caption file codec for cuesync.

Converts SRT (`HH:MM:SS,mmm`) and WebVTT (`[HH:]MM:SS.mmm`) timestamps
to and from seconds, and reads/writes whole cue blocks.

Responsibilities:
- Lenient parsing: malformed blocks are skipped, bad timestamps read as 0
- Order-preserving serialization
- Inline furigana round-tripping (`text {reading}`)

Does NOT:
- Enforce track invariants (see synthesizer.load_track)
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path

from cuesync.domain.cues import Cue, Track
from cuesync.domain.furigana import AnnotatedText, parse_furigana
from cuesync.domain.language import ScriptFamily, detect_script
from cuesync.utils.logging import get_logger
from cuesync.utils.text import normalize_newlines, strip_bom

log = get_logger(__name__)


class TimeFormat(str, Enum):
    SRT = "srt"
    VTT = "vtt"

    @property
    def separator(self) -> str:
        return "," if self is TimeFormat.SRT else "."

    @classmethod
    def from_path(cls, path: str | Path) -> "TimeFormat":
        suffix = Path(path).suffix.lower().lstrip(".")
        return cls.VTT if suffix == "vtt" else cls.SRT


ARROW = "-->"
VTT_HEADER = "WEBVTT"
VTT_SKIP_BLOCKS = ("NOTE", "STYLE", "REGION")

TIMESTAMP_RE = re.compile(r"^(?:(\d+):)?(\d{1,2}):(\d{1,2})[,.](\d{1,3})$")
BLOCK_SPLIT_RE = re.compile(r"\n[ \t]*\n")


def parse_timestamp(text: str, fmt: TimeFormat = TimeFormat.SRT) -> float:
    """
    Parse a caption timestamp into seconds.

    Both separators are accepted regardless of `fmt`, and the hour group
    is optional. Anything unparsable reads as 0.0: a single bad value must
    not sink the whole file.
    """
    token = text.strip().split()[0] if text.strip() else ""
    match = TIMESTAMP_RE.match(token)
    if not match:
        log.debug("Unparsable %s timestamp %r; using 0.", fmt.value, text)
        return 0.0
    hours = int(match.group(1)) if match.group(1) else 0
    minutes = int(match.group(2))
    seconds = int(match.group(3))
    millis = int(match.group(4).ljust(3, "0"))
    return hours * 3600 + minutes * 60 + seconds + millis / 1000


def format_timestamp(seconds: float, fmt: TimeFormat = TimeFormat.SRT) -> str:
    total_ms = int(round(max(seconds, 0.0) * 1000))
    hh, rem = divmod(total_ms, 3_600_000)
    mm, rem = divmod(rem, 60_000)
    ss, ms = divmod(rem, 1000)
    return f"{hh:02d}:{mm:02d}:{ss:02d}{fmt.separator}{ms:03d}"


def detect_format(content: str, filename: str | Path | None = None) -> TimeFormat:
    if filename is not None:
        suffix = Path(filename).suffix.lower()
        if suffix == ".vtt":
            return TimeFormat.VTT
        if suffix == ".srt":
            return TimeFormat.SRT
    if strip_bom(content).lstrip().startswith(VTT_HEADER):
        return TimeFormat.VTT
    return TimeFormat.SRT


def _parse_block(lines: list[str], fmt: TimeFormat, ordinal: int) -> Cue | None:
    if lines and lines[0].startswith(VTT_HEADER):
        lines = lines[1:]
    if not lines:
        return None
    if fmt is TimeFormat.VTT and lines[0].split(" ", 1)[0] in VTT_SKIP_BLOCKS:
        return None

    # Optional numeric/identifier line, then the timing line.
    timing_idx = next((i for i, line in enumerate(lines[:2]) if ARROW in line), None)
    if timing_idx is None:
        log.debug("Skipping block without timing line: %r", lines[0])
        return None
    parts = lines[timing_idx].split(ARROW)
    if len(parts) != 2:
        log.debug("Skipping block with malformed arrow: %r", lines[timing_idx])
        return None

    text = "\n".join(line.strip() for line in lines[timing_idx + 1 :] if line.strip())
    if not text:
        log.debug("Skipping block without text: %r", lines[timing_idx])
        return None

    start = parse_timestamp(parts[0], fmt)
    end = parse_timestamp(parts[1], fmt)
    annotated = parse_furigana(text)
    if not annotated.main_text:
        return None
    return Cue(
        id=ordinal,
        start=start,
        end=end,
        text=annotated.main_text,
        reading=annotated.reading,
    )


def parse_track(content: str, fmt: TimeFormat | None = None) -> Track:
    """
    Parse SRT or WebVTT content into a Track.

    `fmt` is a hint; when omitted the format is sniffed from the content.
    Ids are reassigned densely in start order.
    """
    content = normalize_newlines(strip_bom(content))
    fmt = fmt or detect_format(content)

    cues: list[Cue] = []
    skipped = 0
    for block in BLOCK_SPLIT_RE.split(content.strip()):
        lines = [line.rstrip() for line in block.split("\n") if line.strip()]
        if not lines:
            continue
        cue = _parse_block(lines, fmt, len(cues) + 1)
        if cue is None:
            skipped += 1
            continue
        cues.append(cue)

    if skipped:
        log.debug("Parsed %d cues (%d blocks skipped).", len(cues), skipped)
    script = detect_script([cue.text for cue in cues]) if cues else ScriptFamily.ALPHABETIC
    return Track.from_cues(cues, script=script)


def serialize_track(track: Track, fmt: TimeFormat = TimeFormat.SRT) -> str:
    blocks: list[str] = []
    for cue in track:
        text = AnnotatedText(main_text=cue.text, reading=cue.reading).render()
        blocks.append(
            "\n".join(
                [
                    str(cue.id),
                    f"{format_timestamp(cue.start, fmt)} {ARROW} {format_timestamp(cue.end, fmt)}",
                    text,
                ]
            )
        )
    body = "\n\n".join(blocks)
    if fmt is TimeFormat.VTT:
        return f"{VTT_HEADER}\n\n{body}\n" if body else f"{VTT_HEADER}\n"
    return f"{body}\n" if body else ""
