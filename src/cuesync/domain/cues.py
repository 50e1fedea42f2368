from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator, Optional

from cuesync.domain.language import ScriptFamily


@dataclass(frozen=True)
class RawSegment:
    """One unrefined unit of transcribed speech."""

    start: float
    end: float
    text: str


@dataclass(frozen=True)
class Cue:
    id: int
    start: float
    end: float
    text: str
    scene_id: int = 1
    reading: Optional[str] = None

    @property
    def char_count(self) -> int:
        return len(self.text)

    @property
    def duration(self) -> float:
        return self.end - self.start

    def contains(self, seconds: float) -> bool:
        return self.start <= seconds <= self.end

    def with_times(self, start: float, end: float) -> "Cue":
        return replace(self, start=start, end=end)


@dataclass(frozen=True)
class Track:
    """
    Ordered, non-overlapping cues for one media item.

    Tracks are never mutated; retiming or re-synthesis builds a new one.
    """

    cues: tuple[Cue, ...] = ()
    script: ScriptFamily = ScriptFamily.ALPHABETIC
    generation: int = 0
    metadata: dict = field(default_factory=dict, compare=False)

    @classmethod
    def from_cues(
        cls,
        cues: Iterable[Cue],
        *,
        script: ScriptFamily = ScriptFamily.ALPHABETIC,
        generation: int = 0,
        renumber: bool = True,
    ) -> "Track":
        ordered = sorted(cues, key=lambda c: (c.start, c.end))
        if renumber:
            ordered = [replace(cue, id=idx) for idx, cue in enumerate(ordered, start=1)]
        return cls(cues=tuple(ordered), script=script, generation=generation)

    def __len__(self) -> int:
        return len(self.cues)

    def __iter__(self) -> Iterator[Cue]:
        return iter(self.cues)

    def __getitem__(self, index: int) -> Cue:
        return self.cues[index]

    @property
    def is_empty(self) -> bool:
        return not self.cues

    @property
    def duration(self) -> float:
        if not self.cues:
            return 0.0
        return self.cues[-1].end - self.cues[0].start

    @property
    def scene_count(self) -> int:
        return len({cue.scene_id for cue in self.cues})

    def with_generation(self, generation: int) -> "Track":
        return replace(self, generation=generation)

    def overlaps(self) -> list[tuple[int, int]]:
        """Return id pairs of adjacent cues that overlap."""
        bad: list[tuple[int, int]] = []
        for prev, nxt in zip(self.cues, self.cues[1:]):
            if nxt.start < prev.end:
                bad.append((prev.id, nxt.id))
        return bad

    def stats(self) -> dict:
        durations = [cue.duration for cue in self.cues]
        if not durations:
            return {}
        return {
            "cue_count": len(durations),
            "scene_count": self.scene_count,
            "min_seconds": min(durations),
            "max_seconds": max(durations),
            "avg_seconds": sum(durations) / len(durations),
        }
