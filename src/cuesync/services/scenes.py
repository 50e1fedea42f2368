"""
Scene transition detection.

A single rule set decides whether two adjacent time points likely belong
to different narrative scenes. The cue synthesizer asks it about raw
segment pairs; the sync controller asks it about the last shown cue and a
candidate cue. Both must use the same `SceneRules` instance so the two
sides never disagree on what a cut is.

Rules (any one is sufficient):
- silence between the two exceeds `gap_seconds`
- the first ends a sentence and the second opens a new topic
- during playback only: more than `max_id_distance` cues were skipped
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Protocol

from cuesync.domain.language import ALPHABETIC_PROFILE, LanguageProfile, ScriptFamily, profile_for

if TYPE_CHECKING:
    from cuesync.config.settings import Settings


class Ending(Protocol):
    end: float
    text: str


class Beginning(Protocol):
    start: float
    text: str


SCENE_GAP_SECONDS = 2.0
SCENE_MAX_ID_DISTANCE = 3


@dataclass(frozen=True)
class SceneRules:
    gap_seconds: float = SCENE_GAP_SECONDS
    max_id_distance: int = SCENE_MAX_ID_DISTANCE
    profile: LanguageProfile = ALPHABETIC_PROFILE

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        script: ScriptFamily = ScriptFamily.ALPHABETIC,
    ) -> "SceneRules":
        return cls(
            gap_seconds=settings.scene_gap_seconds,
            max_id_distance=settings.scene_max_id_distance,
            profile=profile_for(script),
        )

    def for_script(self, script: ScriptFamily) -> "SceneRules":
        if self.profile.script is script:
            return self
        return replace(self, profile=profile_for(script))

    def is_boundary(
        self,
        prev: Ending,
        nxt: Beginning,
        *,
        id_distance: int | None = None,
    ) -> bool:
        if nxt.start - prev.end > self.gap_seconds:
            return True
        if self.profile.is_sentence_end(prev.text) and self.profile.is_topic_opener(nxt.text):
            return True
        if id_distance is not None and abs(id_distance) > self.max_id_distance:
            return True
        return False


def is_scene_boundary(
    prev: Ending,
    nxt: Beginning,
    *,
    rules: SceneRules,
    id_distance: int | None = None,
) -> bool:
    return rules.is_boundary(prev, nxt, id_distance=id_distance)
