"""
Playback synchronization for cuesync.

Given a live playback time, a manual offset and a finalized Track, the
controller decides which cue (if any) is visible, learns a small
adaptive correction for systematic timing bias, and peeks a short
lookahead ahead to reduce perceived lag.

The controller itself is immutable. All per-playback state lives in a
`SyncState` value that goes into `resolve` and comes back out, so a
sequence of synthetic ticks is enough to test it.

Does NOT:
- Own a clock (callers feed playback times)
- Track which generation of a track is current (see session.py)
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional

from cuesync.domain.cues import Cue, Track
from cuesync.domain.language import LanguageProfile, ScriptFamily, profile_for
from cuesync.services.scenes import SceneRules
from cuesync.utils.logging import get_logger

if TYPE_CHECKING:
    from cuesync.config.settings import Settings

log = get_logger(__name__)


@dataclass(frozen=True)
class SyncConfig:
    adaptive_step: float = 0.05
    adaptive_offset_min: float = -0.8
    adaptive_offset_max: float = -0.1
    early_fraction: float = 0.1
    late_fraction: float = 0.9

    @classmethod
    def from_settings(cls, settings: "Settings") -> "SyncConfig":
        return cls(
            adaptive_step=settings.adaptive_step,
            adaptive_offset_min=settings.adaptive_offset_min,
            adaptive_offset_max=settings.adaptive_offset_max,
            early_fraction=settings.early_fraction,
            late_fraction=settings.late_fraction,
        )

    def clamp(self, offset: float) -> float:
        return max(self.adaptive_offset_min, min(self.adaptive_offset_max, offset))


@dataclass(frozen=True)
class SyncState:
    adaptive_offset: float = 0.0
    last_shown_id: Optional[int] = None
    last_shown_end: float = 0.0
    last_shown_text: str = ""

    @property
    def has_shown(self) -> bool:
        return self.last_shown_id is not None

    def forget(self) -> "SyncState":
        return replace(self, last_shown_id=None, last_shown_end=0.0, last_shown_text="")

    def showing(self, cue: Cue) -> "SyncState":
        return replace(
            self,
            last_shown_id=cue.id,
            last_shown_end=cue.end,
            last_shown_text=cue.text,
        )


@dataclass(frozen=True)
class SyncResult:
    state: SyncState
    text: str = ""
    cue_id: Optional[int] = None


@dataclass(frozen=True)
class _ShownCue:
    """The last shown cue as the scene detector sees it."""

    id: int
    end: float
    text: str


class SyncController:
    def __init__(
        self,
        track: Track,
        *,
        config: SyncConfig | None = None,
        rules: SceneRules | None = None,
    ) -> None:
        self.track = track
        self.config = config or SyncConfig()
        self.rules = (rules or SceneRules()).for_script(track.script)
        self._starts = [cue.start for cue in track]

    @property
    def profile(self) -> LanguageProfile:
        return profile_for(self.track.script)

    @property
    def language(self) -> ScriptFamily:
        return self.track.script

    def initial_state(self) -> SyncState:
        return SyncState(adaptive_offset=self.config.clamp(self.profile.initial_offset))

    def find_cue(self, seconds: float) -> tuple[Cue | None, Cue | None]:
        """Return (containing cue, next upcoming cue) for a track time."""
        idx = bisect_right(self._starts, seconds) - 1
        if idx >= 0 and self.track[idx].contains(seconds):
            return self.track[idx], None
        nxt_idx = idx + 1
        upcoming = self.track[nxt_idx] if nxt_idx < len(self.track) else None
        return None, upcoming

    def _is_cut(self, state: SyncState, cue: Cue) -> bool:
        last = _ShownCue(id=state.last_shown_id or 0, end=state.last_shown_end, text=state.last_shown_text)
        return self.rules.is_boundary(last, cue, id_distance=cue.id - last.id)

    def _adapt(self, state: SyncState, cue: Cue, adjusted: float) -> SyncState:
        if cue.duration <= 0:
            return state
        position = (adjusted - cue.start) / cue.duration
        offset = state.adaptive_offset
        if position < self.config.early_fraction:
            offset -= self.config.adaptive_step
        elif position > self.config.late_fraction:
            offset += self.config.adaptive_step
        return replace(state, adaptive_offset=self.config.clamp(offset))

    def resolve(
        self,
        state: SyncState,
        playback_time: float,
        manual_offset: float = 0.0,
    ) -> SyncResult:
        """
        Resolve the visible cue for one playback tick.

        `manual_offset` is positive to delay subtitles and negative to
        advance them. A new cue that lands across a scene cut from the last
        shown one is held back for a tick so text never bleeds over a cut.
        """
        if self.track.is_empty:
            return SyncResult(state=state.forget())

        adjusted = playback_time + state.adaptive_offset - manual_offset
        cue, upcoming = self.find_cue(adjusted)

        if cue is not None:
            if cue.id == state.last_shown_id:
                return SyncResult(state=state, text=cue.text, cue_id=cue.id)
            if state.has_shown and self._is_cut(state, cue):
                log.debug("Scene cut before cue %d at t=%.3f; clearing.", cue.id, adjusted)
                return SyncResult(state=state.forget())
            next_state = self._adapt(state.showing(cue), cue, adjusted)
            return SyncResult(state=next_state, text=cue.text, cue_id=cue.id)

        if (
            upcoming is not None
            and state.has_shown
            and upcoming.start - adjusted <= self.profile.lookahead_seconds
            and not self._is_cut(state, upcoming)
        ):
            log.debug("Lookahead: showing cue %d early at t=%.3f.", upcoming.id, adjusted)
            return SyncResult(state=state.showing(upcoming), text=upcoming.text, cue_id=upcoming.id)

        if state.has_shown and adjusted > state.last_shown_end:
            state = state.forget()
        return SyncResult(state=state)
