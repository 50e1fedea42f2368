"""
Playback session: the one place that owns mutable playback state.

A session holds the current Track, the SyncController built for it, the
controller's SyncState and the user's manual offset. Re-synthesis and
retiming run elsewhere and hand back a new Track; generation tokens make
sure a result computed for an older track is never installed over a
newer one.

Does NOT:
- Advance a clock (callers drive `tick`)
- Run synthesis or retiming itself beyond `request_retime`
"""

from __future__ import annotations

from cuesync.domain.cues import Track
from cuesync.domain.language import ScriptFamily
from cuesync.services.retime import DEFAULT_FRAME_RATE, retime_track
from cuesync.services.scenes import SceneRules
from cuesync.services.sync import SyncConfig, SyncController, SyncState
from cuesync.utils.logging import get_logger

log = get_logger(__name__)


class PlaybackSession:
    def __init__(
        self,
        track: Track | None = None,
        *,
        sync_config: SyncConfig | None = None,
        rules: SceneRules | None = None,
        frame_rate: float = DEFAULT_FRAME_RATE,
        logographic_extension: float = 0.1,
    ) -> None:
        self.sync_config = sync_config or SyncConfig()
        self.rules = rules or SceneRules()
        self.frame_rate = frame_rate
        self.logographic_extension = logographic_extension
        self.manual_offset = 0.0
        self._generation = 0
        self._install(track or Track())

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def track(self) -> Track:
        return self._track

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def language(self) -> ScriptFamily:
        return self._controller.language

    def _install(self, track: Track, *, source: Track | None = None) -> None:
        # Retiming always starts from the untimed source, never a retimed copy.
        self._source = source if source is not None else track
        self._track = track.with_generation(self._generation)
        self._controller = SyncController(self._track, config=self.sync_config, rules=self.rules)
        self._state = self._controller.initial_state()

    def load(self, track: Track) -> int:
        """Replace the track and reset sync state; returns the new generation."""
        self._generation += 1
        self._install(track)
        log.debug("Loaded track generation %d (%d cues)", self._generation, len(track))
        return self._generation

    def begin_update(self) -> int:
        """Issue a token for an update computed against the current track."""
        self._generation += 1
        return self._generation

    def apply_update(self, token: int, track: Track, *, source: Track | None = None) -> bool:
        if token != self._generation:
            log.debug("Dropping stale track update (token %d, current %d)", token, self._generation)
            return False
        self._install(track, source=source)
        return True

    def set_manual_offset(self, seconds: float) -> None:
        self.manual_offset = float(seconds)

    def request_retime(self, global_offset: float) -> bool:
        """Retime the loaded track by an absolute global offset."""
        token = self.begin_update()
        source = self._source
        retimed = retime_track(
            source,
            global_offset=global_offset,
            frame_rate=self.frame_rate,
            logographic_extension=self.logographic_extension,
        )
        return self.apply_update(token, retimed, source=source)

    def tick(self, playback_time: float) -> str:
        result = self._controller.resolve(self._state, playback_time, self.manual_offset)
        self._state = result.state
        return result.text
