from __future__ import annotations

import pytest

from cuesync.domain.cues import Cue, Track
from cuesync.domain.language import ScriptFamily
from cuesync.services.retime import quantize, retime_track, shift_cue


def _track(*cues: tuple[float, float, str], script: ScriptFamily = ScriptFamily.ALPHABETIC) -> Track:
    return Track.from_cues(
        [Cue(id=i, start=s, end=e, text=t) for i, (s, e, t) in enumerate(cues, start=1)],
        script=script,
        generation=7,
    )


def test_quantize_rounds_to_frames() -> None:
    assert quantize(1.01, 24.0) == pytest.approx(1.0)
    assert quantize(1.03, 24.0) == pytest.approx(25 / 24)
    assert quantize(1.234, 0) == 1.234


def test_shift_cue_clamps_at_zero_keeping_duration() -> None:
    cue = shift_cue(Cue(id=1, start=0.2, end=1.2, text="a"), -1.0)
    assert cue.start == 0.0
    assert cue.duration == pytest.approx(1.0)


def test_global_offset_produces_new_track() -> None:
    track = _track((1.0, 2.0, "a"), (2.0, 3.0, "b"))
    retimed = retime_track(track, global_offset=0.5)
    assert retimed is not track
    assert [c.start for c in retimed] == pytest.approx([1.5, 2.5])
    assert [c.end for c in retimed] == pytest.approx([2.5, 3.5])
    # The source track is untouched.
    assert track[0].start == 1.0
    assert retimed.generation == track.generation


def test_logographic_cues_are_extended_and_trimmed() -> None:
    single = _track((0.0, 1.0, "日本"), script=ScriptFamily.LOGOGRAPHIC)
    assert retime_track(single)[0].end == pytest.approx(26 / 24)

    pair = _track((0.0, 1.0, "日本"), (1.0, 2.0, "語です"), script=ScriptFamily.LOGOGRAPHIC)
    retimed = retime_track(pair)
    assert retimed[0].end == pytest.approx(1.0)
    assert retimed[1].start >= retimed[0].end
    assert retimed.overlaps() == []


def test_alphabetic_cues_are_not_extended() -> None:
    retimed = retime_track(_track((0.0, 1.0, "hello")))
    assert retimed[0].end == pytest.approx(1.0)


def test_minimum_two_frames() -> None:
    retimed = retime_track(_track((0.0, 0.01, "blip")))
    assert retimed[0].duration == pytest.approx(2 / 24)


def test_empty_track_is_returned_as_is() -> None:
    empty = Track()
    assert retime_track(empty, global_offset=3.0) is empty
