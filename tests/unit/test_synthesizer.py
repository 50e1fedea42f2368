from __future__ import annotations

import logging

import pytest

from cuesync.config.settings import Settings
from cuesync.domain.cues import Cue, RawSegment, Track
from cuesync.domain.language import ALPHABETIC_PROFILE, LOGOGRAPHIC_PROFILE, ScriptFamily
from cuesync.services.scenes import SceneRules
from cuesync.services.synthesizer import (
    CueSynthesizer,
    SynthesisConfig,
    clean_segments,
    cue_minimum,
    extend_durations,
    load_track,
    normalize_cues,
    split_cue,
    split_long_cues,
    stitch,
    synthesize_track,
    tag_scenes,
)

EPS = 1e-9


def _assert_track_invariants(track: Track) -> None:
    assert [c.id for c in track] == list(range(1, len(track) + 1))
    for prev, nxt in zip(track, list(track)[1:]):
        assert nxt.start >= prev.end - EPS
    for cue in track:
        assert cue.start < cue.end
        assert cue.duration >= cue_minimum(cue, track) - EPS
        assert "{" not in cue.text


def _nonspace(text: str) -> int:
    return len("".join(text.split()))


def test_scenario_a_stitches_adjacent_short_segments() -> None:
    cues = tag_scenes(
        clean_segments([RawSegment(0.0, 1.0, "Hello"), RawSegment(1.0, 1.2, "there")]),
        SceneRules(),
    )
    merged = stitch(cues, config=SynthesisConfig())
    assert len(merged) == 1
    assert merged[0].text == "Hello there"
    assert merged[0].start == 0.0
    assert merged[0].end == pytest.approx(1.2)


def test_scenario_a_through_full_synthesis() -> None:
    track = CueSynthesizer().synthesize(
        [RawSegment(0.0, 1.0, "Hello"), RawSegment(1.0, 1.2, "there")]
    )
    assert [c.text for c in track] == ["Hello there"]
    assert track[0].start == 0.0
    _assert_track_invariants(track)


def test_stitch_respects_gap_length_and_scene() -> None:
    config = SynthesisConfig()
    cues = [
        Cue(id=1, start=0.0, end=1.0, text="one"),
        Cue(id=2, start=2.5, end=3.0, text="two"),
        Cue(id=3, start=3.1, end=3.5, text="x" * 58),
        Cue(id=4, start=3.6, end=4.0, text="four", scene_id=2),
    ]
    merged = stitch(cues, config=config)
    assert [c.text for c in merged] == ["one", "two", "x" * 58, "four"]


def test_stitch_is_idempotent() -> None:
    config = SynthesisConfig()
    cues = [
        Cue(id=1, start=0.0, end=0.5, text="a short"),
        Cue(id=2, start=0.6, end=1.0, text="line of"),
        Cue(id=3, start=1.2, end=1.4, text="speech that keeps"),
        Cue(id=4, start=1.5, end=2.0, text="going on and on until it no longer fits"),
        Cue(id=5, start=4.0, end=4.5, text="later"),
        Cue(id=6, start=4.6, end=5.0, text="again", scene_id=2),
    ]
    once = stitch(cues, config=config)
    assert len(once) < len(cues)
    assert stitch(once, config=config) == once


def test_stitch_joins_logographic_text_without_spaces() -> None:
    cues = [
        Cue(id=1, start=0.0, end=0.5, text="こんにちは"),
        Cue(id=2, start=0.6, end=1.0, text="元気です"),
    ]
    merged = stitch(cues, config=SynthesisConfig(), profile=LOGOGRAPHIC_PROFILE)
    assert [c.text for c in merged] == ["こんにちは元気です"]
    assert merged[0].char_count == 9

    english = stitch(
        [Cue(id=1, start=0.0, end=0.5, text="Hello"), Cue(id=2, start=0.6, end=1.0, text="there")],
        config=SynthesisConfig(),
    )
    assert english[0].text == "Hello there"


def test_scenario_b_split_conserves_extended_duration() -> None:
    text = " ".join(["sentence"] * 9)
    assert len(text) == 80
    config = SynthesisConfig()
    extended = extend_durations(
        tag_scenes(clean_segments([RawSegment(0.0, 4.0, text)]), SceneRules()),
        config=config,
        profile=ALPHABETIC_PROFILE,
    )
    original = extended[0]
    pieces = split_long_cues(extended, config=config, profile=ALPHABETIC_PROFILE)

    assert len(pieces) >= 2
    assert pieces[0].start == original.start
    assert pieces[-1].end == original.end
    assert sum(p.duration for p in pieces) == pytest.approx(original.duration)
    assert sum(_nonspace(p.text) for p in pieces) == _nonspace(text)
    for piece in pieces:
        assert piece.char_count <= config.max_chars_per_cue
        assert len(piece.text.split("\n")) <= config.max_lines_per_cue


def test_split_cue_prefers_sentence_boundaries() -> None:
    config = SynthesisConfig()
    text = "This is the first sentence of the cue. And this one is the second sentence here."
    cue = Cue(id=1, start=10.0, end=16.0, text=text)
    pieces = split_cue(cue, config=config, profile=ALPHABETIC_PROFILE)
    assert [p.text for p in pieces] == [
        "This is the first sentence of the cue.",
        "And this one is the second sentence here.",
    ]
    assert pieces[0].end == pytest.approx(pieces[1].start)
    assert pieces[-1].end == 16.0
    # Spans follow the share of characters.
    share = _nonspace(pieces[0].text) / _nonspace(text)
    assert pieces[0].duration == pytest.approx(6.0 * share)


def test_split_cue_wraps_unspaced_logographic_text() -> None:
    config = SynthesisConfig(max_chars_per_cue=10, max_lines_per_cue=2)
    text = "あいうえおかきくけこさしすせそたちつてと"
    cue = Cue(id=1, start=0.0, end=4.0, text=text)
    pieces = split_cue(cue, config=config, profile=LOGOGRAPHIC_PROFILE)
    assert len(pieces) >= 2
    assert "".join(p.text.replace("\n", "") for p in pieces) == text
    assert all(p.char_count <= 10 for p in pieces)
    assert pieces[-1].end == 4.0


def test_extend_durations_rules() -> None:
    config = SynthesisConfig()
    cues = [
        Cue(id=1, start=0.0, end=0.2, text="Hi", scene_id=1),
        Cue(id=2, start=0.5, end=0.7, text="you", scene_id=1),
        Cue(id=3, start=1.0, end=1.1, text="new", scene_id=2),
    ]
    extended = extend_durations(cues, config=config, profile=ALPHABETIC_PROFILE)
    # Same scene: capped at successor start + overlap allowance.
    assert extended[0].end == pytest.approx(1.0)
    # Before a new scene: ends scene_lead_seconds early, but never before start.
    assert extended[1].end == pytest.approx(0.501)
    # Last cue: minimum duration plus trailing grace.
    assert extended[2].end == pytest.approx(1.0 + 1.2 + 3.0)


def test_scene_tags_follow_raw_gaps() -> None:
    track = CueSynthesizer().synthesize(
        [RawSegment(0.0, 1.0, "Hello"), RawSegment(5.0, 6.0, "there")]
    )
    assert [c.scene_id for c in track] == [1, 2]
    assert track[0].end <= 5.0 - 0.5 + EPS


def test_normalize_resolves_overlaps_and_micro_gaps() -> None:
    config = SynthesisConfig()
    cues = [
        Cue(id=7, start=0.0, end=3.0, text="first cue text"),
        Cue(id=3, start=2.0, end=5.0, text="second"),
        Cue(id=9, start=5.05, end=7.0, text="third"),
    ]
    out = normalize_cues(cues, config=config, profile=ALPHABETIC_PROFILE)
    assert [c.id for c in out] == [1, 2, 3]
    assert out[1].start == pytest.approx(out[0].end)
    assert out[0].end > 2.0
    assert out[2].start == pytest.approx(out[1].end)
    assert out[1].end == pytest.approx(5.025)


def test_normalize_warns_when_minimums_cascade(caplog) -> None:  # noqa: ANN001
    config = SynthesisConfig()
    cues = [
        Cue(id=1, start=0.0, end=0.1, text="x" * 60),
        Cue(id=2, start=0.2, end=0.3, text="y" * 60),
        Cue(id=3, start=0.4, end=0.5, text="z"),
    ]
    with caplog.at_level(logging.WARNING, logger="cuesync.services.synthesizer"):
        out = normalize_cues(cues, config=config, profile=ALPHABETIC_PROFILE)

    assert out[2].start == pytest.approx(8.6)
    assert "pushed cue 3" in caplog.text


def test_normalize_stays_quiet_for_small_pushes(caplog) -> None:  # noqa: ANN001
    cues = [Cue(id=1, start=0.0, end=0.5, text="Hi"), Cue(id=2, start=0.6, end=2.0, text="there")]
    with caplog.at_level(logging.WARNING, logger="cuesync.services.synthesizer"):
        normalize_cues(cues, config=SynthesisConfig(), profile=ALPHABETIC_PROFILE)
    assert caplog.text == ""


def test_synthesis_invariants_on_messy_input() -> None:
    segments = [
        RawSegment(0.0, 0.3, "  okay  "),
        RawSegment(0.2, 0.4, "so"),
        RawSegment(0.4, 0.5, ""),
        RawSegment(0.9, 0.8, "reversed timing"),
        RawSegment(1.0, 9.0, " ".join(["words"] * 30)),
        RawSegment(9.5, 9.6, "Done."),
        RawSegment(9.7, 9.8, "What now?"),
        RawSegment(30.0, 30.1, "much later"),
    ]
    track = synthesize_track(segments)
    assert not track.is_empty
    assert track.overlaps() == []
    _assert_track_invariants(track)
    assert track.scene_count >= 2


def test_empty_input_gives_empty_track() -> None:
    assert CueSynthesizer().synthesize([]).is_empty
    assert CueSynthesizer().synthesize([RawSegment(0.0, 1.0, "   ")]).is_empty


def test_furigana_is_split_into_reading() -> None:
    track = CueSynthesizer().synthesize([RawSegment(0.0, 2.0, "漢字 {かんじ}")])
    assert track.script is ScriptFamily.LOGOGRAPHIC
    assert track[0].text == "漢字"
    assert track[0].reading == "かんじ"


def test_explicit_script_overrides_detection() -> None:
    track = CueSynthesizer().synthesize(
        [RawSegment(0.0, 2.0, "hello")], script=ScriptFamily.LOGOGRAPHIC
    )
    assert track.script is ScriptFamily.LOGOGRAPHIC


def test_synthesizer_from_settings() -> None:
    settings = Settings(max_chars_per_cue=20, stitch_gap_seconds=0.0)
    synth = CueSynthesizer.from_settings(settings)
    assert synth.config.max_chars_per_cue == 20
    track = synth.synthesize([RawSegment(0.0, 6.0, "a fairly long line that must be split")])
    assert len(track) >= 2
    assert all(c.char_count <= 20 for c in track)


def test_load_track_enforces_invariants() -> None:
    content = (
        "1\n00:00:00,000 --> 00:00:03,000\nOverlapping first\n\n"
        "2\n00:00:02,000 --> 00:00:02,100\nshort\n\n"
        "3\n00:00:04,000 --> 00:00:04,200\nnext\n"
    )
    track = load_track(content, filename="clip.srt")
    assert len(track) == 3
    assert track.overlaps() == []
    _assert_track_invariants(track)
