from __future__ import annotations

from cuesync.config.settings import Settings
from cuesync.domain.cues import Cue
from cuesync.domain.language import LOGOGRAPHIC_PROFILE, ScriptFamily
from cuesync.services.scenes import SceneRules, is_scene_boundary


def _cue(start: float, end: float, text: str, cue_id: int = 1) -> Cue:
    return Cue(id=cue_id, start=start, end=end, text=text)


def test_long_silence_is_a_boundary() -> None:
    rules = SceneRules()
    assert rules.is_boundary(_cue(0.0, 1.0, "Hello"), _cue(3.5, 4.0, "there"))
    assert not rules.is_boundary(_cue(0.0, 1.0, "Hello"), _cue(2.5, 4.0, "there"))


def test_sentence_end_followed_by_topic_opener_is_a_boundary() -> None:
    rules = SceneRules()
    prev = _cue(0.0, 1.0, "We are done.")
    assert rules.is_boundary(prev, _cue(1.2, 2.0, "What is next?"))
    assert not rules.is_boundary(prev, _cue(1.2, 2.0, "and then we left"))
    assert not rules.is_boundary(_cue(0.0, 1.0, "We are"), _cue(1.2, 2.0, "What is next?"))


def test_id_distance_rule_is_symmetric_and_optional() -> None:
    rules = SceneRules()
    prev = _cue(0.0, 1.0, "one")
    nxt = _cue(1.0, 2.0, "two")
    assert not rules.is_boundary(prev, nxt)
    assert not rules.is_boundary(prev, nxt, id_distance=3)
    assert rules.is_boundary(prev, nxt, id_distance=4)
    assert rules.is_boundary(prev, nxt, id_distance=-5)


def test_module_function_delegates() -> None:
    rules = SceneRules(gap_seconds=0.5)
    assert is_scene_boundary(_cue(0.0, 1.0, "a"), _cue(1.6, 2.0, "b"), rules=rules)
    assert not is_scene_boundary(_cue(0.0, 1.0, "a"), _cue(1.4, 2.0, "b"), rules=rules)


def test_rules_from_settings_and_script() -> None:
    settings = Settings(scene_gap_seconds=5.0, scene_max_id_distance=1)
    rules = SceneRules.from_settings(settings, ScriptFamily.LOGOGRAPHIC)
    assert rules.gap_seconds == 5.0
    assert rules.max_id_distance == 1
    assert rules.profile is LOGOGRAPHIC_PROFILE

    ja = SceneRules().for_script(ScriptFamily.LOGOGRAPHIC)
    assert ja.is_boundary(_cue(0.0, 1.0, "行きます"), _cue(1.1, 2.0, "どこですか"))
    assert SceneRules().for_script(ScriptFamily.ALPHABETIC) == SceneRules()
