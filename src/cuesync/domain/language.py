"""
Coarse script-family heuristics.

Reading speed, sentence terminators and topic-opener word lists differ
between logographic (Japanese/CJK) and alphabetic text. Each family is a
`LanguageProfile`; the synthesizer, scene detector and sync controller
only ever talk to a profile, never to raw regular expressions.

Does NOT:
- Identify individual languages beyond the two families
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Pattern, Sequence


class ScriptFamily(str, Enum):
    LOGOGRAPHIC = "ja"
    ALPHABETIC = "en"

    @classmethod
    def parse(cls, value: str | None) -> "ScriptFamily | None":
        """Map a settings/CLI value to a family; `auto` and empty mean detect."""
        if value is None:
            return None
        key = value.strip().lower()
        if key in {"", "auto"}:
            return None
        if key in {"ja", "jp", "zh", "logographic", "cjk"}:
            return cls.LOGOGRAPHIC
        return cls.ALPHABETIC


LOGOGRAPHIC_CHAR_RE = re.compile(r"[\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF]")

DETECTION_SAMPLE_SIZE = 10


def detect_script(texts: Sequence[str]) -> ScriptFamily:
    """Classify a body of text by sampling up to ten evenly spaced entries."""
    if not texts:
        return ScriptFamily.ALPHABETIC
    sample_size = min(DETECTION_SAMPLE_SIZE, len(texts))
    step = len(texts) / sample_size
    samples = [texts[int(i * step)] for i in range(sample_size)]
    if LOGOGRAPHIC_CHAR_RE.search(" ".join(s for s in samples if s)):
        return ScriptFamily.LOGOGRAPHIC
    return ScriptFamily.ALPHABETIC


@dataclass(frozen=True)
class LanguageProfile:
    script: ScriptFamily
    chars_per_second: float
    lookahead_seconds: float
    initial_offset: float
    sentence_end_re: Pattern[str]
    topic_opener_re: Pattern[str]
    sentence_split_re: Pattern[str]
    spaced: bool

    def is_sentence_end(self, text: str) -> bool:
        return bool(self.sentence_end_re.search(text.strip()))

    def is_topic_opener(self, text: str) -> bool:
        return bool(self.topic_opener_re.search(text.strip()))

    def split_sentences(self, text: str) -> list[str]:
        return [s.strip() for s in self.sentence_split_re.split(text.strip()) if s.strip()]

    def reading_time(self, char_count: int) -> float:
        return char_count / self.chars_per_second

    def wrap_units(self, text: str) -> tuple[list[str], str]:
        """Units the word-wrap fallback may not break inside, and their joiner."""
        words = text.split()
        if self.spaced or len(words) > 1:
            return words, " "
        # Unspaced logographic text wraps per character.
        return list(text.strip()), ""

    @property
    def sentence_joiner(self) -> str:
        return " " if self.spaced else ""


ALPHABETIC_PROFILE = LanguageProfile(
    script=ScriptFamily.ALPHABETIC,
    chars_per_second=15.0,
    lookahead_seconds=0.1,
    initial_offset=-0.2,
    sentence_end_re=re.compile(r"[.!?…][\"'”’)\]]*$"),
    topic_opener_re=re.compile(
        r"^(?:hello|hi|hey|good (?:morning|afternoon|evening)|welcome"
        r"|what|where|when|why|who|how|which|excuse me)\b",
        re.IGNORECASE,
    ),
    sentence_split_re=re.compile(r"(?<=[.!?])\s+"),
    spaced=True,
)

LOGOGRAPHIC_PROFILE = LanguageProfile(
    script=ScriptFamily.LOGOGRAPHIC,
    chars_per_second=10.0,
    lookahead_seconds=0.2,
    initial_offset=-0.4,
    sentence_end_re=re.compile(r"(?:[。！？!?]|です|ます)$"),
    topic_opener_re=re.compile(
        r"^(?:いつ|どこ|なぜ|どうして|おはよう|こんにちは|こんばんは|ねえ|ちょっと|あの|[いこそど何誰])"
    ),
    sentence_split_re=re.compile(r"(?<=[。！？!?])\s*"),
    spaced=False,
)


def profile_for(script: ScriptFamily) -> LanguageProfile:
    if script is ScriptFamily.LOGOGRAPHIC:
        return LOGOGRAPHIC_PROFILE
    return ALPHABETIC_PROFILE
