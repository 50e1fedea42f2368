from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from cuesync.utils.text import normalize_text

# "漢字 {かんじ}" -> main "漢字", reading "かんじ"
FURIGANA_RE = re.compile(r"\s*\{([^{}]*)\}")


@dataclass(frozen=True)
class AnnotatedText:
    main_text: str
    reading: Optional[str] = None

    def render(self) -> str:
        """Write the annotation back inline, as it appears in caption files."""
        if not self.reading:
            return self.main_text
        return f"{self.main_text} {{{self.reading}}}"


def parse_furigana(text: str) -> AnnotatedText:
    if not FURIGANA_RE.search(text):
        return AnnotatedText(main_text=text.strip())
    readings = [r.strip() for r in FURIGANA_RE.findall(text) if r.strip()]
    main = FURIGANA_RE.sub("", text)
    main = "\n".join(normalize_text(line) for line in main.splitlines() if line.strip())
    return AnnotatedText(main_text=main, reading=" ".join(readings) or None)


def join_readings(first: Optional[str], second: Optional[str]) -> Optional[str]:
    parts = [r for r in (first, second) if r]
    return " ".join(parts) or None
