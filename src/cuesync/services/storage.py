"""
Persisted track storage.

Generated tracks are kept per media file so the same video does not have
to be transcribed twice. Identity is the file's name, size and
modification time; each record is one JSON file named by the sha256 of
that key.

Responsibilities:
- store / load / delete / list by media key
- Surface I/O and corrupt-record failures as StorageError

Does NOT:
- Expire or size-limit records
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path

from cuesync.domain.cues import Track
from cuesync.domain.language import ScriptFamily
from cuesync.exceptions import StorageError
from cuesync.services.synthesizer import CueSynthesizer
from cuesync.services.timestamps import TimeFormat, parse_track, serialize_track
from cuesync.utils.logging import get_logger
from cuesync.utils.text import sha256_text

log = get_logger(__name__)

RECORD_SUFFIX = ".json"


def media_key(path: str | Path) -> str:
    """Stable identity for a media file: name, size and mtime (ms)."""
    p = Path(path)
    try:
        stat = p.stat()
    except OSError as exc:
        raise StorageError(f"Cannot read media file '{p}': {exc}") from exc
    return f"{p.name}-{stat.st_size}-{int(stat.st_mtime * 1000)}"


@dataclass(frozen=True)
class StoredTrackSummary:
    key: str
    file_name: str
    file_size: int | None
    date_generated: str
    cue_count: int

    def as_dict(self) -> dict:
        return {
            "key": self.key,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "date_generated": self.date_generated,
            "cue_count": self.cue_count,
        }


class TrackStore:
    def __init__(self, root: str | Path, *, synthesizer: CueSynthesizer | None = None) -> None:
        self.root = Path(root).expanduser()
        self.synthesizer = synthesizer or CueSynthesizer()

    def _path(self, key: str) -> Path:
        return self.root / f"{sha256_text(key)}{RECORD_SUFFIX}"

    def _read(self, path: Path) -> dict:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Cannot read stored track '{path.name}': {exc}") from exc

    def store(
        self,
        key: str,
        track: Track,
        *,
        file_name: str | None = None,
        file_size: int | None = None,
    ) -> Path:
        record = {
            "key": key,
            "file_name": file_name or key,
            "file_size": file_size,
            "date_generated": datetime.now(timezone.utc).isoformat(),
            "script": track.script.value,
            "cue_count": len(track),
            "subtitles": serialize_track(track, TimeFormat.SRT),
            "scenes": [cue.scene_id for cue in track],
        }
        path = self._path(key)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(record, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Cannot store track for '{key}': {exc}") from exc
        log.info("Stored %d cues for %s -> %s", len(track), record["file_name"], path)
        return path

    def load(self, key: str) -> Track | None:
        path = self._path(key)
        if not path.exists():
            return None
        record = self._read(path)
        content = record.get("subtitles")
        if not isinstance(content, str):
            raise StorageError(f"Stored track for '{key}' has no subtitles.")
        parsed = parse_track(content, TimeFormat.SRT)
        script = ScriptFamily.parse(record.get("script")) or parsed.script
        scenes = record.get("scenes")
        keep_scenes = isinstance(scenes, list) and len(scenes) == len(parsed)
        cues = list(parsed)
        if keep_scenes:
            cues = [replace(cue, scene_id=int(scene_id)) for cue, scene_id in zip(cues, scenes)]
        track = self.synthesizer.finalize(
            Track.from_cues(cues, script=script),
            script=script,
            keep_scenes=keep_scenes,
        )
        log.info("Retrieved stored track for %s", record.get("file_name", key))
        return track

    def contains(self, key: str) -> bool:
        return self._path(key).exists()

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as exc:
            raise StorageError(f"Cannot delete stored track for '{key}': {exc}") from exc
        log.info("Deleted stored track for %s", key)
        return True

    def list(self) -> list[StoredTrackSummary]:
        if not self.root.exists():
            return []
        summaries: list[StoredTrackSummary] = []
        for path in sorted(self.root.glob(f"*{RECORD_SUFFIX}")):
            try:
                record = self._read(path)
            except StorageError as exc:
                log.warning("Skipping unreadable stored track: %s", exc)
                continue
            summaries.append(
                StoredTrackSummary(
                    key=str(record.get("key", path.stem)),
                    file_name=str(record.get("file_name", "")),
                    file_size=record.get("file_size"),
                    date_generated=str(record.get("date_generated", "")),
                    cue_count=int(record.get("cue_count", 0) or 0),
                )
            )
        summaries.sort(key=lambda s: s.date_generated, reverse=True)
        return summaries
