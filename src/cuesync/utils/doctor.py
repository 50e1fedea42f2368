from __future__ import annotations

import importlib
import os
import sys
import tempfile
from pathlib import Path

from cuesync.config.settings import Settings
from cuesync.services.transcription import OPENAI_API_KEY_ENV


def _run_cmd(cmd: list[str]) -> tuple[int, str]:
    import subprocess

    try:
        proc = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError:
        return 1, ""
    return proc.returncode, proc.stdout.strip() or proc.stderr.strip()


def _module_available(name: str) -> bool:
    try:
        importlib.import_module(name)
    except ImportError:
        return False
    return True


def _check_writable(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=path, delete=True):
            return True
    except OSError:
        return False


def _get_version() -> str:
    try:
        import importlib.metadata

        return importlib.metadata.version("cuesync")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def _ffmpeg_hint() -> str:
    if sys.platform.startswith("darwin"):
        return "Install with: brew install ffmpeg"
    if sys.platform.startswith("win"):
        return "Install with: winget install ffmpeg"
    return "Install with: sudo apt-get install ffmpeg"


def _status_line(ok: bool, label: str, detail: str = "") -> str:
    icon = "✅" if ok else "❌"
    return f"{icon} {label}{detail}"


def _warn_line(label: str, detail: str = "") -> str:
    return f"⚠️ {label}{detail}"


def run_doctor(settings: Settings) -> int:
    """
    Print a checklist of the environment and return a process exit code.

    ffmpeg/ffprobe and a writable workdir are required. The transcription
    backend pieces are required only for the configured backend; the other
    backend is reported as a warning.
    """
    required_ok = True
    lines: list[str] = []

    lines.append("cuesync doctor")
    lines.append("")

    python_version = sys.version.split()[0]
    lines.append(_status_line(True, "Python", f": {python_version}"))
    lines.append(_status_line(True, "cuesync version", f": {_get_version()}"))

    workdir = Path(settings.workdir).expanduser().resolve()
    writable = _check_writable(workdir)
    if not writable:
        required_ok = False
    lines.append(_status_line(writable, "Workdir writable", f": {workdir}"))

    for binary in ("ffmpeg", "ffprobe"):
        code, out = _run_cmd([binary, "-version"])
        if code != 0:
            required_ok = False
            lines.append(_status_line(False, binary, " (not found)"))
            lines.append(f"   {_ffmpeg_hint()}")
        else:
            first_line = out.splitlines()[0] if out else "available"
            lines.append(_status_line(True, binary, f": {first_line}"))

    backend = settings.transcription_backend.strip().lower()
    uses_openai = backend == "openai"

    openai_ok = _module_available("openai")
    api_key = os.getenv(OPENAI_API_KEY_ENV)
    if uses_openai:
        if not openai_ok or not api_key:
            required_ok = False
        lines.append(_status_line(openai_ok, "openai", " (available)" if openai_ok else " (not installed)"))
        lines.append(_status_line(bool(api_key), "OpenAI API key", ": set" if api_key else ": missing"))
    elif openai_ok:
        lines.append(_status_line(True, "openai", " (available)"))
    else:
        lines.append(_warn_line("openai", " (not installed)"))

    whisper_ok = _module_available("faster_whisper")
    if not uses_openai and not whisper_ok:
        required_ok = False
        lines.append(_status_line(False, "faster-whisper", " (not installed)"))
    elif whisper_ok:
        lines.append(_status_line(True, "faster-whisper", " (available)"))
    else:
        lines.append(_warn_line("faster-whisper", " (not installed)"))

    lines.append(
        _status_line(
            True,
            "Backend/language",
            f": {settings.transcription_backend} / {settings.language}",
        )
    )

    print("\n".join(lines))
    return 0 if required_ok else 1
