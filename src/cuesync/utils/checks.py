from __future__ import annotations

import shutil
from typing import Optional

from cuesync.exceptions import DependencyMissingError


def require_binary(binary: str, *, purpose: Optional[str] = None) -> str:
    """Return the resolved path of `binary` or raise DependencyMissingError."""
    path = shutil.which(binary)
    if path is None:
        needed = f" (needed to {purpose})" if purpose else ""
        raise DependencyMissingError(
            f"'{binary}' was not found on PATH{needed}. Run `cuesync doctor` for install hints."
        )
    return path
