from __future__ import annotations

import logging
from typing import Optional

# Client libraries that log every HTTP request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "faster_whisper")


def configure_logging(level: str = "INFO") -> None:
    """Route log records to stderr so caption output on stdout stays clean."""
    resolved = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        force=True,
    )
    quiet = logging.DEBUG if resolved <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if level:
        logger.setLevel(getattr(logging, level.upper(), logger.level))
    return logger
