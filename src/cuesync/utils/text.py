from __future__ import annotations

import hashlib


def normalize_text(text: str) -> str:
    return " ".join(text.split()).strip()


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def strip_bom(text: str) -> str:
    return text[1:] if text.startswith("\ufeff") else text


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
