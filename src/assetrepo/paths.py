"""Separator-aware helpers for repository paths."""

from __future__ import annotations

import os
import re

_KNOWN_SEPARATORS = ("/", "\\")


def sep() -> str:
    return os.sep


def normalize_path(path: str) -> str:
    """Convert foreign separators, collapse repeats and drop a trailing separator."""
    active = sep()
    normalized = path
    for separator in _KNOWN_SEPARATORS:
        if separator != active:
            normalized = normalized.replace(separator, active)
    normalized = re.sub(f"{re.escape(active)}{{2,}}", active, normalized)
    if len(normalized) > 1 and normalized.endswith(active):
        normalized = normalized[:-1]
    return normalized


def join_path(*segments: str) -> str:
    return normalize_path(sep().join(segment for segment in segments if segment))


def leaf_name(path: str) -> str:
    position = path.rfind(sep())
    if position == -1:
        return path
    return path[position + 1 :]


def parent_path(path: str) -> str | None:
    position = path.rfind(sep())
    if position == -1:
        return None
    if position == 0:
        return sep()
    return path[:position]


def is_root(path: str) -> bool:
    return path == sep()
