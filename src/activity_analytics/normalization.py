"""Utilities to normalize activity titles before comparing them."""

from __future__ import annotations

import re
from typing import Optional

_BROWSER_SUFFIXES: dict[str, tuple[str, ...]] = {
    "msedge.exe": (" - Microsoft Edge",),
    "chrome.exe": (" - Google Chrome",),
    "google chrome": (" - Google Chrome",),
    "firefox.exe": (" - Mozilla Firefox",),
    "firefox": (" - Mozilla Firefox",),
    "brave.exe": (" - Brave",),
    "opera.exe": (" - Opera",),
    "safari": (" - Safari",),
}


def normalize_title(app_name: Optional[str], title: Optional[str]) -> str:
    """Strip browser suffixes, tab counters and repeated whitespace; casefold."""
    if not title:
        return ""
    normalized = title.strip()
    if app_name:
        for suffix in _BROWSER_SUFFIXES.get(app_name.lower(), ()):
            if normalized.endswith(suffix):
                normalized = normalized[: -len(suffix)].rstrip(" -")
                break

    normalized = _strip_tab_count(normalized)
    normalized = re.sub(r"\s{2,}", " ", normalized).strip()
    return normalized.casefold()


_EXTRA_TAB_COUNT_PATTERN = re.compile(r"\s+and\s+\d+\s+more\s+pages?", re.IGNORECASE)


def _strip_tab_count(value: str) -> str:
    cleaned = _EXTRA_TAB_COUNT_PATTERN.sub("", value)
    return cleaned.strip(" -|")


def levenshtein(left: str, right: str) -> int:
    """Edit distance between two strings."""
    if len(left) < len(right):
        left, right = right, left
    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, start=1):
        current = [i]
        for j, right_char in enumerate(right, start=1):
            if left_char == right_char:
                current.append(previous[j - 1])
            else:
                current.append(min(previous[j - 1], previous[j], current[j - 1]) + 1)
        previous = current
    return previous[-1]


def title_similarity(left: str, right: str) -> float:
    """Percentage similarity (0-100) of two already-normalized titles."""
    if left == right:
        return 100.0
    if not left or not right:
        return 0.0
    longest = max(len(left), len(right))
    return (longest - levenshtein(left, right)) / longest * 100
