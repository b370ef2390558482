from __future__ import annotations

import re
from typing import List, Optional, Tuple

from .constants import DEFAULT_LOCALE

# Fixed priority: the first script found in the message wins.
SCRIPT_RANGES: List[Tuple[str, "re.Pattern[str]"]] = [
    ("ar", re.compile(r"[\u0600-\u06FF]")),
    ("zh", re.compile(r"[\u4E00-\u9FFF]")),
    ("ja", re.compile(r"[\u3040-\u30FF]")),
    ("ko", re.compile(r"[\uAC00-\uD7AF\u1100-\u11FF]")),
    ("ru", re.compile(r"[\u0400-\u04FF]")),
    ("el", re.compile(r"[\u0370-\u03FF]")),
    ("he", re.compile(r"[\u0590-\u05FF]")),
    ("th", re.compile(r"[\u0E00-\u0E7F]")),
    ("hi", re.compile(r"[\u0900-\u097F]")),
]

LOCALE_NAMES = {
    "en": "English",
    "ar": "Arabic",
    "tr": "Turkish",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "ru": "Russian",
    "el": "Greek",
    "he": "Hebrew",
    "th": "Thai",
    "hi": "Hindi",
}

RTL_LOCALES = frozenset({"ar", "he"})


def detect_locale(message: Optional[str], default: str = DEFAULT_LOCALE) -> str:
    text = message or ""
    for tag, pattern in SCRIPT_RANGES:
        if pattern.search(text):
            return tag
    return default


def locale_name(tag: Optional[str]) -> str:
    return LOCALE_NAMES.get((tag or "").lower(), LOCALE_NAMES[DEFAULT_LOCALE])


def is_rtl(tag: Optional[str]) -> bool:
    return (tag or "").lower() in RTL_LOCALES
