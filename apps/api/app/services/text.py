from __future__ import annotations

import re
from functools import lru_cache


@lru_cache(maxsize=512)
def _word_start(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![a-z0-9]){re.escape(keyword)}")


def mentions(text: str, keyword: str) -> bool:
    """True when ``keyword`` appears at the start of a word in lowercased ``text``.

    Title keywords are short ("cto", "vp", "hr"), so plain substring tests would match
    "director" as a CTO.
    """
    return _word_start(keyword).search(text) is not None


def mentions_any(text: str, keywords: tuple[str, ...] | list[str]) -> bool:
    return any(mentions(text, keyword) for keyword in keywords)
