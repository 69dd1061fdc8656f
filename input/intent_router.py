"""Intent routing helpers for raw search input."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class IntentType(Enum):
    LINK = "link"
    SEARCH = "search"


@dataclass
class Intent:
    type: IntentType
    identifier: str  # the link or the trimmed keyword
    source: Optional[str] = None  # None for keywords and unrecognized links


# Checked in order, first match wins. Short-link domains come before the
# generic domains they could overlap with.
SOURCE_LINK_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("netease", ("163cn.tv", "163.com")),
    ("qq", ("qq.com",)),
    ("kugou", ("kugou.com",)),
    ("kuwo", ("kuwo.cn",)),
    ("migu", ("migu.cn",)),
    ("bilibili", ("b23.tv", "bilibili.com")),
    ("soda", ("qishui", "douyin.com")),
    ("fivesing", ("5sing",)),
    ("jamendo", ("jamendo.com",)),
    ("joox", ("joox.com",)),
    ("qianqian", ("qianqian.com", "taihe.com")),
)


def detect_intent(user_input: str) -> Intent:
    """Detect intent from user input without network calls.

    Rules:
    - Input starting with ``http`` is a ``LINK``; its source is resolved
      with :func:`detect_source` and may be ``None`` when unrecognized.
    - Otherwise treat input as plain ``SEARCH``.
    """
    raw = (user_input or "").strip()
    if raw.startswith("http"):
        return Intent(type=IntentType.LINK, identifier=raw, source=detect_source(raw))
    return Intent(type=IntentType.SEARCH, identifier=raw)


def detect_source(link: str) -> Optional[str]:
    """Return the source a link belongs to, or ``None`` when unknown."""
    if not link:
        return None
    for source, patterns in SOURCE_LINK_RULES:
        if any(pattern in link for pattern in patterns):
            return source
    return None
