"""App settings with defaults, read lazily from ``django.conf.settings``."""
from typing import Any, Dict, Tuple

from django.conf import settings

DEFAULTS: Dict[str, Any] = {
    "OUTLINE_SELF_ASSIGNEE": "me",
    "OUTLINE_MAX_VISUAL_DEPTH": 3,
    "OUTLINE_TITLE_MAX_LENGTH": 255,
    "OUTLINE_OFFSET_DAYS_RANGE": (-80, 4),
}


def get(name: str) -> Any:
    return getattr(settings, name, DEFAULTS[name])


def self_assignee() -> str:
    return get("OUTLINE_SELF_ASSIGNEE")


def max_visual_depth() -> int:
    return int(get("OUTLINE_MAX_VISUAL_DEPTH"))


def title_max_length() -> int:
    return int(get("OUTLINE_TITLE_MAX_LENGTH"))


def offset_days_range() -> Tuple[int, int]:
    low, high = get("OUTLINE_OFFSET_DAYS_RANGE")
    return int(low), int(high)
