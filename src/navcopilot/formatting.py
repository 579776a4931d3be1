"""
Human-readable formatting of distances, durations and instruction text.
"""

import html
import re

_TAG_PATTERN = re.compile(r"<[^>]+>")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_SPACE_BEFORE_PUNCTUATION = re.compile(r"\s+([,.;:!?])")


def format_distance(meters: float) -> str:
    """Format a distance as "850 m" or "3.2 km"."""
    if meters < 1000:
        return f"{round(meters)} m"
    return f"{meters / 1000:.1f} km"


def format_duration(seconds: float) -> str:
    """Format a duration as "45 sec", "12 min", "2 hr" or "1 hr 5 min"."""
    seconds = int(round(seconds))
    if seconds < 60:
        return f"{seconds} sec"
    if seconds < 3600:
        return f"{seconds // 60} min"
    hours, remainder = divmod(seconds, 3600)
    minutes = remainder // 60
    if minutes == 0:
        return f"{hours} hr"
    return f"{hours} hr {minutes} min"


def strip_markup(text: str) -> str:
    """
    Remove markup tags from backend instruction text.

    Tags are replaced by a space so that adjacent words stay separated, HTML
    entities are unescaped and runs of whitespace are collapsed.
    """
    without_tags = _TAG_PATTERN.sub(" ", text)
    collapsed = _WHITESPACE_PATTERN.sub(" ", html.unescape(without_tags)).strip()
    return _SPACE_BEFORE_PUNCTUATION.sub(r"\1", collapsed)
