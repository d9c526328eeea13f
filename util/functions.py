import re
from datetime import datetime, timezone

_HASHTAG_RE = re.compile(r"#[\w\u00c0-\u024f\u1e00-\u1eff]+")
_MENTION_RE = re.compile(r"(?<![\w@])@([\w.]{1,30})")
_ISO_DURATION_RE = re.compile(
    r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?)?$"
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def extract_hashtags(text: str) -> list[str]:
    """Lowercased hashtags in order of first appearance, without duplicates."""
    if not text:
        return []
    seen: dict[str, None] = {}
    for tag in _HASHTAG_RE.findall(text):
        seen.setdefault(tag.lower(), None)
    return list(seen)


def extract_mentions(text: str) -> list[str]:
    if not text:
        return []
    seen: dict[str, None] = {}
    for handle in _MENTION_RE.findall(text):
        seen.setdefault("@" + handle.rstrip("."), None)
    return list(seen)


def parse_iso8601_duration(value: str | None) -> int | None:
    """
    "PT1M5S" -> 65. Returns None for empty or unparseable input
    (including "P0D", which YouTube reports for live streams).
    """
    if not value:
        return None
    m = _ISO_DURATION_RE.match(value.strip())
    if not m or not any(m.groups()):
        return None
    days, hours, minutes, seconds = (int(g or 0) for g in m.groups())
    total = days * 86400 + hours * 3600 + minutes * 60 + seconds
    return total if total > 0 else None
