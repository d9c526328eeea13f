import logging
import re
from typing import Final, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit, SplitResult
from model.metadata import Platform
from util.errors import UrlValidationError

logger = logging.getLogger(__name__)

YOUTUBE_ID_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_-]{11}$")

TRACKING_PARAMS: Final[frozenset[str]] = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "fbclid",
        "gclid",
        "igshid",
        "ref",
        "source",
        "campaign",
        "si",
        "feature",
    }
)

YOUTUBE_HOSTS: Final[frozenset[str]] = frozenset(
    {"youtube.com", "m.youtube.com", "music.youtube.com"}
)
YOUTUBE_SHORT_LINK_HOST: Final[str] = "youtu.be"
TIKTOK_SHORT_LINK_HOSTS: Final[frozenset[str]] = frozenset({"vm.tiktok.com", "vt.tiktok.com"})
INSTAGRAM_HOSTS: Final[frozenset[str]] = frozenset({"instagram.com", "m.instagram.com"})


def validate_url(raw_url: str) -> bool:
    """True for syntactically valid http(s) URLs with a host."""
    if not raw_url or not raw_url.strip():
        return False
    try:
        parts = urlsplit(raw_url.strip())
        return parts.scheme.lower() in ("http", "https") and bool(parts.hostname)
    except ValueError:
        return False


def _host(parts: SplitResult) -> str:
    host = (parts.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def _require_youtube_id(video_id: str, url: str) -> str:
    if not YOUTUBE_ID_RE.match(video_id or ""):
        raise UrlValidationError(
            f"Invalid YouTube video id {video_id!r}: expected 11 characters of [A-Za-z0-9_-]",
            url,
        )
    return video_id


def _normalize_youtube(parts: SplitResult, host: str, url: str) -> str:
    if host == YOUTUBE_SHORT_LINK_HOST:
        # Generic short links are ambiguous; only explicit /shorts/ paths are Shorts.
        video_id = _require_youtube_id(parts.path.strip("/").split("/")[0], url)
        return f"https://youtube.com/watch?v={video_id}"

    path = parts.path
    if path.startswith("/shorts/"):
        video_id = _require_youtube_id(path[len("/shorts/"):].strip("/").split("/")[0], url)
        return f"https://youtube.com/shorts/{video_id}"

    if path.rstrip("/") == "/watch":
        params = dict(parse_qsl(parts.query))
        video_id = _require_youtube_id(params.get("v", ""), url)
        return f"https://youtube.com/watch?v={video_id}"

    return _strip_tracking(parts, "youtube.com")


def _normalize_tiktok(parts: SplitResult, host: str) -> str:
    if host not in TIKTOK_SHORT_LINK_HOSTS:
        host = "tiktok.com"
    return urlunsplit(("https", host, parts.path, "", ""))


def _normalize_instagram(parts: SplitResult) -> str:
    return urlunsplit(("https", "instagram.com", parts.path, "", ""))


def _strip_tracking(parts: SplitResult, host: str) -> str:
    kept = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k.lower() not in TRACKING_PARAMS
    ]
    netloc = host if parts.port is None else f"{host}:{parts.port}"
    return urlunsplit(("https", netloc, parts.path, urlencode(kept), ""))


def normalize_url(raw_url: str) -> str:
    """
    Canonical form of a submitted URL, used for platform detection and as the
    deduplication key.

    Raises UrlValidationError when a provider-specific id is malformed. Any
    other failure returns the input unchanged.
    """
    url = (raw_url or "").strip()
    try:
        parts = urlsplit(url)
        host = _host(parts)

        if host == YOUTUBE_SHORT_LINK_HOST or host in YOUTUBE_HOSTS:
            return _normalize_youtube(parts, host, url)
        if host == "tiktok.com" or host.endswith(".tiktok.com"):
            return _normalize_tiktok(parts, host)
        if host in INSTAGRAM_HOSTS:
            return _normalize_instagram(parts)

        return _strip_tracking(parts, host)
    except UrlValidationError:
        raise
    except Exception as e:
        logger.warning("url.normalize.fallback url=%s err=%s", url, type(e).__name__)
        return raw_url


def extract_video_id(url: str, platform: Platform) -> Optional[str]:
    """Provider id embedded in a normalized URL, or None."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    host = _host(parts)
    path = parts.path

    if platform == Platform.youtube_short:
        if host == YOUTUBE_SHORT_LINK_HOST:
            candidate = path.strip("/").split("/")[0]
        elif path.startswith("/shorts/"):
            candidate = path[len("/shorts/"):].strip("/").split("/")[0]
        else:
            candidate = dict(parse_qsl(parts.query)).get("v", "")
        return candidate if YOUTUBE_ID_RE.match(candidate) else None

    if platform == Platform.tiktok:
        m = re.search(r"/video/(\d+)", path)
        if m:
            return m.group(1)
        if host in TIKTOK_SHORT_LINK_HOSTS:
            return path.strip("/") or None
        return None

    if platform == Platform.instagram_reel:
        m = re.search(r"/(?:reels?|p)/([^/?#]+)", path)
        return m.group(1) if m else None

    return None
