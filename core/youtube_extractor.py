import html
import logging
import xml.etree.ElementTree as ET
from typing import Any, Dict, Final, Optional
import httpx
from fastapi import status
from core.entities import (
    ExtractOptions,
    ExtractionError,
    ExtractionFailure,
    ExtractionResult,
    ExtractionSuccess,
    TranscriptResult,
)
from core.extractors import Extractor
from core.url_normalizer import extract_video_id
from core.youtube_client import YouTubeApiError, YouTubeClient
from model.job import ErrorCode
from model.metadata import (
    ContentInfo,
    Creator,
    ExtractionInfo,
    ExtractionMethod,
    Platform,
    ShortFormMetadata,
)
from util.functions import (
    extract_hashtags,
    extract_mentions,
    parse_iso8601_duration,
    utc_now,
)

logger = logging.getLogger(__name__)

API_VERSION: Final[str] = "YouTube Data API v3"
THUMBNAIL_PREFERENCE: Final[tuple[str, ...]] = ("maxres", "standard", "high", "medium", "default")
SHORTS_MAX_SECONDS: Final[int] = 180

_QUOTA_REASONS = {
    "quotaexceeded",
    "quota_exceeded",
    "dailylimitexceeded",
    "dailylimitexceededunreg",
    "userquotaexceeded",
    "userratelimitexceeded",
    "ratelimitexceeded",
}
_CREDENTIAL_REASONS = {
    "accessnotconfigured",
    "keyinvalid",
    "forbidden",
    "insufficientpermissions",
    "signuprequired",
    "youtube_signup_required",
    "youtubesignuprequired",
}
_NOT_FOUND_REASONS = {"videonotfound", "channelnotfound", "playlisterror"}
_PRIVACY_REASONS = {"private", "privatenotaccessible", "videoprivate", "limitedpublic"}


def interpret_forbidden(reason: Optional[str], api_message: Optional[str]) -> ExtractionError:
    """Map a 403 `errors[0].reason` onto the shared taxonomy."""
    normalized = (reason or "").lower()
    if reason and api_message:
        details = f"{reason}: {api_message}"
    else:
        details = reason or api_message

    if normalized in _QUOTA_REASONS:
        return ExtractionError(ErrorCode.quota_exceeded, "YouTube API quota exceeded", details)
    if normalized in _CREDENTIAL_REASONS:
        return ExtractionError(ErrorCode.api_error, "YouTube API credentials rejected", details)
    if normalized in _NOT_FOUND_REASONS:
        return ExtractionError(ErrorCode.not_found, "Video not found or unavailable", details)
    if normalized in _PRIVACY_REASONS:
        return ExtractionError(ErrorCode.privacy_blocked, "Video is private or restricted", details)
    return ExtractionError(
        ErrorCode.api_error, api_message or "YouTube API request forbidden", details
    )


def map_api_error(err: YouTubeApiError, default_retry_after_ms: int) -> ExtractionError:
    if err.status_code == status.HTTP_403_FORBIDDEN:
        return interpret_forbidden(err.reason, err.api_message)
    if err.status_code == status.HTTP_404_NOT_FOUND:
        return ExtractionError(
            ErrorCode.not_found,
            err.api_message or "Video not found or private",
            err.reason or "The video may be private, deleted, or the ID is incorrect",
        )
    if err.status_code == status.HTTP_429_TOO_MANY_REQUESTS:
        return ExtractionError(
            ErrorCode.rate_limited,
            "YouTube API rate limit reached",
            err.reason or err.api_message,
            retry_after_ms=err.retry_after_ms or default_retry_after_ms,
        )
    return ExtractionError(
        ErrorCode.api_error,
        err.api_message or f"YouTube API request failed ({err.status_code})",
        err.reason or (err.raw[:500] if err.raw else None),
    )


def pick_thumbnail(thumbnails: Dict[str, Any]) -> Optional[str]:
    """Highest resolution thumbnail available."""
    for key in THUMBNAIL_PREFERENCE:
        url = (thumbnails.get(key) or {}).get("url")
        if url:
            return url
    # Unknown keys: fall back to the widest one reported.
    sized = [t for t in thumbnails.values() if isinstance(t, dict) and t.get("url")]
    if not sized:
        return None
    return max(sized, key=lambda t: int(t.get("width") or 0))["url"]


def parse_caption_xml(raw: str) -> str:
    """Flatten a timed-text XML document into plain text, one cue per line."""
    if not raw or not raw.strip():
        return ""
    root = ET.fromstring(raw)
    lines = []
    for node in root.iter("text"):
        text = html.unescape("".join(node.itertext())).strip()
        if text:
            lines.append(" ".join(text.split()))
    return "\n".join(lines)


class YouTubeExtractor(Extractor):
    platform = Platform.youtube_short

    def __init__(
        self,
        client: YouTubeClient,
        *,
        transcripts_enabled: bool = True,
        transcript_language: str = "en",
        retry_after_default_ms: int = 5000,
    ) -> None:
        self._client = client
        self._transcripts_enabled = transcripts_enabled
        self._transcript_language = transcript_language
        self._retry_after_default_ms = retry_after_default_ms

    async def extract(self, normalized_url: str, options: ExtractOptions) -> ExtractionResult:
        video_id = extract_video_id(normalized_url, Platform.youtube_short)
        if not video_id:
            logger.error("youtube.extract.no_id url=%s", normalized_url)
            return ExtractionFailure(
                ExtractionError(
                    ErrorCode.invalid_url,
                    "Could not extract video ID from YouTube URL",
                    "The URL format may be unsupported or malformed",
                )
            )

        if not self._client.configured:
            logger.error("youtube.extract.no_api_key video=%s", video_id)
            return ExtractionFailure(
                ExtractionError(
                    ErrorCode.api_error,
                    "YouTube API key not configured",
                    "Set YOUTUBE_API_KEY in the service environment",
                )
            )

        try:
            video = await self._client.get_video(video_id)
        except YouTubeApiError as e:
            return ExtractionFailure(map_api_error(e, self._retry_after_default_ms))
        except httpx.TimeoutException as e:
            logger.error("youtube.extract.timeout video=%s", video_id)
            return ExtractionFailure(
                ExtractionError(ErrorCode.api_error, "YouTube API request timed out", str(e) or None)
            )
        except httpx.RequestError as e:
            logger.error("youtube.extract.request_error video=%s err=%s", video_id, type(e).__name__)
            return ExtractionFailure(
                ExtractionError(ErrorCode.api_error, "YouTube API request failed", str(e) or None)
            )

        if not video:
            logger.warning("youtube.extract.empty video=%s", video_id)
            return ExtractionFailure(
                ExtractionError(
                    ErrorCode.not_found,
                    "Video not found",
                    "The video may be private or deleted",
                )
            )

        try:
            return self._build(video, video_id, normalized_url)
        except (KeyError, TypeError, ValueError) as e:
            logger.error("youtube.extract.parse_error video=%s err=%s", video_id, type(e).__name__)
            return ExtractionFailure(
                ExtractionError(
                    ErrorCode.extraction_failed,
                    "Failed to extract YouTube metadata",
                    str(e) or type(e).__name__,
                )
            )

    def _build(
        self, video: Dict[str, Any], video_id: str, normalized_url: str
    ) -> ExtractionResult:
        snippet = video.get("snippet") or {}
        details = video.get("contentDetails") or {}
        stats = video.get("statistics") or {}

        live = (snippet.get("liveBroadcastContent") or "none").lower()
        if live in ("live", "upcoming"):
            return ExtractionFailure(
                ExtractionError(
                    ErrorCode.unsupported_content,
                    "Live streams and premieres are not supported",
                    f"liveBroadcastContent={live}",
                )
            )

        warnings: list[str] = []
        description = snippet.get("description") or ""
        duration = parse_iso8601_duration(details.get("duration"))
        if duration is None:
            warnings.append("Video duration unavailable")
        elif duration > SHORTS_MAX_SECONDS:
            warnings.append(f"Video is {duration}s long; it may not be a Short")

        thumbnail = pick_thumbnail(snippet.get("thumbnails") or {})
        if not thumbnail:
            warnings.append("No thumbnail available")

        view_count = stats.get("viewCount")
        metadata = ShortFormMetadata(
            platform=Platform.youtube_short,
            title=snippet.get("title") or "Untitled Video",
            description=description or None,
            duration=duration,
            thumbnailUrl=thumbnail,
            sourceUrl=normalized_url,
            normalizedUrl=normalized_url,
            creator=Creator(
                name=snippet.get("channelTitle"),
                channelId=snippet.get("channelId"),
                channelName=snippet.get("channelTitle"),
            ),
            content=ContentInfo(
                hashtags=extract_hashtags(description),
                mentions=extract_mentions(description),
                uploadDate=snippet.get("publishedAt"),
                viewCount=int(view_count) if view_count is not None else None,
                language=snippet.get("defaultLanguage") or snippet.get("defaultAudioLanguage"),
            ),
            extraction=ExtractionInfo(
                method=ExtractionMethod.auto,
                extractedAt=utc_now().isoformat(),
                apiVersion=API_VERSION,
                warnings=list(warnings),
            ),
        )
        logger.info(
            "youtube.extract.ok video=%s duration=%s views=%s",
            video_id,
            metadata.duration,
            metadata.content.viewCount if metadata.content else None,
        )
        return ExtractionSuccess(metadata=metadata, warnings=warnings)

    async def fetch_transcript(
        self, normalized_url: str, metadata: ShortFormMetadata
    ) -> TranscriptResult:
        if not self._transcripts_enabled:
            return TranscriptResult(
                error=ExtractionError(
                    ErrorCode.transcript_failed, "Transcript extraction disabled in configuration"
                )
            )
        video_id = extract_video_id(normalized_url, Platform.youtube_short)
        if not video_id:
            return TranscriptResult(
                error=ExtractionError(ErrorCode.transcript_failed, "No video id for transcript lookup")
            )

        lang = metadata.content.language if metadata.content and metadata.content.language else None
        lang = (lang or self._transcript_language).split("-")[0]
        try:
            raw = await self._client.get_caption_track(video_id, lang)
            text = parse_caption_xml(raw)
        except (YouTubeApiError, httpx.HTTPError, ET.ParseError) as e:
            logger.warning("youtube.transcript.error video=%s err=%s", video_id, type(e).__name__)
            return TranscriptResult(
                error=ExtractionError(
                    ErrorCode.transcript_failed,
                    "Transcript extraction encountered an error",
                    str(e) or type(e).__name__,
                )
            )

        if not text:
            return TranscriptResult(
                error=ExtractionError(
                    ErrorCode.transcript_failed, f"No '{lang}' captions available for this video"
                )
            )
        logger.info("youtube.transcript.ok video=%s chars=%d", video_id, len(text))
        return TranscriptResult(text=text)
