import json
import logging
from typing import Any, Dict, Optional
import httpx
from fastapi import status
from util.constants import Headers, USER_AGENT
from util.timing import timed

logger = logging.getLogger(__name__)

VIDEO_PARTS = "snippet,contentDetails,statistics"


class YouTubeApiError(Exception):
    """Non-2xx answer from the YouTube Data API, with the primary error reason."""

    def __init__(
        self,
        status_code: int,
        reason: Optional[str] = None,
        message: Optional[str] = None,
        raw: str = "",
        retry_after_ms: Optional[int] = None,
    ) -> None:
        super().__init__(message or reason or f"YouTube API request failed ({status_code})")
        self.status_code = status_code
        self.reason = reason
        self.api_message = message
        self.raw = raw
        self.retry_after_ms = retry_after_ms


def _retry_after_ms(res: httpx.Response) -> Optional[int]:
    value = res.headers.get(Headers.RETRY_AFTER)
    if not value:
        return None
    try:
        return max(0, int(float(value) * 1000))
    except ValueError:
        return None


def _api_error(res: httpx.Response) -> YouTubeApiError:
    raw = res.text or ""
    reason = message = None
    try:
        payload = json.loads(raw) if raw else {}
        err = payload.get("error") or {}
        message = err.get("message")
        errors = err.get("errors") or []
        if errors and isinstance(errors[0], dict):
            reason = errors[0].get("reason")
    except (ValueError, AttributeError):
        pass
    return YouTubeApiError(
        res.status_code,
        reason=reason,
        message=message,
        raw=raw,
        retry_after_ms=_retry_after_ms(res),
    )


class YouTubeClient:
    """
    Thin async client for the two YouTube endpoints we use:
    - Data API v3 `videos` (API-key authenticated)
    - the public timed-text caption endpoint
    Each call opens its own httpx.AsyncClient bounded by `timeout`.
    """

    def __init__(
        self,
        *,
        api_key: str,
        api_url: str,
        timedtext_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._timedtext_url = timedtext_url
        self._timeout = httpx.Timeout(timeout, connect=min(5.0, timeout))
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            headers={"User-Agent": USER_AGENT},
        )

    async def get_video(self, video_id: str) -> Dict[str, Any]:
        """
        Fetch a single video resource. Raises YouTubeApiError for non-2xx,
        httpx.TimeoutException / httpx.RequestError for transport failures.
        Returns {} when the API answers 200 with no items.
        """
        params = {"part": VIDEO_PARTS, "id": video_id, "key": self._api_key}
        with timed(logger, "youtube.videos", video=video_id):
            async with self._client() as client:
                res = await client.get(self._api_url, params=params)

        if res.status_code != status.HTTP_200_OK:
            err = _api_error(res)
            logger.error(
                "youtube.videos.bad_status video=%s status=%d reason=%s",
                video_id,
                res.status_code,
                err.reason,
            )
            raise err

        try:
            data = res.json()
        except ValueError:
            logger.error("youtube.videos.bad_json video=%s", video_id)
            raise YouTubeApiError(res.status_code, message="Malformed YouTube API response")

        items = data.get("items") or []
        return items[0] if items else {}

    async def get_caption_track(self, video_id: str, lang: str) -> str:
        """Raw timed-text XML for `lang`; empty string when no track exists."""
        params = {"v": video_id, "lang": lang}
        with timed(logger, "youtube.timedtext", video=video_id, lang=lang):
            async with self._client() as client:
                res = await client.get(self._timedtext_url, params=params)
        if res.status_code == status.HTTP_404_NOT_FOUND:
            return ""
        if res.status_code != status.HTTP_200_OK:
            raise _api_error(res)
        return res.text or ""
