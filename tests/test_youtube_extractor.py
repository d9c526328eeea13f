import json
import httpx
import pytest
from conftest import make_metadata
from core.entities import ExtractOptions, ExtractionFailure, ExtractionSuccess
from core.youtube_client import YouTubeClient
from core.youtube_extractor import YouTubeExtractor, parse_caption_xml, pick_thumbnail
from model.job import ErrorCode

URL = "https://youtube.com/shorts/dQw4w9WgXcQ"

VIDEO = {
    "id": "dQw4w9WgXcQ",
    "snippet": {
        "title": "Tiny kitchen hack",
        "description": "Try this! #Cooking #shorts #cooking thanks @chefbob",
        "channelId": "UC123",
        "channelTitle": "Chef Bob",
        "publishedAt": "2024-03-01T12:00:00Z",
        "liveBroadcastContent": "none",
        "thumbnails": {
            "default": {"url": "https://i.ytimg.com/default.jpg", "width": 120},
            "high": {"url": "https://i.ytimg.com/high.jpg", "width": 480},
            "maxres": {"url": "https://i.ytimg.com/maxres.jpg", "width": 1280},
        },
    },
    "contentDetails": {"duration": "PT45S"},
    "statistics": {"viewCount": "1234"},
}


def _extractor(handler, **kwargs) -> YouTubeExtractor:
    client = YouTubeClient(
        api_key=kwargs.pop("api_key", "test-key"),
        api_url="https://yt.test/youtube/v3/videos",
        timedtext_url="https://yt.test/api/timedtext",
        timeout=2.0,
        transport=httpx.MockTransport(handler),
    )
    return YouTubeExtractor(client, **kwargs)


def _error(status: int, reason: str, message: str = "err", headers=None):
    body = {"error": {"code": status, "message": message, "errors": [{"reason": reason}]}}
    return httpx.Response(status, json=body, headers=headers or {})


async def test_extracts_metadata():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(dict(request.url.params))
        return httpx.Response(200, json={"items": [VIDEO]})

    result = await _extractor(handler).extract(URL, ExtractOptions())

    assert isinstance(result, ExtractionSuccess)
    md = result.metadata
    assert seen["id"] == "dQw4w9WgXcQ"
    assert seen["part"] == "snippet,contentDetails,statistics"
    assert md.title == "Tiny kitchen hack"
    assert md.duration == 45
    assert md.thumbnailUrl == "https://i.ytimg.com/maxres.jpg"
    assert md.content.hashtags == ["#cooking", "#shorts"]
    assert md.content.mentions == ["@chefbob"]
    assert md.content.viewCount == 1234
    assert md.creator.channelId == "UC123"
    assert md.extraction.apiVersion == "YouTube Data API v3"
    assert result.warnings == []


async def test_long_video_gets_warning():
    video = json.loads(json.dumps(VIDEO))
    video["contentDetails"]["duration"] = "PT4M"

    result = await _extractor(lambda r: httpx.Response(200, json={"items": [video]})).extract(
        URL, ExtractOptions()
    )

    assert isinstance(result, ExtractionSuccess)
    assert result.metadata.duration == 240
    assert any("240s" in w for w in result.warnings)


async def test_live_stream_is_unsupported_content():
    video = json.loads(json.dumps(VIDEO))
    video["snippet"]["liveBroadcastContent"] = "live"

    result = await _extractor(lambda r: httpx.Response(200, json={"items": [video]})).extract(
        URL, ExtractOptions()
    )

    assert isinstance(result, ExtractionFailure)
    assert result.error.code == ErrorCode.unsupported_content


@pytest.mark.parametrize(
    "reason,expected",
    [
        ("quotaExceeded", ErrorCode.quota_exceeded),
        ("keyInvalid", ErrorCode.api_error),
        ("videoNotFound", ErrorCode.not_found),
        ("private", ErrorCode.privacy_blocked),
        ("somethingElse", ErrorCode.api_error),
    ],
)
async def test_forbidden_reasons(reason, expected):
    result = await _extractor(lambda r: _error(403, reason)).extract(URL, ExtractOptions())
    assert isinstance(result, ExtractionFailure)
    assert result.error.code == expected


async def test_not_found_status():
    result = await _extractor(lambda r: _error(404, "notFound")).extract(URL, ExtractOptions())
    assert result.error.code == ErrorCode.not_found


async def test_rate_limited_uses_retry_after_header():
    handler = lambda r: _error(429, "rateLimitExceeded", headers={"Retry-After": "7"})
    result = await _extractor(handler).extract(URL, ExtractOptions())
    assert result.error.code == ErrorCode.rate_limited
    assert result.error.retry_after_ms == 7000


async def test_rate_limited_default_retry_after():
    result = await _extractor(lambda r: _error(429, "rateLimitExceeded")).extract(URL, ExtractOptions())
    assert result.error.retry_after_ms == 5000


async def test_server_error_is_api_error():
    result = await _extractor(lambda r: httpx.Response(503, text="unavailable")).extract(
        URL, ExtractOptions()
    )
    assert result.error.code == ErrorCode.api_error


async def test_empty_items_is_not_found():
    result = await _extractor(lambda r: httpx.Response(200, json={"items": []})).extract(
        URL, ExtractOptions()
    )
    assert result.error.code == ErrorCode.not_found


async def test_transport_timeout_is_api_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    result = await _extractor(handler).extract(URL, ExtractOptions())
    assert result.error.code == ErrorCode.api_error


async def test_missing_api_key_is_api_error():
    def handler(request):
        raise AssertionError("no request expected")

    result = await _extractor(handler, api_key="").extract(URL, ExtractOptions())
    assert result.error.code == ErrorCode.api_error
    assert "not configured" in result.error.message


async def test_transcript_from_caption_track():
    xml = (
        '<?xml version="1.0" encoding="utf-8" ?><transcript>'
        '<text start="0" dur="1.5">Hello &amp;amp; welcome</text>'
        '<text start="1.5" dur="2">to the\nshow</text></transcript>'
    )
    result = await _extractor(lambda r: httpx.Response(200, text=xml)).fetch_transcript(
        URL, make_metadata()
    )
    assert result.ok
    assert result.text == "Hello & welcome\nto the show"


async def test_missing_captions_is_transcript_failure():
    result = await _extractor(lambda r: httpx.Response(404)).fetch_transcript(URL, make_metadata())
    assert not result.ok
    assert result.error.code == ErrorCode.transcript_failed


async def test_disabled_transcripts():
    def handler(request):
        raise AssertionError("no request expected")

    result = await _extractor(handler, transcripts_enabled=False).fetch_transcript(
        URL, make_metadata()
    )
    assert result.error.code == ErrorCode.transcript_failed


def test_pick_thumbnail_preference():
    assert pick_thumbnail({"medium": {"url": "m"}, "standard": {"url": "s"}}) == "s"
    assert pick_thumbnail({"odd": {"url": "a", "width": 10}, "bigger": {"url": "b", "width": 20}}) == "b"
    assert pick_thumbnail({}) is None


def test_parse_caption_xml_empty():
    assert parse_caption_xml("") == ""
