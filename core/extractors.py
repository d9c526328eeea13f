"""Extractor contract, the not-yet-available providers, and the platform registry."""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional
from core.entities import (
    ExtractOptions,
    ExtractionError,
    ExtractionFailure,
    ExtractionResult,
    TranscriptResult,
)
from model.job import ErrorCode
from model.metadata import Platform, ShortFormMetadata

logger = logging.getLogger(__name__)


class Extractor(ABC):
    """One per platform. Failures are returned, not raised."""

    platform: Platform

    @abstractmethod
    async def extract(self, normalized_url: str, options: ExtractOptions) -> ExtractionResult:
        """Fetch metadata for a normalized URL."""

    async def fetch_transcript(
        self, normalized_url: str, metadata: ShortFormMetadata
    ) -> TranscriptResult:
        return TranscriptResult(
            error=ExtractionError(
                code=ErrorCode.transcript_failed,
                message=f"Transcripts are not available for {self.platform.value}",
            )
        )


class UnavailableExtractor(Extractor):
    """
    Provider whose API access is not set up. Answers every request with an
    `api_error` failure whose details explain the manual route.
    """

    message: str = ""
    remediation: str = ""

    async def extract(self, normalized_url: str, options: ExtractOptions) -> ExtractionResult:
        logger.info("extract.unavailable platform=%s url=%s", self.platform.value, normalized_url)
        return ExtractionFailure(
            error=ExtractionError(
                code=ErrorCode.api_error,
                message=self.message,
                details=self.remediation,
            )
        )


class TikTokExtractor(UnavailableExtractor):
    platform = Platform.tiktok
    message = "TikTok content extraction not available"
    remediation = (
        "TikTok requires app approval for API access. Please create this resource "
        "manually or contact support for API setup assistance."
    )


class InstagramExtractor(UnavailableExtractor):
    platform = Platform.instagram_reel
    message = "Instagram content extraction not available"
    remediation = (
        "Instagram requires Facebook app approval and access tokens for content access. "
        "Please create this resource manually or contact support for API setup assistance."
    )


class ExtractorRegistry:
    def __init__(self, extractors: Mapping[Platform, Extractor]) -> None:
        self._extractors: Dict[Platform, Extractor] = dict(extractors)

    def get(self, platform: Optional[Platform]) -> Optional[Extractor]:
        if platform is None:
            return None
        return self._extractors.get(platform)

    def platforms(self) -> list[Platform]:
        return list(self._extractors)
