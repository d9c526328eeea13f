import logging
import re
from dataclasses import dataclass
from typing import Final, Optional
from model.api import PlatformFeatures, PlatformInfo, PlatformRateLimits
from model.metadata import Platform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatformConfig:
    platform: Platform
    display_name: str
    supports_metadata: bool
    supports_transcript: bool
    supports_thumbnails: bool
    url_patterns: tuple[re.Pattern[str], ...]
    estimated_time_ms: int
    requests_per_hour: int
    burst_limit: int

    def info(self) -> PlatformInfo:
        return PlatformInfo(
            name=self.platform,
            displayName=self.display_name,
            supportedFeatures=PlatformFeatures(
                metadata=self.supports_metadata,
                transcript=self.supports_transcript,
                thumbnails=self.supports_thumbnails,
            ),
            rateLimits=PlatformRateLimits(
                requestsPerHour=self.requests_per_hour, burstLimit=self.burst_limit
            ),
            estimatedTimeMs=self.estimated_time_ms,
        )


# Order matters: first match wins.
PLATFORM_CONFIGS: Final[tuple[PlatformConfig, ...]] = (
    PlatformConfig(
        platform=Platform.youtube_short,
        display_name="YouTube Shorts",
        supports_metadata=True,
        supports_transcript=True,
        supports_thumbnails=True,
        url_patterns=(
            re.compile(r"^https?://(www\.)?youtube\.com/shorts/[\w-]+"),
            re.compile(r"^https?://youtu\.be/[\w-]+"),
            re.compile(r"^https?://(www\.|m\.)?youtube\.com/watch\?v=[\w-]+"),
        ),
        estimated_time_ms=10000,
        requests_per_hour=10000,
        burst_limit=100,
    ),
    PlatformConfig(
        platform=Platform.tiktok,
        display_name="TikTok",
        supports_metadata=True,
        supports_transcript=False,
        supports_thumbnails=True,
        url_patterns=(
            re.compile(r"^https?://(www\.)?tiktok\.com/@[\w.-]+/video/\d+"),
            re.compile(r"^https?://(vm|vt)\.tiktok\.com/[\w-]+"),
        ),
        estimated_time_ms=5000,
        requests_per_hour=1000,
        burst_limit=10,
    ),
    PlatformConfig(
        platform=Platform.instagram_reel,
        display_name="Instagram Reels",
        supports_metadata=True,
        supports_transcript=False,
        supports_thumbnails=True,
        url_patterns=(
            re.compile(r"^https?://(www\.)?instagram\.com/reels?/[\w-]+"),
            re.compile(r"^https?://(www\.)?instagram\.com/p/[\w-]+"),
        ),
        estimated_time_ms=7000,
        requests_per_hour=500,
        burst_limit=5,
    ),
)

DEFAULT_ESTIMATED_TIME_MS: Final[int] = 8000


def detect_platform(normalized_url: str) -> Optional[Platform]:
    """Classify a normalized URL. Returns None instead of guessing."""
    for config in PLATFORM_CONFIGS:
        for pattern in config.url_patterns:
            if pattern.match(normalized_url or ""):
                logger.debug("platform.detected platform=%s url=%s", config.platform.value, normalized_url)
                return config.platform
    logger.info("platform.none url=%s", normalized_url)
    return None


def get_platform_config(platform: Platform) -> Optional[PlatformConfig]:
    return next((c for c in PLATFORM_CONFIGS if c.platform == platform), None)


def estimated_processing_time_ms(platform: Platform) -> int:
    config = get_platform_config(platform)
    return config.estimated_time_ms if config else DEFAULT_ESTIMATED_TIME_MS
