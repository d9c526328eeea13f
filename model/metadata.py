from enum import Enum
from pydantic import BaseModel, Field, field_validator


class Platform(str, Enum):
    youtube_short = "youtube-short"
    tiktok = "tiktok"
    instagram_reel = "instagram-reel"


class ExtractionMethod(str, Enum):
    auto = "auto"
    manual = "manual"


class Creator(BaseModel):
    name: str | None = None
    handle: str | None = None
    channelId: str | None = None
    channelName: str | None = None
    avatarUrl: str | None = None


class ContentInfo(BaseModel):
    hashtags: list[str] = Field(default_factory=list)
    mentions: list[str] = Field(default_factory=list)
    uploadDate: str | None = None
    viewCount: int | None = None
    language: str | None = None


class ExtractionInfo(BaseModel):
    method: ExtractionMethod = ExtractionMethod.auto
    extractedAt: str
    apiVersion: str | None = None
    warnings: list[str] = Field(default_factory=list)


class ShortFormMetadata(BaseModel):
    platform: Platform
    title: str | None = None
    description: str | None = None
    duration: int | None = None  # seconds
    thumbnailUrl: str | None = None
    sourceUrl: str
    normalizedUrl: str
    creator: Creator | None = None
    content: ContentInfo | None = None
    extraction: ExtractionInfo

    @field_validator("duration")
    @classmethod
    def _non_negative_duration(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            return None
        return v
