from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from .models import InboxStatus, MediaType, Platform, RightsStatus


# ============ Content ============

class ContentRead(BaseModel):
    id: int
    platform: str
    platform_content_id: str
    author_username: str | None = None
    author_follower_count: int | None = None
    author_verified: bool = False
    media_url: str | None = None
    thumbnail_url: str | None = None
    media_type: str
    duration: float | None = None
    caption: str | None = None
    hashtags: list[str] = []
    location: str | None = None
    posted_at: datetime | None = None
    likes: int = 0
    comments: int = 0
    shares: int = 0
    views: int = 0
    brand_tags: list[str] = []
    sentiment_score: float = 0.0
    quality_score: float = 0.0
    classification_status: str
    category: str | None = None
    brand_safety: str | None = None
    tags: list[str] = []
    classified_at: datetime | None = None
    rights_status: str
    source: str
    search_terms: list[str] = []
    discovered_at: datetime
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ContentListResponse(BaseModel):
    items: list[ContentRead]
    total: int
    limit: int
    offset: int


class PostIn(BaseModel):
    """A post handed in directly (API or manual source) instead of discovered."""

    platform: Platform
    external_id: str
    author_username: str | None = None
    author_follower_count: int | None = Field(default=None, ge=0)
    author_verified: bool = False
    caption: str | None = None
    media_url: str | None = None
    thumbnail_url: str | None = None
    media_type: MediaType = MediaType.image
    duration: float | None = None
    hashtags: list[str] = []
    location: str | None = None
    likes: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    views: int = Field(default=0, ge=0)
    posted_at: datetime | None = None

    @field_validator("external_id")
    @classmethod
    def strip_external_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("external_id must not be empty")
        return value

    @field_validator("hashtags")
    @classmethod
    def normalize_hashtags(cls, value: list[str]) -> list[str]:
        return [h.strip().lstrip("#").lower() for h in value if h and h.strip()]


class IngestRequest(BaseModel):
    posts: list[PostIn]
    search_terms: list[str] = []
    source: str = "api"
    classify: bool = True

    @field_validator("source")
    @classmethod
    def check_source(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("search", "api", "manual"):
            raise ValueError("source must be one of search, api, manual")
        return value


class IngestResponse(BaseModel):
    created_ids: list[int]
    updated_ids: list[int]
    created: int
    updated: int
    failed: int
    skipped: int
    unclassified: int
    platform_errors: dict[str, str] = {}


class DiscoverRequest(BaseModel):
    hashtags: list[str] = []
    keywords: list[str] = []
    platforms: list[Platform] = [Platform.instagram, Platform.tiktok]
    limit: int = Field(default=20, ge=1, le=200)


class DiscoverAccepted(BaseModel):
    status: str = "accepted"
    celery_id: str | None = None
    hashtags: list[str]
    keywords: list[str]
    platforms: list[str]


# ============ Inbox ============

class InboxCreate(BaseModel):
    content_id: int


class InboxUpdate(BaseModel):
    status: InboxStatus
    notes: str | None = None


class InboxRead(BaseModel):
    id: int
    content_id: int
    status: str
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InboxReadWithContent(InboxRead):
    content: ContentRead | None = None


# ============ Rights ============

class RightsRequestCreate(BaseModel):
    brand_id: str
    terms: dict[str, Any] = {}
    contact_email: str | None = None
    message: str | None = None

    @field_validator("brand_id")
    @classmethod
    def strip_brand(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("brand_id must not be empty")
        return value


class RightsResolve(BaseModel):
    decision: RightsStatus

    @field_validator("decision")
    @classmethod
    def check_decision(cls, value: RightsStatus) -> RightsStatus:
        if value not in (RightsStatus.approved, RightsStatus.declined):
            raise ValueError("decision must be 'approved' or 'declined'")
        return value


class RightsRequestRead(BaseModel):
    id: int
    content_id: int
    brand_id: str
    terms: dict[str, Any] = {}
    contact_email: str | None = None
    message: str | None = None
    status: str
    created_at: datetime
    resolved_at: datetime | None = None

    class Config:
        from_attributes = True


class RightsStatusRead(BaseModel):
    content_id: int
    rights_status: str
    latest_request_id: int | None = None
    latest_request_status: str | None = None


# ============ Derived assets ============

class EditCreate(BaseModel):
    edit_type: str = "auto_enhancement"
    changes: dict[str, Any] | None = None


class VoiceoverCreate(BaseModel):
    script: str | None = None
    voice_type: str = "energetic"
    language: str = "en"


class JobBase(BaseModel):
    id: int
    content_id: int
    status: str
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None

    class Config:
        from_attributes = True


class EditRead(JobBase):
    edit_type: str
    changes: dict[str, Any] = {}
    output_url: str | None = None
    enhancements: dict[str, Any] | None = None


class VoiceoverRead(JobBase):
    script: str
    voice_type: str
    language: str
    audio_url: str | None = None
    duration: float | None = None


class HotspotJobRead(JobBase):
    hotspots: list[dict[str, Any]] | None = None


# ============ Feedback ============

class FeedbackCreate(BaseModel):
    rating: Literal["up", "down"]
    comment: str | None = None
    user_id: str | None = None
    content_id: int | None = None
    context: dict[str, Any] = {}

    @field_validator("rating", mode="before")
    @classmethod
    def normalize_rating(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class FeedbackRead(BaseModel):
    id: int
    rating: str
    comment: str | None = None
    user_id: str | None = None
    content_id: int | None = None
    context: dict[str, Any] = {}
    created_at: datetime

    class Config:
        from_attributes = True
