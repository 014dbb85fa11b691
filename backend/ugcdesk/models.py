from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship as sa_relationship

from .db import Base


def relationship(*args, **kwargs):
    """Wrap SQLAlchemy relationship to forbid lazy loading by default."""
    kwargs.setdefault("lazy", "raise")
    return sa_relationship(*args, **kwargs)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Platform(str, Enum):
    instagram = "instagram"
    tiktok = "tiktok"
    facebook = "facebook"
    youtube = "youtube"
    twitter = "twitter"


class MediaType(str, Enum):
    image = "image"
    video = "video"


class RightsStatus(str, Enum):
    unknown = "unknown"
    pending = "pending"
    requested = "requested"
    approved = "approved"
    declined = "declined"


class ClassificationStatus(str, Enum):
    classified = "classified"
    unclassified = "unclassified"


class InboxStatus(str, Enum):
    new = "new"
    reviewed = "reviewed"
    approved = "approved"
    rejected = "rejected"
    published = "published"


class RightsRequestStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    declined = "declined"


class JobStatus(str, Enum):
    processing = "processing"
    completed = "completed"
    failed = "failed"


class ContentItem(Base):
    """A single piece of third-party media discovered on a social platform."""
    __tablename__ = "ugc_content"
    __table_args__ = (
        sa.UniqueConstraint("platform", "platform_content_id", name="uq_ugc_content_platform_post"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    platform: Mapped[str] = mapped_column(sa.String(32), nullable=False, index=True)
    platform_content_id: Mapped[str] = mapped_column(sa.String(512), nullable=False)

    # Author
    author_username: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    author_follower_count: Mapped[int | None] = mapped_column(sa.BigInteger(), nullable=True)
    author_verified: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=False, server_default=sa.false())

    # Media
    media_url: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    media_type: Mapped[str] = mapped_column(sa.String(16), nullable=False, default=MediaType.image.value, server_default="image")
    duration: Mapped[float | None] = mapped_column(sa.Float(), nullable=True)
    caption: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    hashtags: Mapped[list] = mapped_column(sa.JSON(), nullable=False, default=list)
    location: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    # Engagement snapshot
    likes: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, default=0, server_default="0")
    comments: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, default=0, server_default="0")
    shares: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, default=0, server_default="0")
    views: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False, default=0, server_default="0")

    # Scoring / classification
    brand_tags: Mapped[list] = mapped_column(sa.JSON(), nullable=False, default=list)
    sentiment_score: Mapped[float] = mapped_column(sa.Float(), nullable=False, default=0.0, server_default="0")
    quality_score: Mapped[float] = mapped_column(sa.Float(), nullable=False, default=0.0, server_default="0")
    classification_status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=ClassificationStatus.unclassified.value, server_default="unclassified"
    )
    category: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    brand_safety: Mapped[str | None] = mapped_column(sa.String(16), nullable=True)
    tags: Mapped[list] = mapped_column(sa.JSON(), nullable=False, default=list)
    classified_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    # Rights
    rights_status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=RightsStatus.unknown.value, server_default="unknown", index=True
    )

    # Provenance
    source: Mapped[str] = mapped_column(sa.String(16), nullable=False, default="search", server_default="search")
    search_terms: Mapped[list] = mapped_column(sa.JSON(), nullable=False, default=list)
    raw_data: Mapped[dict | None] = mapped_column(sa.JSON(), nullable=True)

    discovered_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )
    version: Mapped[int] = mapped_column(sa.Integer(), nullable=False, server_default="1")

    __mapper_args__ = {"version_id_col": version}

    inbox_item: Mapped["InboxItem | None"] = relationship(back_populates="content", uselist=False)
    rights_requests: Mapped[list["RightsRequest"]] = relationship(back_populates="content", passive_deletes=True)


class InboxItem(Base):
    """Review-queue entry wrapping exactly one ContentItem."""
    __tablename__ = "ugc_inbox"
    __table_args__ = (sa.UniqueConstraint("content_id", name="uq_ugc_inbox_content"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    content_id: Mapped[int] = mapped_column(
        sa.ForeignKey("ugc_content.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=InboxStatus.new.value, server_default="new", index=True
    )
    notes: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )
    version: Mapped[int] = mapped_column(sa.Integer(), nullable=False, server_default="1")

    __mapper_args__ = {"version_id_col": version}

    content: Mapped[ContentItem] = relationship(back_populates="inbox_item")


class RightsRequest(Base):
    """Outbound permission request sent to a creator on behalf of a brand."""
    __tablename__ = "ugc_rights_requests"
    __table_args__ = (
        # At most one open request per (content, brand).
        sa.Index(
            "uq_ugc_rights_pending_brand",
            "content_id",
            "brand_id",
            unique=True,
            postgresql_where=sa.text("status = 'pending'"),
            sqlite_where=sa.text("status = 'pending'"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    content_id: Mapped[int] = mapped_column(
        sa.ForeignKey("ugc_content.id", ondelete="CASCADE"), nullable=False, index=True
    )
    brand_id: Mapped[str] = mapped_column(sa.String(128), nullable=False)
    terms: Mapped[dict] = mapped_column(sa.JSON(), nullable=False, default=dict)
    contact_email: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    message: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=RightsRequestStatus.pending.value, server_default="pending", index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )
    resolved_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    content: Mapped[ContentItem] = relationship(back_populates="rights_requests")


class AssetJobMixin:
    """Columns shared by every derived-asset job table."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    content_id: Mapped[int] = mapped_column(
        sa.ForeignKey("ugc_content.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=JobStatus.processing.value, server_default="processing"
    )
    error_message: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)


class ContentEdit(AssetJobMixin, Base):
    """Auto-edit job: filters, colour adjustments and logo placement."""
    __tablename__ = "ugc_edits"

    edit_type: Mapped[str] = mapped_column(sa.String(32), nullable=False, default="auto_enhancement")
    changes: Mapped[dict] = mapped_column(sa.JSON(), nullable=False, default=dict)
    output_url: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    enhancements: Mapped[dict | None] = mapped_column(sa.JSON(), nullable=True)


class ContentVoiceover(AssetJobMixin, Base):
    """Text-to-speech voiceover job."""
    __tablename__ = "ugc_voiceovers"

    script: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    voice_type: Mapped[str] = mapped_column(sa.String(32), nullable=False, default="energetic")
    language: Mapped[str] = mapped_column(sa.String(8), nullable=False, default="en")
    audio_url: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    duration: Mapped[float | None] = mapped_column(sa.Float(), nullable=True)


class HotspotJob(AssetJobMixin, Base):
    """Hotspot detection job; `hotspots` holds the detected regions once completed."""
    __tablename__ = "ugc_hotspot_jobs"

    hotspots: Mapped[list | None] = mapped_column(sa.JSON(), nullable=True)


class FeedbackEvent(Base):
    __tablename__ = "ugc_feedback_events"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    rating: Mapped[str] = mapped_column(sa.String(8), nullable=False)
    comment: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    user_id: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    content_id: Mapped[int | None] = mapped_column(
        sa.ForeignKey("ugc_content.id", ondelete="SET NULL"), nullable=True, index=True
    )
    context: Mapped[dict] = mapped_column(sa.JSON(), nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )
