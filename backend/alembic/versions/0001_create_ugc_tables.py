"""create ugc content, inbox, rights, derived-asset and feedback tables"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.engine.reflection import Inspector

# revision identifiers, used by Alembic.
revision = "0001_create_ugc_tables"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(inspector: Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _job_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("content_id", sa.Integer(), sa.ForeignKey("ugc_content.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="processing"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    inspector = Inspector.from_engine(bind)

    if not _has_table(inspector, "ugc_content"):
        op.create_table(
            "ugc_content",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("platform", sa.String(32), nullable=False, index=True),
            sa.Column("platform_content_id", sa.String(512), nullable=False),
            sa.Column("author_username", sa.String(255), nullable=True),
            sa.Column("author_follower_count", sa.BigInteger(), nullable=True),
            sa.Column("author_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("media_url", sa.Text(), nullable=True),
            sa.Column("thumbnail_url", sa.Text(), nullable=True),
            sa.Column("media_type", sa.String(16), nullable=False, server_default="image"),
            sa.Column("duration", sa.Float(), nullable=True),
            sa.Column("caption", sa.Text(), nullable=True),
            sa.Column("hashtags", sa.JSON(), nullable=False),
            sa.Column("location", sa.String(255), nullable=True),
            sa.Column("posted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("likes", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("comments", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("shares", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("views", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("brand_tags", sa.JSON(), nullable=False),
            sa.Column("sentiment_score", sa.Float(), nullable=False, server_default="0"),
            sa.Column("quality_score", sa.Float(), nullable=False, server_default="0"),
            sa.Column("classification_status", sa.String(16), nullable=False, server_default="unclassified"),
            sa.Column("category", sa.String(128), nullable=True),
            sa.Column("brand_safety", sa.String(16), nullable=True),
            sa.Column("tags", sa.JSON(), nullable=False),
            sa.Column("classified_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("rights_status", sa.String(16), nullable=False, server_default="unknown", index=True),
            sa.Column("source", sa.String(16), nullable=False, server_default="search"),
            sa.Column("search_terms", sa.JSON(), nullable=False),
            sa.Column("raw_data", sa.JSON(), nullable=True),
            sa.Column("discovered_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.UniqueConstraint("platform", "platform_content_id", name="uq_ugc_content_platform_post"),
        )

    if not _has_table(inspector, "ugc_inbox"):
        op.create_table(
            "ugc_inbox",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("content_id", sa.Integer(), sa.ForeignKey("ugc_content.id", ondelete="RESTRICT"), nullable=False, index=True),
            sa.Column("status", sa.String(16), nullable=False, server_default="new", index=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.UniqueConstraint("content_id", name="uq_ugc_inbox_content"),
        )

    if not _has_table(inspector, "ugc_rights_requests"):
        op.create_table(
            "ugc_rights_requests",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("content_id", sa.Integer(), sa.ForeignKey("ugc_content.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("brand_id", sa.String(128), nullable=False),
            sa.Column("terms", sa.JSON(), nullable=False),
            sa.Column("contact_email", sa.String(255), nullable=True),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("status", sa.String(16), nullable=False, server_default="pending", index=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        )
        # At most one open request per (content, brand).
        op.create_index(
            "uq_ugc_rights_pending_brand",
            "ugc_rights_requests",
            ["content_id", "brand_id"],
            unique=True,
            postgresql_where=sa.text("status = 'pending'"),
            sqlite_where=sa.text("status = 'pending'"),
        )

    if not _has_table(inspector, "ugc_edits"):
        op.create_table(
            "ugc_edits",
            *_job_columns(),
            sa.Column("edit_type", sa.String(32), nullable=False, server_default="auto_enhancement"),
            sa.Column("changes", sa.JSON(), nullable=False),
            sa.Column("output_url", sa.Text(), nullable=True),
            sa.Column("enhancements", sa.JSON(), nullable=True),
        )

    if not _has_table(inspector, "ugc_voiceovers"):
        op.create_table(
            "ugc_voiceovers",
            *_job_columns(),
            sa.Column("script", sa.Text(), nullable=False),
            sa.Column("voice_type", sa.String(32), nullable=False, server_default="energetic"),
            sa.Column("language", sa.String(8), nullable=False, server_default="en"),
            sa.Column("audio_url", sa.Text(), nullable=True),
            sa.Column("duration", sa.Float(), nullable=True),
        )

    if not _has_table(inspector, "ugc_hotspot_jobs"):
        op.create_table(
            "ugc_hotspot_jobs",
            *_job_columns(),
            sa.Column("hotspots", sa.JSON(), nullable=True),
        )

    if not _has_table(inspector, "ugc_feedback_events"):
        op.create_table(
            "ugc_feedback_events",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("rating", sa.String(8), nullable=False),
            sa.Column("comment", sa.Text(), nullable=True),
            sa.Column("user_id", sa.String(128), nullable=True),
            sa.Column("content_id", sa.Integer(), sa.ForeignKey("ugc_content.id", ondelete="SET NULL"), nullable=True, index=True),
            sa.Column("context", sa.JSON(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )


def downgrade() -> None:
    for table in (
        "ugc_feedback_events",
        "ugc_hotspot_jobs",
        "ugc_voiceovers",
        "ugc_edits",
        "ugc_rights_requests",
        "ugc_inbox",
        "ugc_content",
    ):
        op.drop_table(table)
