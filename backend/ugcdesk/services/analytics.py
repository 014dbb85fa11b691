"""
UGC analytics summary and feedback events.

Counts come from grouped SQL queries; engagement, sentiment and growth are
computed over the filtered content rows by the pure helpers below so they
behave the same on Postgres and SQLite.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ugcdesk.errors import InvalidState, NotFound
from ugcdesk.models import (
    ContentEdit,
    ContentItem,
    ContentVoiceover,
    FeedbackEvent,
    HotspotJob,
    InboxItem,
)

logger = logging.getLogger(__name__)

SENTIMENT_THRESHOLD = 0.3
HIGH_QUALITY_MIN = 7.0
FEEDBACK_RATINGS = ("up", "down")


def sentiment_bucket(score: float | None) -> str:
    score = score or 0.0
    if score > SENTIMENT_THRESHOLD:
        return "positive"
    if score < -SENTIMENT_THRESHOLD:
        return "negative"
    return "neutral"


def engagement_of(item: ContentItem) -> int:
    return (item.likes or 0) + (item.comments or 0) + (item.shares or 0)


def weekly_growth(current: int, previous: int) -> float | None:
    """Percent change week over week; None when there is no previous week to compare."""
    if previous == 0:
        return None if current == 0 else 100.0
    return round((current - previous) / previous * 100.0, 1)


def _as_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def summarize_content(items: Iterable[ContentItem], *, now: datetime | None = None) -> dict[str, Any]:
    items = list(items)
    now = _as_utc(now) or datetime.now(timezone.utc)
    week_ago = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)

    total_engagement = sum(engagement_of(i) for i in items)
    top = sorted(items, key=lambda i: (engagement_of(i), i.id), reverse=True)[:5]

    qualities = [i.quality_score or 0.0 for i in items]
    sentiment = Counter(sentiment_bucket(i.sentiment_score) for i in items)

    hashtags: Counter = Counter()
    for i in items:
        hashtags.update({h.lower() for h in i.hashtags or []})

    this_week = last_week = 0
    for i in items:
        discovered = _as_utc(i.discovered_at)
        if discovered is None:
            continue
        if discovered > week_ago:
            this_week += 1
        elif discovered > two_weeks_ago:
            last_week += 1

    recent = sorted(items, key=lambda i: (_as_utc(i.discovered_at) or now, i.id), reverse=True)[:5]

    return {
        "engagement": {
            "total": total_engagement,
            "average": round(total_engagement / len(items), 2) if items else 0.0,
            "top": [
                {"content_id": i.id, "platform": i.platform, "author": i.author_username, "engagement": engagement_of(i)}
                for i in top
            ],
        },
        "quality": {
            "average": round(sum(qualities) / len(qualities), 2) if qualities else 0.0,
            "high_quality_count": sum(1 for q in qualities if q >= HIGH_QUALITY_MIN),
        },
        "sentiment": {b: sentiment.get(b, 0) for b in ("positive", "neutral", "negative")},
        "top_hashtags": [{"hashtag": h, "count": c} for h, c in hashtags.most_common(10)],
        "recent_discoveries": [
            {"content_id": i.id, "platform": i.platform, "discovered_at": _as_utc(i.discovered_at)}
            for i in recent
        ],
        "growth": {
            "this_week": this_week,
            "last_week": last_week,
            "weekly_growth_pct": weekly_growth(this_week, last_week),
        },
    }


async def _grouped(session: AsyncSession, column, filters) -> dict[str, int]:
    q = select(column, func.count()).group_by(column)
    if filters:
        q = q.where(*filters)
    res = await session.execute(q)
    return {key: count for key, count in res.all()}


async def compute_analytics(
    session: AsyncSession,
    *,
    platform: str | None = None,
    rights_status: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> dict[str, Any]:
    """Analytics over content matching the filters. Date range applies to discovered_at."""
    filters = []
    if platform:
        filters.append(ContentItem.platform == platform.lower())
    if rights_status:
        filters.append(ContentItem.rights_status == rights_status.lower())
    if date_from:
        filters.append(ContentItem.discovered_at >= date_from)
    if date_to:
        filters.append(ContentItem.discovered_at <= date_to)

    content_q = select(ContentItem)
    if filters:
        content_q = content_q.where(*filters)
    items = list((await session.execute(content_q)).scalars().all())
    content_ids = select(ContentItem.id).where(*filters) if filters else None

    async def _count(model, *extra) -> int:
        q = select(func.count(model.id))
        if content_ids is not None:
            q = q.where(model.content_id.in_(content_ids))
        if extra:
            q = q.where(*extra)
        return (await session.scalar(q)) or 0

    inbox_q = select(InboxItem.status, func.count(InboxItem.id)).group_by(InboxItem.status)
    if content_ids is not None:
        inbox_q = inbox_q.where(InboxItem.content_id.in_(content_ids))
    inbox_by_status = {s: c for s, c in (await session.execute(inbox_q)).all()}

    summary = summarize_content(items)
    result = {
        "totals": {
            "content": len(items),
            "inbox": sum(inbox_by_status.values()),
            "edits": await _count(ContentEdit),
            "voiceovers": await _count(ContentVoiceover),
            "hotspot_jobs": await _count(HotspotJob),
        },
        "content_by_platform": await _grouped(session, ContentItem.platform, filters),
        "inbox_by_status": inbox_by_status,
        "rights_breakdown": await _grouped(session, ContentItem.rights_status, filters),
        **summary,
        "filters": {
            "platform": platform,
            "rights_status": rights_status,
            "date_from": date_from,
            "date_to": date_to,
        },
    }
    logger.debug(f"[analytics] computed over {len(items)} content items")
    return result


async def record_feedback(
    session: AsyncSession,
    rating: str,
    *,
    comment: str | None = None,
    user_id: str | None = None,
    content_id: int | None = None,
    context: dict | None = None,
) -> FeedbackEvent:
    rating = (rating or "").strip().lower()
    if rating not in FEEDBACK_RATINGS:
        raise InvalidState(f"Invalid rating '{rating}'", allowed=list(FEEDBACK_RATINGS))
    if content_id is not None and not await session.get(ContentItem, content_id):
        raise NotFound("Content not found", content_id=content_id)

    event = FeedbackEvent(
        rating=rating,
        comment=comment or None,
        user_id=user_id,
        content_id=content_id,
        context=context or {},
        created_at=datetime.now(timezone.utc),
    )
    session.add(event)
    await session.commit()
    logger.info(f"[feedback] {rating} from {user_id or 'anonymous'} (content={content_id})")
    return event


async def list_feedback(session: AsyncSession, *, content_id: int | None = None, limit: int = 100) -> list[FeedbackEvent]:
    q = select(FeedbackEvent)
    if content_id is not None:
        q = q.where(FeedbackEvent.content_id == content_id)
    q = q.order_by(FeedbackEvent.created_at.desc(), FeedbackEvent.id.desc()).limit(limit)
    return list((await session.execute(q)).scalars().all())
