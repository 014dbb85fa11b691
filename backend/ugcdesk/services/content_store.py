"""
Content Store: turns discovery results into ContentItem rows.

Ingestion is best-effort. Each post is written in its own transaction, so a
failing row is logged and counted without losing the rest of the batch.
Posts are keyed by (platform, platform_content_id); re-ingesting a known
post refreshes its engagement snapshot instead of inserting a duplicate.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ugcdesk.errors import ExternalServiceFailure, NotFound
from ugcdesk.models import ClassificationStatus, ContentItem, Platform, RightsStatus
from ugcdesk.services.classifier import Classification, ContentClassifier, get_classifier
from ugcdesk.services.discovery import DiscoveryProvider, RawPost, get_discovery_provider

logger = logging.getLogger(__name__)

PLATFORMS = frozenset(p.value for p in Platform)

# Initial rights state by where the item came from.
INITIAL_RIGHTS_BY_SOURCE = {
    "search": RightsStatus.unknown.value,
    "api": RightsStatus.pending.value,
    "manual": RightsStatus.pending.value,
}


@dataclass
class IngestReport:
    created_ids: list[int] = field(default_factory=list)
    updated_ids: list[int] = field(default_factory=list)
    failed: int = 0
    skipped: int = 0
    unclassified: int = 0
    platform_errors: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "created_ids": self.created_ids,
            "updated_ids": self.updated_ids,
            "created": len(self.created_ids),
            "updated": len(self.updated_ids),
            "failed": self.failed,
            "skipped": self.skipped,
            "unclassified": self.unclassified,
            "platform_errors": self.platform_errors,
        }


def _normalize_terms(terms: list[str] | None) -> list[str]:
    out: list[str] = []
    for t in terms or []:
        t = (t or "").strip().lstrip("#").lower()
        if t and t not in out:
            out.append(t)
    return out


def match_brand_tags(post: RawPost, terms: list[str]) -> list[str]:
    """Search terms that actually appear in the post's hashtags or caption."""
    hashtags = {h.lower() for h in post.hashtags}
    caption = (post.caption or "").lower()
    return [t for t in terms if t in hashtags or t in caption]


def apply_classification(item: ContentItem, result: Classification) -> None:
    item.sentiment_score = result.sentiment_score
    item.quality_score = result.quality_score
    item.category = result.category
    item.brand_safety = result.brand_safety
    item.tags = result.tags
    item.classification_status = ClassificationStatus.classified.value
    item.classified_at = datetime.now(timezone.utc)


def mark_unclassified(item: ContentItem) -> None:
    item.sentiment_score = 0.0
    item.quality_score = 0.0
    item.classification_status = ClassificationStatus.unclassified.value


async def _classify_or_default(item: ContentItem, classifier: ContentClassifier | None) -> bool:
    if classifier is None or not item.media_url:
        mark_unclassified(item)
        return False
    try:
        result = await classifier.classify(item.media_url, item.caption)
    except ExternalServiceFailure as exc:
        logger.warning(f"[content_store] classify {item.platform}/{item.platform_content_id} failed: {exc.message}")
        mark_unclassified(item)
        return False
    apply_classification(item, result)
    return True


def _build_item(post: RawPost, *, terms: list[str], source: str) -> ContentItem:
    now = datetime.now(timezone.utc)
    return ContentItem(
        platform=post.platform,
        platform_content_id=post.external_id,
        author_username=post.author_username,
        author_follower_count=post.author_follower_count,
        author_verified=post.author_verified,
        media_url=post.media_url,
        thumbnail_url=post.thumbnail_url,
        media_type=post.media_type,
        duration=post.duration,
        caption=post.caption,
        hashtags=list(dict.fromkeys(h.lower() for h in post.hashtags)),
        location=post.location,
        posted_at=post.posted_at,
        likes=post.likes,
        comments=post.comments,
        shares=post.shares,
        views=post.views,
        brand_tags=match_brand_tags(post, terms),
        rights_status=INITIAL_RIGHTS_BY_SOURCE.get(source, RightsStatus.unknown.value),
        source=source,
        search_terms=terms,
        raw_data=post.raw,
        discovered_at=now,
        created_at=now,
        updated_at=now,
    )


def _refresh_engagement(item: ContentItem, post: RawPost, terms: list[str]) -> None:
    # Scrapers sometimes return stale counts; keep the highest seen.
    item.likes = max(item.likes or 0, post.likes)
    item.comments = max(item.comments or 0, post.comments)
    item.shares = max(item.shares or 0, post.shares)
    item.views = max(item.views or 0, post.views)
    if post.author_follower_count is not None:
        item.author_follower_count = post.author_follower_count
    merged = list(item.search_terms or [])
    for t in terms:
        if t not in merged:
            merged.append(t)
    item.search_terms = merged
    item.updated_at = datetime.now(timezone.utc)


async def _find_existing(session: AsyncSession, platform: str, external_id: str) -> ContentItem | None:
    return await session.scalar(
        select(ContentItem).where(
            ContentItem.platform == platform,
            ContentItem.platform_content_id == external_id,
        )
    )


async def ingest_posts(
    session: AsyncSession,
    posts: list[RawPost],
    *,
    search_terms: list[str] | None = None,
    platforms: list[str] | None = None,
    source: str = "search",
    classifier: ContentClassifier | None = None,
    classify: bool = True,
) -> IngestReport:
    """Persist raw posts as ContentItems and return what happened to each."""
    report = IngestReport()
    terms = _normalize_terms(search_terms)
    allowed = {p.lower() for p in platforms} if platforms else None
    if classify and classifier is None:
        classifier = get_classifier()
    seen: set[tuple[str, str]] = set()

    for post in posts:
        key = (post.platform, post.external_id)
        if post.platform not in PLATFORMS or (allowed and post.platform not in allowed):
            report.skipped += 1
            continue
        if key in seen:
            report.skipped += 1
            continue
        seen.add(key)

        try:
            existing = await _find_existing(session, *key)
            if existing:
                _refresh_engagement(existing, post, terms)
                session.add(existing)
                await session.commit()
                report.updated_ids.append(existing.id)
                continue

            item = _build_item(post, terms=terms, source=source)
            classified = await _classify_or_default(item, classifier if classify else None)
            if not classified:
                report.unclassified += 1
            session.add(item)
            await session.commit()
            report.created_ids.append(item.id)
        except IntegrityError:
            # Inserted concurrently by an overlapping discovery run.
            await session.rollback()
            report.skipped += 1
            logger.info(f"[content_store] {key[0]}/{key[1]} already stored by a concurrent run")
        except SQLAlchemyError as exc:
            await session.rollback()
            report.failed += 1
            logger.error(f"[content_store] failed to store {key[0]}/{key[1]}: {exc}")

    logger.info(
        f"[content_store] ingest: created={len(report.created_ids)} updated={len(report.updated_ids)} "
        f"skipped={report.skipped} failed={report.failed} unclassified={report.unclassified}"
    )
    return report


async def discover(
    session: AsyncSession,
    *,
    hashtags: list[str] | None = None,
    keywords: list[str] | None = None,
    platforms: list[str] | None = None,
    limit: int = 20,
    provider: DiscoveryProvider | None = None,
    classifier: ContentClassifier | None = None,
) -> IngestReport:
    """Search each platform and ingest whatever came back.

    A platform that fails is recorded in `platform_errors` and skipped.
    """
    provider = provider or get_discovery_provider()
    terms = [*(hashtags or []), *(keywords or [])]
    platforms = platforms or [Platform.instagram.value]

    posts: list[RawPost] = []
    errors: dict[str, str] = {}
    for platform in platforms:
        try:
            found = await provider.search(platform, terms, limit)
        except ExternalServiceFailure as exc:
            logger.warning(f"[content_store] discovery on {platform} failed: {exc.message} {exc.details}")
            errors[platform] = exc.message
            continue
        posts.extend(found)

    report = await ingest_posts(
        session,
        posts,
        search_terms=terms,
        platforms=platforms,
        source="search",
        classifier=classifier,
    )
    report.platform_errors = errors
    return report


async def get_content(session: AsyncSession, content_id: int) -> ContentItem:
    item = await session.get(ContentItem, content_id)
    if not item:
        raise NotFound("Content not found", content_id=content_id)
    return item


async def list_content(
    session: AsyncSession,
    *,
    platform: str | None = None,
    rights_status: str | None = None,
    classification_status: str | None = None,
    min_quality: float | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[ContentItem], int]:
    q = select(ContentItem)
    count_q = select(func.count(ContentItem.id))
    filters = []
    if platform:
        filters.append(ContentItem.platform == platform.lower())
    if rights_status:
        filters.append(ContentItem.rights_status == rights_status.lower())
    if classification_status:
        filters.append(ContentItem.classification_status == classification_status.lower())
    if min_quality is not None:
        filters.append(ContentItem.quality_score >= min_quality)
    if filters:
        q = q.where(*filters)
        count_q = count_q.where(*filters)

    q = q.order_by(ContentItem.discovered_at.desc(), ContentItem.id.desc()).limit(limit).offset(offset)
    res = await session.execute(q)
    total = await session.scalar(count_q)
    return list(res.scalars().all()), total or 0


async def reclassify(
    session: AsyncSession,
    content_id: int,
    classifier: ContentClassifier | None = None,
) -> ContentItem:
    """Run the classifier again for one item. Failures propagate and leave the row unchanged."""
    item = await get_content(session, content_id)
    if not item.media_url:
        raise ExternalServiceFailure("Content has no media url to classify", content_id=content_id)
    classifier = classifier or get_classifier()
    result = await classifier.classify(item.media_url, item.caption)
    apply_classification(item, result)
    item.updated_at = datetime.now(timezone.utc)
    session.add(item)
    await session.commit()
    logger.info(f"[content_store] content {content_id} reclassified: {result.category}/{result.sentiment}")
    return item
