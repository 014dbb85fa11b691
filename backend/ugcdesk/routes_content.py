"""
Content API: browse stored UGC, ingest posts directly, trigger discovery and
re-run classification.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .schemas import (
    ContentListResponse,
    ContentRead,
    DiscoverAccepted,
    DiscoverRequest,
    IngestRequest,
    IngestResponse,
)
from .services import content_store
from .services.discovery import RawPost
from .services.dispatch import enqueue_discovery

router = APIRouter(prefix="/api/ugc", tags=["ugc-content"])


@router.get("/content", response_model=ContentListResponse)
async def list_content(
    session: AsyncSession = Depends(get_session),
    platform: Optional[str] = Query(None),
    rights_status: Optional[str] = Query(None),
    classification_status: Optional[str] = Query(None),
    min_quality: Optional[float] = Query(None, ge=0, le=10),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    items, total = await content_store.list_content(
        session,
        platform=platform,
        rights_status=rights_status,
        classification_status=classification_status,
        min_quality=min_quality,
        limit=limit,
        offset=offset,
    )
    return ContentListResponse(
        items=[ContentRead.model_validate(i) for i in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/content/{content_id}", response_model=ContentRead)
async def get_content(content_id: int, session: AsyncSession = Depends(get_session)):
    return await content_store.get_content(session, content_id)


@router.post("/content/ingest", response_model=IngestResponse)
async def ingest_content(payload: IngestRequest, session: AsyncSession = Depends(get_session)):
    """Store posts handed in by a partner integration or an operator."""
    posts = [
        RawPost(
            platform=p.platform.value,
            external_id=p.external_id,
            author_username=p.author_username,
            author_follower_count=p.author_follower_count,
            author_verified=p.author_verified,
            caption=p.caption,
            media_url=p.media_url,
            thumbnail_url=p.thumbnail_url,
            media_type=p.media_type.value,
            duration=p.duration,
            hashtags=p.hashtags,
            location=p.location,
            likes=p.likes,
            comments=p.comments,
            shares=p.shares,
            views=p.views,
            posted_at=p.posted_at,
            raw=p.model_dump(mode="json"),
        )
        for p in payload.posts
    ]
    report = await content_store.ingest_posts(
        session,
        posts,
        search_terms=payload.search_terms,
        source=payload.source,
        classify=payload.classify,
    )
    return report.to_dict()


@router.post("/discover", response_model=DiscoverAccepted, status_code=status.HTTP_202_ACCEPTED)
async def discover_content(payload: DiscoverRequest):
    """Start a discovery run in the background and return immediately."""
    platforms = [p.value for p in payload.platforms]
    celery_id = enqueue_discovery(
        hashtags=payload.hashtags,
        keywords=payload.keywords,
        platforms=platforms,
        limit=payload.limit,
    )
    return DiscoverAccepted(
        celery_id=celery_id,
        hashtags=payload.hashtags,
        keywords=payload.keywords,
        platforms=platforms,
    )


@router.post("/content/{content_id}/classify", response_model=ContentRead)
async def classify_content(content_id: int, session: AsyncSession = Depends(get_session)):
    return await content_store.reclassify(session, content_id)
