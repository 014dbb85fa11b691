"""
Analytics summary and user feedback.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .schemas import FeedbackCreate, FeedbackRead
from .services import analytics

router = APIRouter(prefix="/api/ugc", tags=["ugc-analytics"])


@router.get("/analytics")
async def get_analytics(
    session: AsyncSession = Depends(get_session),
    platform: Optional[str] = Query(None),
    rights_status: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None, description="Discovered at or after (ISO 8601)"),
    date_to: Optional[datetime] = Query(None, description="Discovered at or before (ISO 8601)"),
):
    return await analytics.compute_analytics(
        session,
        platform=platform,
        rights_status=rights_status,
        date_from=date_from,
        date_to=date_to,
    )


@router.post("/feedback", response_model=FeedbackRead, status_code=status.HTTP_201_CREATED)
async def post_feedback(payload: FeedbackCreate, session: AsyncSession = Depends(get_session)):
    return await analytics.record_feedback(
        session,
        payload.rating,
        comment=payload.comment,
        user_id=payload.user_id,
        content_id=payload.content_id,
        context=payload.context,
    )


@router.get("/feedback", response_model=list[FeedbackRead])
async def list_feedback(
    session: AsyncSession = Depends(get_session),
    content_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
):
    return await analytics.list_feedback(session, content_id=content_id, limit=limit)
