"""
Inbox API: the human review queue.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .schemas import ContentRead, InboxCreate, InboxRead, InboxReadWithContent, InboxUpdate
from .services import lifecycle
from .services.content_store import get_content

router = APIRouter(prefix="/api/ugc/inbox", tags=["ugc-inbox"])


@router.get("", response_model=list[InboxReadWithContent])
async def list_inbox(
    session: AsyncSession = Depends(get_session),
    status: Optional[str] = Query(None, description="Filter by inbox status, 'all' for every status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    return await lifecycle.list_inbox(session, status, limit=limit, offset=offset, with_content=True)


@router.post("", response_model=InboxRead, status_code=status.HTTP_201_CREATED)
async def promote_to_inbox(payload: InboxCreate, response: Response, session: AsyncSession = Depends(get_session)):
    """Queue content for review. Returns 200 with the existing item if already queued."""
    item, created = await lifecycle.promote_to_inbox(session, payload.content_id)
    if not created:
        response.status_code = status.HTTP_200_OK
    return item


@router.get("/{inbox_id}", response_model=InboxReadWithContent)
async def get_inbox_item(inbox_id: int, session: AsyncSession = Depends(get_session)):
    item = await lifecycle.get_inbox_item(session, inbox_id)
    content = await get_content(session, item.content_id)
    return InboxReadWithContent(
        **InboxRead.model_validate(item).model_dump(),
        content=ContentRead.model_validate(content),
    )


@router.patch("/{inbox_id}", response_model=InboxRead)
async def update_inbox_item(inbox_id: int, payload: InboxUpdate, session: AsyncSession = Depends(get_session)):
    return await lifecycle.update_inbox_status(session, inbox_id, payload.status, payload.notes)
