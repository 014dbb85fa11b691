"""
Rights API: permission requests to creators and their resolution.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .schemas import RightsRequestCreate, RightsRequestRead, RightsResolve, RightsStatusRead
from .services import lifecycle

router = APIRouter(prefix="/api/ugc/content/{content_id}/rights", tags=["ugc-rights"])


@router.post("", response_model=RightsRequestRead, status_code=status.HTTP_201_CREATED)
async def request_rights(content_id: int, payload: RightsRequestCreate, session: AsyncSession = Depends(get_session)):
    return await lifecycle.request_rights(
        session,
        content_id,
        payload.brand_id,
        payload.terms,
        contact_email=payload.contact_email,
        message=payload.message,
    )


@router.get("", response_model=RightsStatusRead)
async def get_rights_status(content_id: int, session: AsyncSession = Depends(get_session)):
    return await lifecycle.get_rights_status(session, content_id)


@router.post("/resolve", response_model=RightsRequestRead)
async def resolve_rights(content_id: int, payload: RightsResolve, session: AsyncSession = Depends(get_session)):
    return await lifecycle.resolve_rights(session, content_id, payload.decision)


@router.get("/requests", response_model=list[RightsRequestRead])
async def list_rights_requests(content_id: int, session: AsyncSession = Depends(get_session)):
    return await lifecycle.list_rights_requests(session, content_id)
