"""
Derived-asset API: submit auto-edit, voiceover and hotspot jobs and poll them.

Submissions answer 202 with the job in `processing`; clients poll the GET
endpoints until the job is `completed` or `failed`.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .schemas import EditCreate, EditRead, HotspotJobRead, VoiceoverCreate, VoiceoverRead
from .services import derived_assets
from .services.derived_assets import AssetKind

router = APIRouter(prefix="/api/ugc", tags=["ugc-assets"])


# ============ Edits ============

@router.post("/content/{content_id}/edits", response_model=EditRead, status_code=status.HTTP_202_ACCEPTED)
async def submit_edit(content_id: int, payload: EditCreate, session: AsyncSession = Depends(get_session)):
    return await derived_assets.submit_edit(session, content_id, payload.changes, edit_type=payload.edit_type)


@router.get("/content/{content_id}/edits", response_model=list[EditRead])
async def list_edits(content_id: int, session: AsyncSession = Depends(get_session)):
    return await derived_assets.list_jobs(session, AssetKind.edit, content_id)


@router.get("/edits/{job_id}", response_model=EditRead)
async def get_edit(job_id: int, session: AsyncSession = Depends(get_session)):
    return await derived_assets.get_job(session, AssetKind.edit, job_id)


# ============ Voiceovers ============

@router.post("/content/{content_id}/voiceovers", response_model=VoiceoverRead, status_code=status.HTTP_202_ACCEPTED)
async def submit_voiceover(content_id: int, payload: VoiceoverCreate, session: AsyncSession = Depends(get_session)):
    return await derived_assets.submit_voiceover(
        session,
        content_id,
        script=payload.script,
        voice_type=payload.voice_type,
        language=payload.language,
    )


@router.get("/content/{content_id}/voiceovers", response_model=list[VoiceoverRead])
async def list_voiceovers(content_id: int, session: AsyncSession = Depends(get_session)):
    return await derived_assets.list_jobs(session, AssetKind.voiceover, content_id)


@router.get("/voiceovers/{job_id}", response_model=VoiceoverRead)
async def get_voiceover(job_id: int, session: AsyncSession = Depends(get_session)):
    return await derived_assets.get_job(session, AssetKind.voiceover, job_id)


# ============ Hotspots ============

@router.post("/content/{content_id}/hotspots", response_model=HotspotJobRead, status_code=status.HTTP_202_ACCEPTED)
async def submit_hotspots(content_id: int, session: AsyncSession = Depends(get_session)):
    return await derived_assets.submit_hotspots(session, content_id)


@router.get("/content/{content_id}/hotspots", response_model=list[HotspotJobRead])
async def list_hotspot_jobs(content_id: int, session: AsyncSession = Depends(get_session)):
    return await derived_assets.list_jobs(session, AssetKind.hotspots, content_id)


@router.get("/hotspots/{job_id}", response_model=HotspotJobRead)
async def get_hotspot_job(job_id: int, session: AsyncSession = Depends(get_session)):
    return await derived_assets.get_job(session, AssetKind.hotspots, job_id)
