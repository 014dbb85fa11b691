"""
Derived-asset jobs: auto-edit, voiceover and hotspot detection.

submit_* creates the job row in `processing`, commits, hands the id to a
dispatcher and returns immediately. process_job performs the single attempt
against the enhancement provider and writes the terminal state. Jobs never
touch InboxItem status or ContentItem.rights_status.

Submissions are not deduplicated: two identical requests yield two jobs.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ugcdesk.errors import NotFound
from ugcdesk.models import ContentEdit, ContentItem, ContentVoiceover, HotspotJob, JobStatus
from ugcdesk.services import redis_semaphore
from ugcdesk.services.enhancers import (
    DEFAULT_EDIT_CHANGES,
    EditResult,
    HotspotResult,
    VoiceoverResult,
    default_script,
    get_edit_provider,
    get_hotspot_detector,
    get_voiceover_provider,
)
from ugcdesk.services.notify import notify_warn
from ugcdesk.settings import get_settings

logger = logging.getLogger(__name__)


class AssetKind(str, Enum):
    edit = "edit"
    voiceover = "voiceover"
    hotspots = "hotspots"


JOB_MODELS: dict[AssetKind, type] = {
    AssetKind.edit: ContentEdit,
    AssetKind.voiceover: ContentVoiceover,
    AssetKind.hotspots: HotspotJob,
}

AssetJob = ContentEdit | ContentVoiceover | HotspotJob
Dispatcher = Callable[[AssetKind, int], None]


def _default_dispatcher() -> Dispatcher:
    from ugcdesk.services.dispatch import enqueue_asset_job
    return enqueue_asset_job


async def _require_content(session: AsyncSession, content_id: int) -> ContentItem:
    content = await session.get(ContentItem, content_id)
    if not content:
        raise NotFound("Content not found", content_id=content_id)
    return content


async def _submit(session: AsyncSession, kind: AssetKind, job: AssetJob, dispatch: Dispatcher | None) -> AssetJob:
    session.add(job)
    await session.commit()
    logger.info(f"[assets] {kind.value} job {job.id} submitted for content {job.content_id}")

    dispatch = dispatch or _default_dispatcher()
    try:
        dispatch(kind, job.id)
    except Exception as e:
        # Broker unreachable: the job would otherwise sit in processing forever.
        logger.error(f"[assets] Failed to dispatch {kind.value} job {job.id}: {e}")
        _mark_failed(kind, job, f"dispatch failed: {e}")
        session.add(job)
        await session.commit()
    return job


async def submit_edit(
    session: AsyncSession,
    content_id: int,
    options: dict[str, Any] | None = None,
    *,
    edit_type: str = "auto_enhancement",
    dispatch: Dispatcher | None = None,
) -> ContentEdit:
    await _require_content(session, content_id)
    job = ContentEdit(
        content_id=content_id,
        edit_type=edit_type,
        changes=dict(options) if options else dict(DEFAULT_EDIT_CHANGES),
        status=JobStatus.processing.value,
        created_at=datetime.now(timezone.utc),
    )
    return await _submit(session, AssetKind.edit, job, dispatch)


async def submit_voiceover(
    session: AsyncSession,
    content_id: int,
    *,
    script: str | None = None,
    voice_type: str | None = None,
    language: str | None = None,
    dispatch: Dispatcher | None = None,
) -> ContentVoiceover:
    content = await _require_content(session, content_id)
    job = ContentVoiceover(
        content_id=content_id,
        script=script or default_script(content),
        voice_type=voice_type or "energetic",
        language=language or "en",
        status=JobStatus.processing.value,
        created_at=datetime.now(timezone.utc),
    )
    return await _submit(session, AssetKind.voiceover, job, dispatch)


async def submit_hotspots(
    session: AsyncSession,
    content_id: int,
    *,
    dispatch: Dispatcher | None = None,
) -> HotspotJob:
    await _require_content(session, content_id)
    job = HotspotJob(
        content_id=content_id,
        status=JobStatus.processing.value,
        created_at=datetime.now(timezone.utc),
    )
    return await _submit(session, AssetKind.hotspots, job, dispatch)


def _mark_failed(kind: AssetKind, job: AssetJob, reason: str) -> None:
    job.status = JobStatus.failed.value
    job.error_message = reason[:1000]
    job.completed_at = datetime.now(timezone.utc)
    if kind == AssetKind.edit:
        job.output_url = None
        job.enhancements = None
    elif kind == AssetKind.voiceover:
        job.audio_url = None
        job.duration = None
    else:
        job.hotspots = None


def _mark_completed(kind: AssetKind, job: AssetJob, result: EditResult | VoiceoverResult | HotspotResult) -> None:
    if kind == AssetKind.edit:
        job.output_url = result.output_url
        job.enhancements = result.enhancements
    elif kind == AssetKind.voiceover:
        job.audio_url = result.audio_url
        job.duration = result.duration
    else:
        job.hotspots = result.hotspots
    job.status = JobStatus.completed.value
    job.error_message = None
    job.completed_at = datetime.now(timezone.utc)


async def _run_provider(kind: AssetKind, job: AssetJob, content: ContentItem):
    if kind == AssetKind.edit:
        return await get_edit_provider().edit(content, job.changes or {}, job_id=job.id)
    if kind == AssetKind.voiceover:
        return await get_voiceover_provider().synthesize(
            job.script, voice_type=job.voice_type, language=job.language, job_id=job.id
        )
    return await get_hotspot_detector().detect(content, job_id=job.id)


async def process_job(session: AsyncSession, kind: AssetKind | str, job_id: int) -> AssetJob:
    """Run one job to its terminal state. Provider errors end up on the job row."""
    kind = AssetKind(kind)
    settings = get_settings()
    job = await get_job(session, kind, job_id)
    if job.status != JobStatus.processing.value:
        logger.info(f"[assets] {kind.value} job {job_id} already {job.status}, skipping")
        return job

    content = await session.get(ContentItem, job.content_id)
    error: str | None = None
    if not content:
        error = f"content {job.content_id} no longer exists"
    else:
        timeout = settings.asset_job_timeout_sec
        try:
            if settings.serialize_asset_jobs_per_content:
                async with redis_semaphore.hold(f"asset:{content.id}"):
                    result = await asyncio.wait_for(_run_provider(kind, job, content), timeout=timeout)
            else:
                result = await asyncio.wait_for(_run_provider(kind, job, content), timeout=timeout)
        except asyncio.TimeoutError:
            error = f"timed out after {timeout}s"
        except Exception as e:
            error = f"{type(e).__name__}: {e}"

    if error:
        _mark_failed(kind, job, error)
        logger.warning(f"[assets] {kind.value} job {job_id} failed: {error}")
    else:
        _mark_completed(kind, job, result)
        logger.info(f"[assets] {kind.value} job {job_id} completed")

    session.add(job)
    await session.commit()

    if error:
        await notify_warn(f"{kind.value} job failed", {"job_id": job_id, "content_id": job.content_id, "error": error})
    return job


async def get_job(session: AsyncSession, kind: AssetKind | str, job_id: int) -> AssetJob:
    kind = AssetKind(kind)
    job = await session.get(JOB_MODELS[kind], job_id)
    if not job:
        raise NotFound(f"{kind.value} job not found", job_id=job_id)
    return job


async def list_jobs(session: AsyncSession, kind: AssetKind | str, content_id: int) -> list[AssetJob]:
    kind = AssetKind(kind)
    await _require_content(session, content_id)
    model = JOB_MODELS[kind]
    res = await session.execute(
        select(model).where(model.content_id == content_id).order_by(model.created_at.desc(), model.id.desc())
    )
    return list(res.scalars().all())
