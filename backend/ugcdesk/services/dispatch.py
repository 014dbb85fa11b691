"""
Hand-off of long-running work to Celery, or to in-process background tasks
when CELERY_ENABLED is off.

Background tasks open their own session: the request session is closed by
the time they run.
"""
from __future__ import annotations

import asyncio
import logging

from ugcdesk.settings import get_settings

logger = logging.getLogger(__name__)

# Strong references so pending background tasks are not garbage-collected.
_background_tasks: set[asyncio.Task] = set()


def _spawn(coro) -> asyncio.Task:
    task = asyncio.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


def enqueue_asset_job(kind, job_id: int) -> None:
    kind = getattr(kind, "value", kind)
    settings = get_settings()
    if settings.celery_enabled:
        from ugcdesk.worker.tasks import process_asset_job

        result = process_asset_job.apply_async(args=[kind, job_id], queue="assets")
        logger.info(f"[dispatch] {kind} job {job_id} enqueued to Celery (celery_id={result.id})")
        return
    _spawn(_process_asset_job_background(kind, job_id))
    logger.info(f"[dispatch] {kind} job {job_id} started in background")


async def _process_asset_job_background(kind: str, job_id: int) -> None:
    from ugcdesk.db import AsyncSessionLocal
    from ugcdesk.services.derived_assets import process_job

    try:
        async with AsyncSessionLocal() as session:
            job = await process_job(session, kind, job_id)
            logger.info(f"[dispatch] {kind} job {job_id} finished: {job.status}")
    except Exception as e:
        logger.error(f"[dispatch] Background {kind} job {job_id} crashed: {e}", exc_info=True)


def enqueue_discovery(
    *,
    hashtags: list[str] | None = None,
    keywords: list[str] | None = None,
    platforms: list[str] | None = None,
    limit: int | None = None,
) -> str | None:
    """Start a discovery run without waiting for it. Returns the Celery id when queued."""
    settings = get_settings()
    kwargs = {"hashtags": hashtags, "keywords": keywords, "platforms": platforms, "limit": limit}
    if settings.celery_enabled:
        from ugcdesk.worker.tasks import run_discovery

        result = run_discovery.apply_async(kwargs=kwargs, queue="discovery")
        logger.info(f"[dispatch] discovery enqueued to Celery (celery_id={result.id})")
        return result.id
    _spawn(run_discovery_now(**kwargs))
    logger.info("[dispatch] discovery started in background")
    return None


async def run_discovery_now(
    *,
    hashtags: list[str] | None = None,
    keywords: list[str] | None = None,
    platforms: list[str] | None = None,
    limit: int | None = None,
    session_factory=None,
) -> dict:
    """One discovery pass in a fresh session, falling back to configured search terms."""
    if session_factory is None:
        from ugcdesk.db import AsyncSessionLocal as session_factory
    from ugcdesk.services.content_store import discover
    from ugcdesk.services.notify import notify_error, notify_warn

    settings = get_settings()
    hashtags = hashtags if hashtags is not None else settings.discovery_hashtags
    keywords = keywords if keywords is not None else settings.discovery_keywords
    platforms = platforms or settings.discovery_platforms
    limit = limit or settings.discovery_default_limit

    if not hashtags and not keywords:
        logger.info("[dispatch] discovery skipped: no hashtags or keywords configured")
        return {"skipped": True, "reason": "no search terms"}

    try:
        async with session_factory() as session:
            report = await discover(
                session, hashtags=hashtags, keywords=keywords, platforms=platforms, limit=limit
            )
    except Exception as e:
        logger.error(f"[dispatch] discovery run failed: {e}", exc_info=True)
        await notify_error("Discovery run failed", {"error": str(e)[:300]})
        return {"error": str(e)}

    if report.platform_errors:
        await notify_warn("Discovery platform errors", report.platform_errors)
    return report.to_dict()
