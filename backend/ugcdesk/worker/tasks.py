"""
Celery tasks.

assets.process_job runs one derived-asset job to its terminal state;
ugc.discover runs one discovery pass. Both run their async service code in a
new event loop via asyncio.run() with a fresh engine per invocation.
"""
from __future__ import annotations

import asyncio
import logging

from ugcdesk.worker.celery_app import celery_app

logger = logging.getLogger(__name__)


def _get_async_db_url() -> str:
    from ugcdesk.settings import get_settings
    return get_settings().async_database_url


async def _process_asset_job_async(kind: str, job_id: int) -> dict:
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from ugcdesk.errors import NotFound
    from ugcdesk.services.derived_assets import process_job

    engine = create_async_engine(_get_async_db_url(), echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with session_factory() as session:
            try:
                job = await process_job(session, kind, job_id)
            except NotFound as e:
                return {"error": e.message, "job_id": job_id}
            logger.info(f"[worker] {kind} job {job_id} finished: {job.status}")
            return {"job_id": job.id, "kind": kind, "status": job.status, "error": job.error_message}
    finally:
        await engine.dispose()


@celery_app.task(bind=True, name="assets.process_job", queue="assets")
def process_asset_job(self, kind: str, job_id: int) -> dict:
    """Single attempt: a provider failure is recorded on the job, not retried."""
    logger.info(f"[worker] Starting {kind} job {job_id} (celery_id={self.request.id})")
    try:
        return asyncio.run(_process_asset_job_async(kind, job_id))
    except Exception as e:
        logger.error(f"[worker] {kind} job {job_id} error: {e}")
        raise


async def _run_discovery_async(**kwargs) -> dict:
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from ugcdesk.services import dispatch

    engine = create_async_engine(_get_async_db_url(), echo=False)
    try:
        return await dispatch.run_discovery_now(
            session_factory=async_sessionmaker(engine, expire_on_commit=False), **kwargs
        )
    finally:
        await engine.dispose()


@celery_app.task(
    bind=True,
    name="ugc.discover",
    autoretry_for=(ConnectionError,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
    queue="discovery",
)
def run_discovery(
    self,
    hashtags: list[str] | None = None,
    keywords: list[str] | None = None,
    platforms: list[str] | None = None,
    limit: int | None = None,
) -> dict:
    logger.info(f"[worker] Starting discovery (celery_id={self.request.id}, attempt={self.request.retries + 1})")
    result = asyncio.run(
        _run_discovery_async(hashtags=hashtags, keywords=keywords, platforms=platforms, limit=limit)
    )
    logger.info(f"[worker] Discovery finished: {result}")
    return result
