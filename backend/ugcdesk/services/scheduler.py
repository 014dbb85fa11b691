"""
Scheduler Service

Runs periodic UGC discovery with the configured hashtags/keywords.

Single-leader election via Postgres advisory locks:
- Only the instance that acquires the lock executes the tick
- Other instances silently skip
- Controlled by SCHEDULER_ENABLED env (default: true)

On non-Postgres databases (local SQLite) every instance runs the tick.
"""
from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ugcdesk.settings import get_settings

logger = logging.getLogger("scheduler")

# Advisory lock key (arbitrary int64, unique per job type)
LOCK_DISCOVERY = 910_001


class SchedulerService:
    """Periodic discovery runner with advisory-lock leader election."""

    _instance: "SchedulerService | None" = None

    def __init__(self):
        self.scheduler = AsyncIOScheduler()
        self._session_factory: async_sessionmaker | None = None
        self._running = False

    @classmethod
    def get_instance(cls) -> "SchedulerService":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def configure(self, database_url: str):
        engine = create_async_engine(database_url, echo=False)
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async def _get_session(self) -> AsyncSession:
        if not self._session_factory:
            self.configure(get_settings().async_database_url)
        return self._session_factory()

    async def _try_advisory_lock(self, session: AsyncSession, lock_key: int) -> bool:
        """Non-blocking session-level lock; released explicitly or when the connection closes."""
        if not get_settings().is_postgres:
            return True
        result = await session.execute(text(f"SELECT pg_try_advisory_lock({lock_key})"))
        return bool(result.scalar())

    async def _release_advisory_lock(self, session: AsyncSession, lock_key: int):
        if not get_settings().is_postgres:
            return
        await session.execute(text(f"SELECT pg_advisory_unlock({lock_key})"))

    def start(self):
        settings = get_settings()
        if not settings.scheduler_enabled:
            logger.info("Scheduler DISABLED by SCHEDULER_ENABLED=false, skipping start")
            return
        if self._running:
            return

        self.scheduler.add_job(
            self._run_discovery,
            IntervalTrigger(minutes=settings.discovery_interval_minutes),
            id="ugc_discovery",
            name="Discover UGC for configured search terms",
            replace_existing=True,
        )
        self.scheduler.start()
        self._running = True
        logger.info(f"Scheduler started (discovery every {settings.discovery_interval_minutes} min)")

    def stop(self):
        if not self._running:
            return
        self.scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Scheduler stopped")

    async def _run_discovery(self):
        """Discovery tick. Protected by advisory lock: one instance executes per tick."""
        settings = get_settings()
        if not settings.discovery_hashtags and not settings.discovery_keywords:
            logger.debug("[discovery] No search terms configured, skipping tick")
            return None

        async with await self._get_session() as session:
            acquired = await self._try_advisory_lock(session, LOCK_DISCOVERY)
            if not acquired:
                logger.debug("[discovery] Advisory lock not acquired, another instance is leader")
                return None
            try:
                logger.info("[discovery] LEADER, running scheduled discovery")
                from ugcdesk.services.dispatch import enqueue_discovery, run_discovery_now

                if settings.celery_enabled:
                    return {"celery_id": enqueue_discovery()}
                return await run_discovery_now()
            finally:
                await self._release_advisory_lock(session, LOCK_DISCOVERY)


scheduler_service = SchedulerService.get_instance()
