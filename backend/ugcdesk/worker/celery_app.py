"""
Celery application for derived-asset jobs and discovery runs.

Broker/backend: Redis (REDIS_URL env).
Queues: assets, discovery.
"""
from celery import Celery

from ugcdesk.settings import get_settings

settings = get_settings()

celery_app = Celery(
    "ugc_desk",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    # Hard limit sits above the per-job provider timeout so the job row gets a terminal state first.
    task_time_limit=settings.asset_job_timeout_sec + 120,
    task_soft_time_limit=settings.asset_job_timeout_sec + 60,
    task_default_queue="assets",
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    broker_transport_options={"visibility_timeout": 3600},
)

celery_app.autodiscover_tasks(["ugcdesk.worker"])
