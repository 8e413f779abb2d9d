from celery import Celery

from src.core.config import settings

celery_app: Celery = Celery("moderation_worker", broker=settings.REDIS_URL, backend=settings.REDIS_URL)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_default_retry_delay=60,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_ignore_result=True,
)

# Auto-discover tasks from modules
celery_app.autodiscover_tasks(["src.modules.moderation"])
