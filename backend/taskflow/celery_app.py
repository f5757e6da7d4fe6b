from celery import Celery
from taskflow.core.config import settings

celery_app = Celery(
    "taskflow",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["taskflow.tasks"],
)

celery_app.conf.beat_schedule = {
    "prune-refresh-tokens-hourly": {
        "task": "taskflow.tasks.prune_refresh_tokens",
        "schedule": 3600.0,
    }
}
