"""Celery application configuration."""

from celery import Celery

from knowledge_engine.config import get_settings

settings = get_settings()

# Create Celery app
app = Celery(
    "knowledge_engine",
    broker=settings.broker_url,
    backend=settings.result_backend,
    include=[
        "knowledge_engine.tasks.embedding",
    ],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=settings.celery.task_time_limit,
    task_soft_time_limit=settings.celery.task_soft_time_limit,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=3600,  # 1 hour
    task_default_queue=settings.celery.embeddings_queue,
    task_routes={
        "knowledge_engine.tasks.embedding.*": {"queue": settings.celery.embeddings_queue},
    },
)

if __name__ == "__main__":
    app.start()
