"""Celery tasks.

Importing the package loads the Celery app so shared tasks enqueued from the
API process use the configured broker.
"""

from knowledge_engine.celery_app import app as celery_app

__all__ = ["celery_app"]
