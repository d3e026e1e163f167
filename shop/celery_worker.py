# shop/celery_worker.py
from celery import Celery

from shop.utils import settings

celery_app = Celery(
    "shop",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

# tasks are imported explicitly so the worker registers them
celery_app.conf.imports = (
    "shop.tasks.expire",
    "shop.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "expire-carts-every-10-minutes": {
        "task": "shop.tasks.expire.expire_carts_task",
        "schedule": 600.0,
    },
}

celery_app.conf.timezone = "UTC"

# dev and tests: run .delay() inline, no broker needed
celery_app.conf.task_always_eager = settings.CELERY_TASK_ALWAYS_EAGER
celery_app.conf.task_eager_propagates = settings.CELERY_TASK_ALWAYS_EAGER
