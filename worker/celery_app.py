from celery import Celery

from koda.core.config import settings

# Tasks are registered through `include`; importing them here would be circular.
celery = Celery(
    "koda-worker",
    broker=settings.rabbitmq_url,
    backend=settings.redis_url,
    include=["worker.tasks"],
)

celery.conf.update(
    task_serializer="json",
    accept_content=["json"],
    task_acks_late=True,
    task_ignore_result=True,
    worker_prefetch_multiplier=1,
    # events are best effort; a stale one is not worth delivering
    task_time_limit=30,
    task_default_queue="default",
    task_routes={
        "worker.tasks.deliver_realtime_event": {"queue": "realtime"},
    },
    broker_connection_retry_on_startup=True,
)
