import os

from celery import Celery
from celery.schedules import crontab
from celery.utils.log import get_task_logger

from .context import build_context
from .database import SessionLocal
from .ordering import sweep_field_order
from .registry import DynamicFieldRegistry

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "memory://")
celery_app = Celery("dynamic_fields", broker=CELERY_BROKER_URL)
celery_app.conf.task_always_eager = (
    CELERY_BROKER_URL == "memory://" or os.getenv("TESTING") == "1"
)

_logger = get_task_logger(__name__)


@celery_app.task
def sweep_field_order_job() -> dict:
    db = SessionLocal()
    try:
        registry = DynamicFieldRegistry(build_context(db))
        result = sweep_field_order(registry)
    finally:
        db.close()
    if result.reordered:
        _logger.info(
            "Field order sweep repaired %s collisions (orders %s)",
            result.reordered,
            result.duplicate_orders,
        )
    if result.remaining:
        _logger.warning("Field order sweep left duplicate orders %s", result.remaining)
    return result.model_dump()


def enqueue_sweep_field_order():
    if celery_app.conf.task_always_eager:
        return sweep_field_order_job()
    return sweep_field_order_job.delay()


celery_app.conf.beat_schedule = {
    "field-order-sweep": {
        "task": "dynamic_fields.tasks.sweep_field_order_job",
        "schedule": crontab(minute=0),
    },
}
