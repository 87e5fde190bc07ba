from celery import Celery

from app.config import settings

celery_app = Celery(
    "imgdraw",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.beat_schedule = {
    "midjourney-sync": {
        "task": "midjourney_sync",
        "schedule": float(settings.midjourney_sync_interval_seconds),
    },
}

@celery_app.task(name="execute_draw")
def execute_draw(image_id: str) -> str | None:
    from app.wiring import build_executor
    status = build_executor().execute(image_id)
    return status.value if status else None

@celery_app.task(name="midjourney_sync")
def midjourney_sync() -> int:
    from app.wiring import build_reconciler
    return build_reconciler().sync()
