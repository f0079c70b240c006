from __future__ import annotations

from celery import Celery

from receiptflow.core.config import settings


def make_celery() -> Celery:
    app = Celery("receiptflow", broker=settings.redis_url, backend=settings.redis_url)
    app.conf.update(
        task_always_eager=settings.environment in {"dev", "test"},
        task_eager_propagates=True,
        task_track_started=True,
        # Queues: ocr (provider-bound), conversion (database-bound).
        task_routes={
            "process_receipt_ocr": {"queue": "ocr"},
            "convert_receipt": {"queue": "conversion"},
            "record_category_correction": {"queue": "conversion"},
        },
        task_acks_late=True,
        worker_prefetch_multiplier=1,
    )
    app.autodiscover_tasks(["receiptflow.worker.tasks"])
    return app


celery_app = make_celery()
