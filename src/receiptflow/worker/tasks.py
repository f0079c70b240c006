from __future__ import annotations

# Ensure all models are registered before any task runs
# isort: off
import receiptflow.models  # noqa: F401
# isort: on

import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from receiptflow.core.db import SessionLocal
from receiptflow.core.logging import (
    get_logger,
    log_event,
    log_exception,
    monotonic_ms,
    reset_task_context,
    set_task_context,
)
from receiptflow.modules.receipts.models import ReceiptStatus
from receiptflow.worker.celery_app import celery_app

logger = get_logger(__name__)


@contextmanager
def _traced(task, task_name: str, **fields: Any) -> Iterator[dict[str, Any]]:
    """
    Bind the celery task id and emit start/finish/error events around a task body.

    The yielded dict is merged into the finish event.
    """
    task_id = getattr(task.request, "id", None)
    token = set_task_context(task_id)
    start = time.monotonic()
    log_event(logger, "celery.task.start", task_name=task_name, **fields)
    outcome: dict[str, Any] = {}
    try:
        yield outcome
    except Exception:
        log_exception(
            logger,
            "celery.task.error",
            task_name=task_name,
            duration_ms=monotonic_ms(start),
            **fields,
        )
        raise
    else:
        log_event(
            logger,
            "celery.task.finish",
            task_name=task_name,
            duration_ms=monotonic_ms(start),
            **fields,
            **outcome,
        )
    finally:
        reset_task_context(token)


def _enqueue_conversion(receipt_id: str) -> None:
    async_result = convert_receipt_task.delay(receipt_id)
    log_event(
        logger,
        "celery.task.enqueued",
        task_name="convert_receipt",
        celery_task_id=getattr(async_result, "id", None),
        receipt_id=receipt_id,
    )


@celery_app.task(name="process_receipt_ocr", bind=True)
def process_receipt_ocr_task(self, receipt_id: str) -> str | None:
    from receiptflow.modules.extraction.service import process_receipt_ocr

    with _traced(self, "process_receipt_ocr", receipt_id=receipt_id) as outcome:
        status = process_receipt_ocr(receipt_id=receipt_id)
        outcome["receipt_status"] = status.value if status else None

    if status in {ReceiptStatus.PROCESSED, ReceiptStatus.PROCESSED_WITH_WARNINGS}:
        _enqueue_conversion(receipt_id)
    return status.value if status else None


@celery_app.task(name="convert_receipt", bind=True)
def convert_receipt_task(self, receipt_id: str, currency: str | None = None) -> str:
    from receiptflow.modules.conversion.service import convert_receipt

    with _traced(self, "convert_receipt", receipt_id=receipt_id) as outcome:
        with SessionLocal() as session:
            result = convert_receipt(session, receipt_id=uuid.UUID(receipt_id), currency=currency)
        outcome["conversion_status"] = result.status.value
    return result.status.value


@celery_app.task(name="record_category_correction", bind=True, ignore_result=True)
def record_category_correction_task(
    self,
    owner_id: str | None,
    merchant_name: str | None,
    suggested_category_id: str | None,
    actual_category_id: str,
) -> None:
    from receiptflow.modules.categories.service import record_category_correction

    with _traced(self, "record_category_correction", owner_id=owner_id) as outcome:
        outcome["stored"] = record_category_correction(
            owner_id=owner_id,
            merchant_name=merchant_name,
            suggested_category_id=suggested_category_id,
            actual_category_id=actual_category_id,
        )
