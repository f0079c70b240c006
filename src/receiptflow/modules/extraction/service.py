from __future__ import annotations

import time
import uuid
from datetime import timedelta
from typing import Any

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from receiptflow.core.config import settings
from receiptflow.core.db import SessionLocal
from receiptflow.core.logging import get_logger, log_event, monotonic_ms
from receiptflow.core.models import utcnow
from receiptflow.modules.extraction.normalizer import (
    NoReceiptDocumentsError,
    NormalizedReceipt,
    normalize_receipt,
)
from receiptflow.modules.extraction.ocr import OCRProviderError, analyze_receipt
from receiptflow.modules.receipts.models import Receipt, ReceiptStatus
from receiptflow.modules.receipts.status import transition_receipt

logger = get_logger(__name__)


def process_receipt_ocr(*, receipt_id: str) -> ReceiptStatus | None:
    """
    Run OCR for one uploaded receipt and record the outcome.

    Returns the receipt's status afterwards, or ``None`` when the receipt does
    not exist or another worker already owns it.
    """
    with SessionLocal() as session:
        receipt = session.scalar(select(Receipt).where(Receipt.id == uuid.UUID(receipt_id)))
        if not receipt:
            return None

        start = time.monotonic()
        log_event(
            logger,
            "ocr.start",
            receipt_id=str(receipt.id),
            receipt_status=receipt.status.value,
        )
        if not _try_start_ocr(session=session, receipt=receipt):
            log_event(
                logger,
                "ocr.skipped",
                receipt_id=str(receipt.id),
                receipt_status=receipt.status.value,
            )
            return receipt.status

        try:
            payload = analyze_receipt(receipt.image_url)
        except OCRProviderError as e:
            transition_receipt(
                session, receipt=receipt, to_status=ReceiptStatus.FAILED, reason="ocr_provider_error"
            )
            receipt.error_message = str(e)
            receipt.processed_at = utcnow()
            session.add(receipt)
            session.commit()
            log_event(
                logger,
                "ocr.finish",
                receipt_id=str(receipt.id),
                status=receipt.status.value,
                error=str(e),
                duration_ms=monotonic_ms(start),
            )
            return receipt.status

        mark_ocr_complete(session, receipt=receipt, payload=payload)
        session.commit()
        log_event(
            logger,
            "ocr.finish",
            receipt_id=str(receipt.id),
            status=receipt.status.value,
            warnings=len(receipt.ocr_warnings or []),
            duration_ms=monotonic_ms(start),
        )
        return receipt.status


def _try_start_ocr(*, session: Session, receipt: Receipt) -> bool:
    prev_status = receipt.status
    stale_before = utcnow() - timedelta(minutes=settings.processing_stale_minutes)
    result = session.execute(
        update(Receipt)
        .where(
            Receipt.id == receipt.id,
            (
                (Receipt.status == ReceiptStatus.UPLOADED)
                | (
                    (Receipt.status == ReceiptStatus.PROCESSING)
                    & (Receipt.updated_at < stale_before)
                )
            ),
        )
        .values(status=ReceiptStatus.PROCESSING, error_message=None, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        return False
    session.commit()
    session.refresh(receipt)
    log_event(
        logger,
        "receipt.status.changed",
        receipt_id=str(receipt.id),
        from_status=prev_status.value,
        to_status=ReceiptStatus.PROCESSING.value,
        reason="ocr_started",
    )
    return True


def mark_ocr_complete(
    session: Session, *, receipt: Receipt, payload: Any
) -> NormalizedReceipt | None:
    """
    Store an OCR payload and move the receipt out of ``processing``.

    Unparseable payloads fail the receipt; soft fallbacks during normalization
    land it in ``processed_with_warnings``. The caller commits.
    """
    if receipt.status == ReceiptStatus.UPLOADED:
        transition_receipt(
            session, receipt=receipt, to_status=ReceiptStatus.PROCESSING, reason="ocr_result"
        )
    receipt.raw_ocr_json = payload
    receipt.processed_at = receipt.processed_at or utcnow()

    try:
        normalized = normalize_receipt(payload)
    except NoReceiptDocumentsError as e:
        receipt.error_message = str(e)
        receipt.ocr_warnings = []
        transition_receipt(
            session, receipt=receipt, to_status=ReceiptStatus.FAILED, reason="ocr_no_documents"
        )
        return None

    receipt.error_message = None
    receipt.ocr_warnings = list(normalized.warnings)
    to_status = (
        ReceiptStatus.PROCESSED_WITH_WARNINGS if normalized.has_warnings else ReceiptStatus.PROCESSED
    )
    transition_receipt(session, receipt=receipt, to_status=to_status, reason="ocr_complete")
    return normalized


def record_ocr_result(session: Session, *, receipt: Receipt, payload: dict[str, Any]) -> Receipt:
    """Attach an externally produced OCR payload to a receipt awaiting OCR or whose OCR failed."""
    if receipt.status == ReceiptStatus.FAILED:
        transition_receipt(
            session, receipt=receipt, to_status=ReceiptStatus.UPLOADED, reason="ocr_result_retry"
        )
    if receipt.status not in {ReceiptStatus.UPLOADED, ReceiptStatus.PROCESSING}:
        raise HTTPException(
            status_code=409,
            detail=f"Receipt already processed (status {receipt.status.value}); reanalyze first",
        )
    mark_ocr_complete(session, receipt=receipt, payload=payload)
    session.commit()
    session.refresh(receipt)
    return receipt
