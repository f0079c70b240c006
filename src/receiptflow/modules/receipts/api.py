from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from receiptflow.api.deps import get_current_user
from receiptflow.core.db import db_session
from receiptflow.core.logging import get_logger, log_event
from receiptflow.modules.conversion.api import result_out
from receiptflow.modules.conversion.schemas import ConversionResultOut
from receiptflow.modules.conversion.service import ConversionStatus, convert_receipt
from receiptflow.modules.extraction.service import record_ocr_result
from receiptflow.modules.identity.models import User
from receiptflow.modules.receipts.models import ReceiptStatus
from receiptflow.modules.receipts.schemas import OcrResultIn, ReceiptCreateIn, ReceiptOut
from receiptflow.modules.receipts.service import (
    create_receipt,
    get_receipt_for_user,
    list_ready_receipts,
    list_receipts,
    reanalyze_receipt,
)
from receiptflow.worker.tasks import convert_receipt_task, process_receipt_ocr_task

router = APIRouter(tags=["receipts"])
logger = get_logger(__name__)


def _enqueue_ocr(receipt_id: uuid.UUID) -> None:
    async_result = process_receipt_ocr_task.delay(str(receipt_id))
    log_event(
        logger,
        "celery.task.enqueued",
        task_name="process_receipt_ocr",
        celery_task_id=getattr(async_result, "id", None),
        receipt_id=str(receipt_id),
    )


@router.post("/receipts", response_model=ReceiptOut)
def create_receipt_endpoint(
    payload: ReceiptCreateIn,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> ReceiptOut:
    receipt = create_receipt(session, owner=user, image_url=payload.image_url)
    _enqueue_ocr(receipt.id)
    session.refresh(receipt)
    return ReceiptOut.model_validate(receipt, from_attributes=True)


@router.get("/receipts", response_model=list[ReceiptOut])
def list_receipts_endpoint(
    status_filter: ReceiptStatus | None = None,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> list[ReceiptOut]:
    receipts = list_receipts(session, user=user, status_filter=status_filter)
    return [ReceiptOut.model_validate(r, from_attributes=True) for r in receipts]


@router.get("/receipts/ready", response_model=list[ReceiptOut])
def list_ready_receipts_endpoint(
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> list[ReceiptOut]:
    receipts = list_ready_receipts(session, owner_id=user.id)
    return [ReceiptOut.model_validate(r, from_attributes=True) for r in receipts]


@router.get("/receipts/{receipt_id}", response_model=ReceiptOut)
def get_receipt_endpoint(
    receipt_id: uuid.UUID,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> ReceiptOut:
    receipt = get_receipt_for_user(session, receipt_id=receipt_id, user=user)
    return ReceiptOut.model_validate(receipt, from_attributes=True)


@router.put("/receipts/{receipt_id}/ocr", response_model=ReceiptOut)
def record_ocr_result_endpoint(
    receipt_id: uuid.UUID,
    payload: OcrResultIn,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> ReceiptOut:
    receipt = get_receipt_for_user(session, receipt_id=receipt_id, user=user)
    receipt = record_ocr_result(session, receipt=receipt, payload=payload.payload)
    if receipt.status in {ReceiptStatus.PROCESSED, ReceiptStatus.PROCESSED_WITH_WARNINGS}:
        async_result = convert_receipt_task.delay(str(receipt.id))
        log_event(
            logger,
            "celery.task.enqueued",
            task_name="convert_receipt",
            celery_task_id=getattr(async_result, "id", None),
            receipt_id=str(receipt.id),
        )
        session.refresh(receipt)
    return ReceiptOut.model_validate(receipt, from_attributes=True)


@router.post("/receipts/{receipt_id}/reanalyze", response_model=ReceiptOut)
def reanalyze_receipt_endpoint(
    receipt_id: uuid.UUID,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> ReceiptOut:
    receipt = get_receipt_for_user(session, receipt_id=receipt_id, user=user)
    receipt = reanalyze_receipt(session, receipt=receipt)
    _enqueue_ocr(receipt.id)
    session.refresh(receipt)
    return ReceiptOut.model_validate(receipt, from_attributes=True)


@router.post("/receipts/{receipt_id}/convert", response_model=ConversionResultOut)
def convert_receipt_endpoint(
    receipt_id: uuid.UUID,
    currency: str | None = None,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> ConversionResultOut:
    receipt = get_receipt_for_user(session, receipt_id=receipt_id, user=user)
    result = convert_receipt(session, receipt_id=receipt.id, currency=currency, owner_id=user.id)
    if result.status == ConversionStatus.NO_OCR:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return result_out(result)
