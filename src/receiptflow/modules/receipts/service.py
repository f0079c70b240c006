from __future__ import annotations

import uuid

from fastapi import HTTPException, status
from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from receiptflow.core.logging import get_logger, log_event
from receiptflow.modules.expenses.models import Expense
from receiptflow.modules.expenses.service import delete_expense_for_receipt
from receiptflow.modules.identity.models import User
from receiptflow.modules.receipts.models import Receipt, ReceiptStatus
from receiptflow.modules.receipts.status import transition_receipt

logger = get_logger(__name__)


def create_receipt(session: Session, *, owner: User | None, image_url: str) -> Receipt:
    url = image_url.strip()
    if not url:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="image_url required")
    receipt = Receipt(
        owner_id=owner.id if owner else None,
        image_url=url,
        status=ReceiptStatus.UPLOADED,
        ocr_warnings=[],
    )
    session.add(receipt)
    session.commit()
    session.refresh(receipt)
    log_event(
        logger,
        "receipt.created",
        receipt_id=str(receipt.id),
        owner_id=str(receipt.owner_id) if receipt.owner_id else None,
    )
    return receipt


def get_receipt(session: Session, *, receipt_id: uuid.UUID) -> Receipt | None:
    return session.scalar(select(Receipt).where(Receipt.id == receipt_id))


def get_receipt_for_user(session: Session, *, receipt_id: uuid.UUID, user: User) -> Receipt:
    receipt = get_receipt(session, receipt_id=receipt_id)
    if not receipt:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Receipt not found")
    if receipt.owner_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")
    return receipt


def list_receipts(
    session: Session, *, user: User, status_filter: ReceiptStatus | None = None
) -> list[Receipt]:
    stmt = select(Receipt).where(Receipt.owner_id == user.id)
    if status_filter:
        stmt = stmt.where(Receipt.status == status_filter)
    return list(session.scalars(stmt.order_by(Receipt.created_at.desc())))


def _has_no_expense():
    return ~exists().where(Expense.receipt_id == Receipt.id)


def list_ready_receipts(
    session: Session, *, owner_id: uuid.UUID | None = None, limit: int | None = None
) -> list[Receipt]:
    """Receipts with an OCR payload and no Expense yet, newest first."""
    stmt = select(Receipt).where(Receipt.raw_ocr_json.is_not(None), _has_no_expense())
    if owner_id is not None:
        stmt = stmt.where(Receipt.owner_id == owner_id)
    stmt = stmt.order_by(Receipt.created_at.desc())
    if limit:
        stmt = stmt.limit(limit)
    return list(session.scalars(stmt))


def reanalyze_receipt(session: Session, *, receipt: Receipt) -> Receipt:
    """
    Reset a receipt so the pipeline runs again from OCR.

    The receipt's Expense, if any, is deleted first; otherwise the rerun would
    only ever report a duplicate.
    """
    removed = delete_expense_for_receipt(session, receipt_id=receipt.id)
    transition_receipt(session, receipt=receipt, to_status=ReceiptStatus.UPLOADED, reason="reanalyze")
    receipt.raw_ocr_json = None
    receipt.processed_at = None
    receipt.error_message = None
    receipt.ocr_warnings = []
    session.add(receipt)
    session.commit()
    session.refresh(receipt)
    log_event(
        logger,
        "receipt.reanalyze",
        receipt_id=str(receipt.id),
        expense_removed=removed,
    )
    return receipt
