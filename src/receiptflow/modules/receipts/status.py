"""
Receipt lifecycle.

    uploaded -> processing -> processed | processed_with_warnings | failed
    processed | processed_with_warnings -> expense_created | expense_creation_failed
    failed | expense_creation_failed -> expense_created

A receipt only moves forward along these edges. The one way back is an explicit
reset to ``uploaded`` (reanalyze), which is allowed from every state.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from receiptflow.core.logging import get_logger, log_event
from receiptflow.modules.receipts.models import Receipt, ReceiptStatus

logger = get_logger(__name__)

_S = ReceiptStatus

ALLOWED_TRANSITIONS: dict[ReceiptStatus, frozenset[ReceiptStatus]] = {
    _S.UPLOADED: frozenset({_S.PROCESSING}),
    _S.PROCESSING: frozenset({_S.PROCESSED, _S.PROCESSED_WITH_WARNINGS, _S.FAILED}),
    _S.PROCESSED: frozenset({_S.EXPENSE_CREATED, _S.EXPENSE_CREATION_FAILED}),
    _S.PROCESSED_WITH_WARNINGS: frozenset({_S.EXPENSE_CREATED, _S.EXPENSE_CREATION_FAILED}),
    _S.FAILED: frozenset({_S.EXPENSE_CREATED}),
    _S.EXPENSE_CREATION_FAILED: frozenset({_S.EXPENSE_CREATED}),
    _S.EXPENSE_CREATED: frozenset(),
}


class InvalidStatusTransition(ValueError):
    def __init__(self, from_status: ReceiptStatus, to_status: ReceiptStatus) -> None:
        super().__init__(f"Receipt cannot move from {from_status.value} to {to_status.value}")
        self.from_status = from_status
        self.to_status = to_status


def can_transition(from_status: ReceiptStatus, to_status: ReceiptStatus) -> bool:
    if to_status == ReceiptStatus.UPLOADED:
        return True
    return to_status in ALLOWED_TRANSITIONS[from_status]


def transition_receipt(
    session: Session,
    *,
    receipt: Receipt,
    to_status: ReceiptStatus,
    reason: str,
) -> Receipt:
    """Move ``receipt`` to ``to_status``; the caller commits."""
    prev_status = receipt.status
    if prev_status == to_status:
        return receipt
    if not can_transition(prev_status, to_status):
        raise InvalidStatusTransition(prev_status, to_status)
    receipt.status = to_status
    session.add(receipt)
    log_event(
        logger,
        "receipt.status.changed",
        receipt_id=str(receipt.id),
        from_status=prev_status.value,
        to_status=to_status.value,
        reason=reason,
    )
    return receipt
