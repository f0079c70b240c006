"""
Receipt-to-expense conversion.

One receipt at a time: normalize the stored OCR payload, validate it, suggest a
receipt-level category, materialize the Expense and advance the receipt status.
Batch entry points (backlog sweep, bulk list) call the single-receipt path once
per receipt and always return one result per receipt; a failure in one never
stops the others.
"""

from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from receiptflow.core.config import settings
from receiptflow.core.currencies import normalize_currency
from receiptflow.core.logging import (
    get_logger,
    log_event,
    log_exception,
    monotonic_ms,
    reset_receipt_context,
    set_receipt_context,
)
from receiptflow.core.models import utcnow
from receiptflow.modules.categories.service import CategoryBootstrapError, suggest_category
from receiptflow.modules.expenses.service import create_expense_from_fields, find_expense_for_receipt
from receiptflow.modules.extraction.normalizer import NoReceiptDocumentsError, normalize_receipt
from receiptflow.modules.extraction.service import mark_ocr_complete
from receiptflow.modules.extraction.validation import validate_receipt_fields
from receiptflow.modules.identity.service import preferred_currency_for
from receiptflow.modules.receipts.models import Receipt, ReceiptStatus
from receiptflow.modules.receipts.service import get_receipt, list_ready_receipts
from receiptflow.modules.receipts.status import can_transition, transition_receipt

logger = get_logger(__name__)


class ConversionStatus(str, enum.Enum):
    INSERTED = "inserted"
    SKIPPED = "skipped"
    NO_OCR = "no_ocr"
    NOT_FOUND = "not_found"
    VALIDATION_FAILED = "validation_failed"
    PERSISTENCE_FAILED = "persistence_failed"
    FAILED = "failed"


_SUCCESS_STATUSES = frozenset({ConversionStatus.INSERTED, ConversionStatus.SKIPPED})


@dataclass
class ConversionResult:
    receipt_id: str
    status: ConversionStatus
    expense_id: uuid.UUID | None = None
    items_created: int = 0
    items_failed: int = 0
    violations: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status in _SUCCESS_STATUSES


@dataclass
class BacklogSummary:
    selected: int = 0
    inserted: int = 0
    skipped: int = 0
    no_ocr: int = 0
    failed: int = 0
    results: list[ConversionResult] = field(default_factory=list)


@dataclass
class BulkSummary:
    total: int = 0
    successful: int = 0
    failed: int = 0
    results: list[ConversionResult] = field(default_factory=list)


def resolve_currency(
    session: Session,
    *,
    explicit: str | None,
    ocr_currency: str | None,
    owner_id: uuid.UUID | None,
) -> str:
    return (
        normalize_currency(explicit)
        or normalize_currency(ocr_currency)
        or preferred_currency_for(session, user_id=owner_id)
        or settings.default_currency
    )


def _move(session: Session, receipt: Receipt, to_status: ReceiptStatus, reason: str) -> None:
    if can_transition(receipt.status, to_status):
        transition_receipt(session, receipt=receipt, to_status=to_status, reason=reason)


def convert_receipt(
    session: Session,
    *,
    receipt_id: uuid.UUID,
    currency: str | None = None,
    owner_id: uuid.UUID | None = None,
) -> ConversionResult:
    """
    Run the whole pipeline for one receipt.

    ``owner_id`` restricts the lookup to that owner's receipts.
    """
    token = set_receipt_context(str(receipt_id))
    try:
        return _convert(session, receipt_id=receipt_id, currency=currency, owner_id=owner_id)
    finally:
        reset_receipt_context(token)


def _convert(
    session: Session,
    *,
    receipt_id: uuid.UUID,
    currency: str | None,
    owner_id: uuid.UUID | None,
) -> ConversionResult:
    start = time.monotonic()
    rid = str(receipt_id)
    receipt = get_receipt(session, receipt_id=receipt_id)
    if not receipt or (owner_id is not None and receipt.owner_id != owner_id):
        log_event(logger, "conversion.not_found", receipt_id=rid)
        return ConversionResult(receipt_id=rid, status=ConversionStatus.NOT_FOUND, error="Receipt not found")

    existing = find_expense_for_receipt(session, receipt_id=receipt.id)
    if existing:
        _move(session, receipt, ReceiptStatus.EXPENSE_CREATED, "expense_exists")
        session.commit()
        log_event(logger, "conversion.skipped", receipt_id=rid, expense_id=str(existing.id))
        return ConversionResult(receipt_id=rid, status=ConversionStatus.SKIPPED, expense_id=existing.id)

    if receipt.raw_ocr_json is None:
        log_event(logger, "conversion.no_ocr", receipt_id=rid, receipt_status=receipt.status.value)
        return ConversionResult(
            receipt_id=rid, status=ConversionStatus.NO_OCR, error="Receipt has no OCR data yet"
        )

    if receipt.status in {ReceiptStatus.UPLOADED, ReceiptStatus.PROCESSING}:
        mark_ocr_complete(session, receipt=receipt, payload=receipt.raw_ocr_json)
        session.commit()

    try:
        normalized = normalize_receipt(receipt.raw_ocr_json)
    except NoReceiptDocumentsError as e:
        receipt.error_message = str(e)
        _move(session, receipt, ReceiptStatus.EXPENSE_CREATION_FAILED, "ocr_no_documents")
        session.add(receipt)
        session.commit()
        log_event(logger, "conversion.failed", receipt_id=rid, error=str(e))
        return ConversionResult(receipt_id=rid, status=ConversionStatus.FAILED, error=str(e))

    fields = normalized.fields
    validation = validate_receipt_fields(fields)
    if not validation.is_valid:
        receipt.error_message = "; ".join(validation.violations)
        _move(session, receipt, ReceiptStatus.EXPENSE_CREATION_FAILED, "validation_failed")
        session.add(receipt)
        session.commit()
        log_event(
            logger,
            "conversion.validation_failed",
            receipt_id=rid,
            violations=validation.violations,
        )
        return ConversionResult(
            receipt_id=rid,
            status=ConversionStatus.VALIDATION_FAILED,
            violations=list(validation.violations),
            error="Validation failed",
        )

    warnings = list(normalized.warnings)
    resolved_currency = resolve_currency(
        session,
        explicit=currency,
        ocr_currency=fields.currency_code,
        owner_id=receipt.owner_id,
    )

    suggestion = None
    try:
        suggestion = suggest_category(
            session,
            owner_id=receipt.owner_id,
            merchant_name=fields.merchant_name,
            item_descriptions=[item.description for item in fields.items],
        )
        session.commit()
    except CategoryBootstrapError as e:
        warnings.append(str(e))
        log_event(logger, "conversion.category_unavailable", receipt_id=rid, error=str(e))

    created = create_expense_from_fields(
        session,
        receipt=receipt,
        fields=fields,
        currency=resolved_currency,
        category=suggestion,
    )
    if not created.success:
        log_event(
            logger,
            "conversion.persistence_failed",
            receipt_id=rid,
            error=created.error,
            duration_ms=monotonic_ms(start),
        )
        return ConversionResult(
            receipt_id=rid,
            status=ConversionStatus.PERSISTENCE_FAILED,
            warnings=warnings,
            error=created.error,
        )

    _move(session, receipt, ReceiptStatus.EXPENSE_CREATED, "expense_created")
    receipt.processed_at = receipt.processed_at or utcnow()
    receipt.error_message = None
    session.add(receipt)
    session.commit()

    status = ConversionStatus.SKIPPED if created.skipped else ConversionStatus.INSERTED
    log_event(
        logger,
        "conversion.finish",
        receipt_id=rid,
        status=status.value,
        expense_id=str(created.expense_id) if created.expense_id else None,
        items_created=created.items_created,
        items_failed=created.items_failed,
        currency=resolved_currency,
        duration_ms=monotonic_ms(start),
    )
    return ConversionResult(
        receipt_id=rid,
        status=status,
        expense_id=created.expense_id,
        items_created=created.items_created,
        items_failed=created.items_failed,
        warnings=warnings,
    )


def _convert_isolated(
    session: Session,
    *,
    receipt_id: uuid.UUID,
    currency: str | None,
    owner_id: uuid.UUID | None = None,
) -> ConversionResult:
    try:
        return convert_receipt(session, receipt_id=receipt_id, currency=currency, owner_id=owner_id)
    except Exception as e:
        session.rollback()
        log_exception(logger, "conversion.error", receipt_id=str(receipt_id))
        return ConversionResult(
            receipt_id=str(receipt_id), status=ConversionStatus.FAILED, error=str(e)
        )


def convert_backlog(
    session: Session, *, currency: str | None = None, limit: int | None = None
) -> BacklogSummary:
    start = time.monotonic()
    receipts = list_ready_receipts(session, limit=limit or settings.backlog_limit)
    receipt_ids = [r.id for r in receipts]
    summary = BacklogSummary(selected=len(receipt_ids))
    log_event(logger, "conversion.backlog.start", selected=summary.selected)

    for receipt_id in receipt_ids:
        result = _convert_isolated(session, receipt_id=receipt_id, currency=currency)
        summary.results.append(result)
        if result.status == ConversionStatus.INSERTED:
            summary.inserted += 1
        elif result.status == ConversionStatus.SKIPPED:
            summary.skipped += 1
        elif result.status == ConversionStatus.NO_OCR:
            summary.no_ocr += 1
        else:
            summary.failed += 1

    log_event(
        logger,
        "conversion.backlog.finish",
        selected=summary.selected,
        inserted=summary.inserted,
        skipped=summary.skipped,
        no_ocr=summary.no_ocr,
        failed=summary.failed,
        duration_ms=monotonic_ms(start),
    )
    return summary


def convert_bulk(
    session: Session,
    *,
    receipt_ids: list[str],
    currency: str | None = None,
    owner_id: uuid.UUID | None = None,
) -> BulkSummary:
    start = time.monotonic()
    summary = BulkSummary(total=len(receipt_ids))
    for raw_id in receipt_ids:
        try:
            receipt_id = uuid.UUID(str(raw_id))
        except ValueError:
            result = ConversionResult(
                receipt_id=str(raw_id), status=ConversionStatus.NOT_FOUND, error="Invalid receipt id"
            )
        else:
            result = _convert_isolated(
                session, receipt_id=receipt_id, currency=currency, owner_id=owner_id
            )
        summary.results.append(result)
        if result.success:
            summary.successful += 1
        else:
            summary.failed += 1

    log_event(
        logger,
        "conversion.bulk.finish",
        total=summary.total,
        successful=summary.successful,
        failed=summary.failed,
        duration_ms=monotonic_ms(start),
    )
    return summary


def receipt_id_from_event(body: Any) -> str | None:
    """Accept ``{"receipt_id": ...}``, ``{"record": {"id": ...}}`` or ``{"data": {"record": ...}}``."""
    if not isinstance(body, dict):
        return None
    if body.get("receipt_id"):
        return str(body["receipt_id"])
    record = body.get("record")
    if not isinstance(record, dict) and isinstance(body.get("data"), dict):
        record = body["data"].get("record")
    if isinstance(record, dict) and record.get("id"):
        return str(record["id"])
    return None


def handle_receipt_event(
    session: Session, *, body: Any, currency: str | None = None
) -> ConversionResult | BacklogSummary:
    raw_id = receipt_id_from_event(body)
    if raw_id is None:
        return convert_backlog(session, currency=currency)
    try:
        receipt_id = uuid.UUID(raw_id)
    except ValueError:
        return ConversionResult(
            receipt_id=raw_id, status=ConversionStatus.NOT_FOUND, error="Invalid receipt id"
        )
    return _convert_isolated(session, receipt_id=receipt_id, currency=currency)
