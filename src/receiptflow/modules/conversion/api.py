from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from receiptflow.api.deps import get_current_user, require_webhook_secret
from receiptflow.core.db import db_session
from receiptflow.modules.conversion.schemas import (
    BacklogSummaryOut,
    BulkConvertIn,
    BulkSummaryOut,
    ConversionResultOut,
)
from receiptflow.modules.conversion.service import (
    BacklogSummary,
    BulkSummary,
    ConversionResult,
    convert_bulk,
    handle_receipt_event,
)
from receiptflow.modules.identity.models import User

router = APIRouter(tags=["conversion"])


def result_out(result: ConversionResult) -> ConversionResultOut:
    return ConversionResultOut(
        receipt_id=result.receipt_id,
        status=result.status,
        success=result.success,
        expense_id=result.expense_id,
        items_created=result.items_created,
        items_failed=result.items_failed,
        violations=result.violations,
        warnings=result.warnings,
        error=result.error,
    )


def _backlog_out(summary: BacklogSummary) -> BacklogSummaryOut:
    return BacklogSummaryOut(
        selected=summary.selected,
        inserted=summary.inserted,
        skipped=summary.skipped,
        no_ocr=summary.no_ocr,
        failed=summary.failed,
        results=[result_out(r) for r in summary.results],
    )


def _bulk_out(summary: BulkSummary) -> BulkSummaryOut:
    return BulkSummaryOut(
        total=summary.total,
        successful=summary.successful,
        failed=summary.failed,
        results=[result_out(r) for r in summary.results],
    )


@router.post(
    "/conversions/events",
    response_model=ConversionResultOut | BacklogSummaryOut,
    dependencies=[Depends(require_webhook_secret)],
)
def receipt_event_endpoint(
    body: dict[str, Any] | None = Body(default=None),
    session: Session = Depends(db_session),
) -> ConversionResultOut | BacklogSummaryOut:
    outcome = handle_receipt_event(session, body=body or {})
    if isinstance(outcome, BacklogSummary):
        return _backlog_out(outcome)
    return result_out(outcome)


@router.post("/conversions/bulk", response_model=BulkSummaryOut)
def bulk_convert_endpoint(
    payload: BulkConvertIn,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> BulkSummaryOut:
    summary = convert_bulk(
        session, receipt_ids=payload.receipt_ids, currency=payload.currency, owner_id=user.id
    )
    return _bulk_out(summary)
