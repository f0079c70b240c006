from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from receiptflow.core.db import SessionLocal
from receiptflow.modules.expenses.models import Expense, ExpenseItem
from receiptflow.modules.extraction.normalizer import ReceiptFields
from receiptflow.modules.receipts.models import Receipt, ReceiptStatus
from receiptflow.modules.receipts.service import create_receipt, list_ready_receipts
from receiptflow.modules.receipts.status import (
    InvalidStatusTransition,
    can_transition,
    transition_receipt,
)

S = ReceiptStatus


def _payload(total=7.25, date_value="2024-05-01") -> dict:
    return {
        "documents": [
            {
                "fields": {
                    "MerchantName": {"value": "Tim Hortons", "confidence": 0.98},
                    "TransactionDate": {"value": date_value, "confidence": 0.9},
                    "Total": {"value": total, "confidence": 0.99},
                }
            }
        ]
    }


@pytest.mark.parametrize(
    ("from_status", "to_status", "allowed"),
    [
        (S.UPLOADED, S.PROCESSING, True),
        (S.UPLOADED, S.EXPENSE_CREATED, False),
        (S.PROCESSING, S.PROCESSED, True),
        (S.PROCESSING, S.PROCESSED_WITH_WARNINGS, True),
        (S.PROCESSING, S.FAILED, True),
        (S.PROCESSED, S.PROCESSING, False),
        (S.PROCESSED, S.EXPENSE_CREATED, True),
        (S.PROCESSED, S.EXPENSE_CREATION_FAILED, True),
        (S.EXPENSE_CREATION_FAILED, S.EXPENSE_CREATED, True),
        (S.EXPENSE_CREATED, S.PROCESSED, False),
        (S.EXPENSE_CREATED, S.UPLOADED, True),
        (S.FAILED, S.UPLOADED, True),
    ],
)
def test_transition_graph(from_status, to_status, allowed):
    assert can_transition(from_status, to_status) is allowed


def test_illegal_transition_raises_and_same_status_is_noop():
    with SessionLocal() as session:
        receipt = create_receipt(session, owner=None, image_url="https://img.example.com/a.jpg")

        transition_receipt(session, receipt=receipt, to_status=S.UPLOADED, reason="noop")
        assert receipt.status == S.UPLOADED

        with pytest.raises(InvalidStatusTransition) as exc:
            transition_receipt(session, receipt=receipt, to_status=S.EXPENSE_CREATED, reason="skip")
        assert exc.value.from_status == S.UPLOADED
        assert receipt.status == S.UPLOADED


def test_record_ocr_result_sets_processed():
    from receiptflow.modules.extraction.service import record_ocr_result

    with SessionLocal() as session:
        receipt = create_receipt(session, owner=None, image_url="https://img.example.com/a.jpg")
        receipt = record_ocr_result(session, receipt=receipt, payload=_payload())

        assert receipt.status == S.PROCESSED
        assert receipt.raw_ocr_json == _payload()
        assert receipt.processed_at is not None
        assert receipt.ocr_warnings == []


def test_record_ocr_result_with_soft_fallback_sets_warnings():
    from receiptflow.modules.extraction.service import record_ocr_result

    with SessionLocal() as session:
        receipt = create_receipt(session, owner=None, image_url="https://img.example.com/a.jpg")
        receipt = record_ocr_result(session, receipt=receipt, payload=_payload(date_value="??"))

        assert receipt.status == S.PROCESSED_WITH_WARNINGS
        assert len(receipt.ocr_warnings) == 1


def test_record_ocr_result_without_documents_fails_receipt():
    from receiptflow.modules.extraction.service import record_ocr_result

    with SessionLocal() as session:
        receipt = create_receipt(session, owner=None, image_url="https://img.example.com/a.jpg")
        receipt = record_ocr_result(session, receipt=receipt, payload={"documents": []})

        assert receipt.status == S.FAILED
        assert receipt.error_message == "No documents found in OCR data"


def test_record_ocr_result_rejects_processed_receipt():
    from receiptflow.modules.extraction.service import record_ocr_result

    with SessionLocal() as session:
        receipt = create_receipt(session, owner=None, image_url="https://img.example.com/a.jpg")
        record_ocr_result(session, receipt=receipt, payload=_payload())

        with pytest.raises(HTTPException) as exc:
            record_ocr_result(session, receipt=receipt, payload=_payload())
        assert exc.value.status_code == 409


def test_reanalyze_resets_receipt_and_removes_expense():
    from receiptflow.modules.expenses.service import create_expense_from_fields
    from receiptflow.modules.extraction.service import record_ocr_result
    from receiptflow.modules.receipts.service import reanalyze_receipt

    with SessionLocal() as session:
        receipt = create_receipt(session, owner=None, image_url="https://img.example.com/a.jpg")
        record_ocr_result(session, receipt=receipt, payload=_payload())
        create_expense_from_fields(
            session,
            receipt=receipt,
            fields=ReceiptFields(merchant_name="Tim Hortons", total=Decimal("7.25")),
            currency="USD",
        )
        transition_receipt(session, receipt=receipt, to_status=S.EXPENSE_CREATED, reason="test")
        session.commit()

        receipt = reanalyze_receipt(session, receipt=receipt)

        assert receipt.status == S.UPLOADED
        assert receipt.raw_ocr_json is None
        assert receipt.processed_at is None
        assert session.scalar(select(Expense).where(Expense.receipt_id == receipt.id)) is None
        assert list(session.scalars(select(ExpenseItem))) == []

        stored_null = session.scalar(select(Receipt).where(Receipt.raw_ocr_json.is_(None)))
        assert stored_null is not None and stored_null.id == receipt.id
        assert list_ready_receipts(session) == []
