from __future__ import annotations

from decimal import Decimal

import pytest

from receiptflow.modules.extraction.normalizer import ReceiptFields, ReceiptItemFields
from receiptflow.modules.extraction.validation import validate_receipt_fields


@pytest.mark.parametrize(
    ("total", "is_valid"),
    [
        (Decimal("-1"), False),
        (Decimal("10001"), False),
        (Decimal("10000"), True),
        (Decimal("0"), True),
        (Decimal("7.25"), True),
    ],
)
def test_total_bounds(total, is_valid):
    assert validate_receipt_fields(ReceiptFields(total=total)).is_valid is is_valid


def test_missing_amount_is_rejected():
    result = validate_receipt_fields(ReceiptFields(merchant_name="Nowhere"))
    assert not result.is_valid
    assert result.violations == ["No total amount found in OCR data"]


def test_subtotal_alone_is_enough():
    assert validate_receipt_fields(ReceiptFields(subtotal=Decimal("5"))).is_valid


def test_negative_total_message():
    result = validate_receipt_fields(ReceiptFields(total=Decimal("-3")))
    assert "Total amount cannot be negative" in result.violations


def test_all_violations_are_collected():
    fields = ReceiptFields(
        total=Decimal("20000"),
        tax=Decimal("-1"),
        items=(
            ReceiptItemFields(description="ok", quantity=Decimal("1"), total_price=Decimal("2")),
            ReceiptItemFields(description="", quantity=Decimal("0"), total_price=Decimal("-2")),
        ),
    )

    result = validate_receipt_fields(fields)

    assert not result.is_valid
    assert any("unreasonably large" in v for v in result.violations)
    assert "Tax cannot be negative" in result.violations
    assert "Item 2 has no description" in result.violations
    assert "Item 2 quantity must be positive" in result.violations
    assert "Item 2 price cannot be negative" in result.violations
    assert not any(v.startswith("Item 1") for v in result.violations)


def test_custom_ceiling():
    fields = ReceiptFields(total=Decimal("150"))
    assert not validate_receipt_fields(fields, ceiling=Decimal("100")).is_valid
    assert validate_receipt_fields(fields, ceiling=Decimal("150")).is_valid
