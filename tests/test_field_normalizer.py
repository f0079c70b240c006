from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from receiptflow.modules.extraction.normalizer import (
    NoReceiptDocumentsError,
    normalize_receipt,
    normalize_transaction_date,
    parse_amount,
    parse_date,
)


def _doc(fields: dict) -> dict:
    return {"documents": [{"docType": "receipt.retailMeal", "fields": fields}]}


def test_normalize_sdk_shape():
    payload = _doc(
        {
            "MerchantName": {"value": "Corner Cafe", "confidence": 0.97},
            "TransactionDate": {"value": "12/31/2024", "confidence": 0.9},
            "Subtotal": {"value": 9.0, "confidence": 0.9},
            "TotalTax": {"value": 1.17, "confidence": 0.9},
            "Total": {"value": 10.17, "confidence": 0.95},
            "Items": {
                "values": [
                    {
                        "properties": {
                            "Description": {"value": "Latte", "confidence": 0.9},
                            "Quantity": {"value": 2, "confidence": 0.9},
                            "Price": {"value": 4.5, "confidence": 0.9},
                        }
                    },
                    {"properties": {"Description": {"value": "  ", "confidence": 0.9}}},
                    {"properties": {"TotalPrice": {"value": 3.0, "confidence": 0.9}}},
                ]
            },
        }
    )

    normalized = normalize_receipt(payload)
    fields = normalized.fields

    assert fields.merchant_name == "Corner Cafe"
    assert fields.transaction_date == date(2024, 12, 31)
    assert fields.subtotal == Decimal("9.0")
    assert fields.tax == Decimal("1.17")
    assert fields.total == Decimal("10.17")
    assert len(fields.items) == 1
    item = fields.items[0]
    assert item.description == "Latte"
    assert item.quantity == Decimal("2")
    assert item.unit_price == Decimal("4.5")
    assert item.total_price == Decimal("9")
    assert normalized.warnings == []
    assert not normalized.has_warnings


def test_normalize_rest_shape_with_currency():
    payload = {
        "analyzeResult": {
            "documents": [
                {
                    "fields": {
                        "MerchantName": {"type": "string", "valueString": "Maple Diner"},
                        "TransactionDate": {"type": "date", "valueDate": "2024-03-02"},
                        "Total": {
                            "type": "currency",
                            "valueCurrency": {"amount": 12.5, "currencyCode": "cad"},
                        },
                        "Items": {
                            "type": "array",
                            "valueArray": [
                                {
                                    "type": "object",
                                    "valueObject": {
                                        "Description": {"valueString": "Pancakes"},
                                        "TotalPrice": {
                                            "valueCurrency": {"amount": 10, "currencyCode": "CAD"}
                                        },
                                        "Quantity": {"valueNumber": 4},
                                    },
                                }
                            ],
                        },
                    }
                }
            ]
        }
    }

    fields = normalize_receipt(payload).fields

    assert fields.merchant_name == "Maple Diner"
    assert fields.transaction_date == date(2024, 3, 2)
    assert fields.total == Decimal("12.5")
    assert fields.currency_code == "CAD"
    assert fields.items[0].total_price == Decimal("10")
    assert fields.items[0].unit_price == Decimal("2.5")


def test_missing_fields_are_none():
    fields = normalize_receipt(_doc({})).fields

    assert fields.merchant_name is None
    assert fields.transaction_date is None
    assert fields.total is None
    assert fields.subtotal is None
    assert fields.tax is None
    assert fields.items == ()


def test_tax_falls_back_to_tax_field():
    fields = normalize_receipt(_doc({"Tax": {"value": "2.05"}})).fields
    assert fields.tax == Decimal("2.05")


def test_tip_and_merchant_contact_are_normalized():
    fields = normalize_receipt(
        _doc(
            {
                "Tip": {"value": "$3.00"},
                "MerchantAddress": {
                    "type": "address",
                    "valueAddress": {"road": "Main St", "houseNumber": "12"},
                    "content": " 12 Main St, Springfield ",
                },
                "MerchantPhoneNumber": {"type": "phoneNumber", "valuePhoneNumber": "+15551234567"},
            }
        )
    ).fields

    assert fields.tip == Decimal("3.00")
    assert fields.merchant_address == "12 Main St, Springfield"
    assert fields.merchant_phone == "+15551234567"


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        {},
        {"documents": []},
        {"documents": "nope"},
        {"analyzeResult": {"documents": []}},
    ],
)
def test_unrecognized_shapes_raise_no_documents(payload):
    with pytest.raises(NoReceiptDocumentsError):
        normalize_receipt(payload)


def test_low_confidence_fields_are_kept_and_flagged():
    normalized = normalize_receipt(
        _doc(
            {
                "MerchantName": {"value": "Blurry Bistro", "confidence": 0.31},
                "Total": {"value": 20, "confidence": 0.99},
            }
        )
    )

    assert normalized.fields.merchant_name == "Blurry Bistro"
    assert [f.name for f in normalized.low_confidence] == ["MerchantName"]
    assert normalized.low_confidence[0].confidence == pytest.approx(0.31)
    assert not normalized.has_warnings


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("12/31/2024", date(2024, 12, 31)),
        ("2024-01-05T00:00:00Z", date(2024, 1, 5)),
        ("2024-01-05", date(2024, 1, 5)),
        ("31/12/2024", date(2024, 12, 31)),
        ("03/04/2024", date(2024, 3, 4)),
        ("12/31/2024 10:30", date(2024, 12, 31)),
        ("Dec 15, 2024", date(2024, 12, 15)),
        ("15 December 2024", date(2024, 12, 15)),
        ("13/13/2024", None),
        ("not a date", None),
        ("", None),
    ],
)
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected


def test_unparseable_date_falls_back_to_today_with_warning():
    today = date(2026, 1, 15)

    parsed, warning = normalize_transaction_date("garbled", today=today)
    assert parsed == today
    assert warning and "garbled" in warning

    normalized = normalize_receipt(
        _doc({"TransactionDate": {"value": "garbled"}, "Total": {"value": 5}}), today=today
    )
    assert normalized.fields.transaction_date == today
    assert normalized.has_warnings


def test_absent_date_has_no_warning():
    assert normalize_transaction_date(None) == (None, None)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (7.25, Decimal("7.25")),
        (3, Decimal("3")),
        ("$1,234.50", Decimal("1234.50")),
        ("12,50", Decimal("12.50")),
        ("USD 8.00", Decimal("8.00")),
        ("-4.00", Decimal("-4.00")),
        ("12.34.56", Decimal("12.34")),
        ("abc", None),
        ("", None),
        (None, None),
        (True, None),
        (float("nan"), None),
        (float("inf"), None),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected
