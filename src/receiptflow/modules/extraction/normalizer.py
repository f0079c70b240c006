"""
Flatten a document-intelligence receipt tree into typed ``ReceiptFields``.

The provider answers with ``documents[0].fields``, every field shaped like
``{"value": ..., "confidence": 0.97}`` (SDK output) or with typed keys such as
``valueString`` / ``valueCurrency`` / ``valueArray`` (REST output). Both shapes
are read here. A missing or malformed field becomes ``None``; nothing in this
module raises for bad field content. Only a tree without any document is
rejected, with ``NoReceiptDocumentsError``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from receiptflow.core.config import settings
from receiptflow.core.currencies import normalize_currency
from receiptflow.core.logging import get_logger, log_event
from receiptflow.core.models import utc_today

logger = get_logger(__name__)

_TYPED_VALUE_KEYS = (
    "valueString",
    "valueNumber",
    "valueInteger",
    "valueDate",
    "valueTime",
    "valuePhoneNumber",
    "valueCountryRegion",
    "valueCurrency",
)

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_NUMERIC_DATE_RE = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4})(?:[T ].*)?$")
_TEXT_DATE_FORMATS = ("%b %d, %Y", "%B %d, %Y", "%b %d %Y", "%B %d %Y", "%d %b %Y", "%d %B %Y")
_COMMA_DECIMAL_RE = re.compile(r",\d{1,2}$")
_LEADING_NUMBER_RE = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")


class NoReceiptDocumentsError(ValueError):
    pass


@dataclass(frozen=True)
class ReceiptItemFields:
    description: str | None
    quantity: Decimal | None = Decimal("1")
    unit_price: Decimal | None = None
    total_price: Decimal | None = None


@dataclass(frozen=True)
class ReceiptFields:
    merchant_name: str | None = None
    transaction_date: date | None = None
    subtotal: Decimal | None = None
    tax: Decimal | None = None
    total: Decimal | None = None
    items: tuple[ReceiptItemFields, ...] = ()
    tip: Decimal | None = None
    currency_code: str | None = None
    merchant_address: str | None = None
    merchant_phone: str | None = None


@dataclass(frozen=True)
class LowConfidenceField:
    name: str
    confidence: float
    value: Any


@dataclass
class NormalizedReceipt:
    fields: ReceiptFields
    warnings: list[str] = field(default_factory=list)
    low_confidence: list[LowConfidenceField] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


def normalize_receipt(payload: Any, *, today: date | None = None) -> NormalizedReceipt:
    fields = _first_document_fields(payload)
    warnings: list[str] = []
    low_confidence: list[LowConfidenceField] = []

    def _track(name: str, raw: Any) -> Any:
        confidence = field_confidence(raw)
        if confidence is not None and confidence < settings.low_confidence_threshold:
            low_confidence.append(
                LowConfidenceField(name=name, confidence=confidence, value=field_value(raw))
            )
        return raw

    merchant_name = text_field(_track("MerchantName", fields.get("MerchantName")))
    raw_date = text_field(_track("TransactionDate", fields.get("TransactionDate")))
    transaction_date, date_warning = normalize_transaction_date(raw_date, today=today)
    if date_warning:
        warnings.append(date_warning)
        log_event(logger, "normalize.date_fallback", raw_value=raw_date)

    total_raw = _track("Total", fields.get("Total"))
    tax_raw = fields.get("TotalTax") if "TotalTax" in fields else fields.get("Tax")

    normalized = ReceiptFields(
        merchant_name=merchant_name,
        transaction_date=transaction_date,
        subtotal=amount_field(_track("Subtotal", fields.get("Subtotal"))),
        tax=amount_field(_track("TotalTax", tax_raw)),
        total=amount_field(total_raw),
        items=tuple(_normalize_items(fields.get("Items"), track=_track)),
        tip=amount_field(fields.get("Tip")),
        currency_code=currency_field(total_raw),
        merchant_address=text_field(fields.get("MerchantAddress")),
        merchant_phone=text_field(fields.get("MerchantPhoneNumber")),
    )

    if low_confidence:
        log_event(
            logger,
            "ocr.low_confidence",
            fields=[f.name for f in low_confidence],
            threshold=settings.low_confidence_threshold,
        )
    return NormalizedReceipt(fields=normalized, warnings=warnings, low_confidence=low_confidence)


def _first_document_fields(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise NoReceiptDocumentsError("No documents found in OCR data")
    documents = payload.get("documents")
    if documents is None and isinstance(payload.get("analyzeResult"), dict):
        documents = payload["analyzeResult"].get("documents")
    if not isinstance(documents, list) or not documents or not isinstance(documents[0], dict):
        raise NoReceiptDocumentsError("No documents found in OCR data")
    fields = documents[0].get("fields")
    return fields if isinstance(fields, dict) else {}


def _normalize_items(raw_items: Any, *, track) -> list[ReceiptItemFields]:
    out: list[ReceiptItemFields] = []
    for idx, entry in enumerate(_array_values(raw_items)):
        props = _object_properties(entry)
        description = text_field(track(f"Items[{idx}].Description", props.get("Description")))
        if not description:
            continue
        quantity = amount_field(track(f"Items[{idx}].Quantity", props.get("Quantity")))
        if quantity is None:
            quantity = Decimal("1")
        unit_price = amount_field(track(f"Items[{idx}].Price", props.get("Price")))
        total_price = amount_field(track(f"Items[{idx}].TotalPrice", props.get("TotalPrice")))
        if unit_price is None and total_price is not None:
            unit_price = total_price / quantity if quantity > 0 else total_price
        elif total_price is None and unit_price is not None:
            total_price = unit_price * quantity if quantity > 0 else unit_price
        out.append(
            ReceiptItemFields(
                description=description,
                quantity=quantity,
                unit_price=unit_price,
                total_price=total_price,
            )
        )
    return out


def _array_values(raw: Any) -> list[Any]:
    if isinstance(raw, list):
        return raw
    if not isinstance(raw, dict):
        return []
    for key in ("values", "valueArray", "value"):
        values = raw.get(key)
        if isinstance(values, list):
            return values
    return []


def _object_properties(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        return {}
    for key in ("properties", "valueObject", "value"):
        props = raw.get(key)
        if isinstance(props, dict):
            return props
    return {}


def field_value(raw: Any) -> Any:
    """The value carried by one OCR field, or ``None`` when it has none."""
    if not isinstance(raw, dict):
        return None
    if "value" in raw:
        return raw["value"]
    for key in _TYPED_VALUE_KEYS:
        if key in raw:
            return raw[key]
    return raw.get("content")


def field_confidence(raw: Any) -> float | None:
    if not isinstance(raw, dict):
        return None
    confidence = raw.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        return None
    return float(confidence)


def text_field(raw: Any) -> str | None:
    value = field_value(raw)
    if isinstance(value, dict):
        value = raw.get("content") if isinstance(raw, dict) else None
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def amount_field(raw: Any) -> Decimal | None:
    value = field_value(raw)
    if isinstance(value, dict):
        value = value.get("amount")
    return parse_amount(value)


def currency_field(raw: Any) -> str | None:
    value = field_value(raw)
    if isinstance(value, dict):
        return normalize_currency(value.get("currencyCode"))
    return None


def parse_amount(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        try:
            number = Decimal(str(value))
        except InvalidOperation:
            return None
        return number if number.is_finite() else None

    text = str(value).strip()
    if "," in text and "." not in text and _COMMA_DECIMAL_RE.search(text):
        text = text.replace(",", ".")
    cleaned = re.sub(r"[^0-9.\-]", "", text)
    # Longest leading number: "12.34.56" reads as 12.34.
    match = _LEADING_NUMBER_RE.match(cleaned)
    if not match:
        return None
    try:
        number = Decimal(match.group(0))
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def parse_date(value: str | None) -> date | None:
    if not value:
        return None
    text = value.strip()

    m = _ISO_DATE_RE.match(text)
    if m:
        year, month, day = (int(g) for g in m.groups())
        return _safe_date(year, month, day)

    m = _NUMERIC_DATE_RE.match(text)
    if m:
        first, second, year = (int(g) for g in m.groups())
        # Month first unless the first part cannot be a month.
        if first > 12 and second <= 12:
            return _safe_date(year, second, first)
        return _safe_date(year, first, second)

    for fmt in _TEXT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def normalize_transaction_date(
    value: str | None, *, today: date | None = None
) -> tuple[date | None, str | None]:
    """
    Parse an OCR date string.

    Returns ``(None, None)`` when the field was absent, the parsed date when it
    parses, and today's date plus a warning message when it does not.
    """
    if not value:
        return None, None
    parsed = parse_date(value)
    if parsed:
        return parsed, None
    return today or utc_today(), f"Could not parse transaction date {value!r}; using today"


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None
