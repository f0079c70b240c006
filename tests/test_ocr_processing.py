from __future__ import annotations

import uuid

import httpx
import pytest

from receiptflow.core.db import SessionLocal
from receiptflow.modules.receipts.models import Receipt, ReceiptStatus
from receiptflow.modules.receipts.service import create_receipt


def _payload() -> dict:
    return {
        "documents": [
            {
                "fields": {
                    "MerchantName": {"value": "Corner Cafe", "confidence": 0.98},
                    "Total": {"value": 12.0, "confidence": 0.99},
                }
            }
        ]
    }


def _new_receipt() -> str:
    with SessionLocal() as session:
        receipt = create_receipt(session, owner=None, image_url="https://img.example.com/x.jpg")
        return str(receipt.id)


def _load(receipt_id: str) -> Receipt:
    with SessionLocal() as session:
        receipt = session.get(Receipt, uuid.UUID(receipt_id))
        session.expunge(receipt)
        return receipt


def test_process_receipt_ocr_stores_payload(monkeypatch):
    from receiptflow.modules.extraction import service as extraction_service

    calls: list[str] = []

    def _analyze(url: str) -> dict:
        calls.append(url)
        return _payload()

    monkeypatch.setattr(extraction_service, "analyze_receipt", _analyze)
    receipt_id = _new_receipt()

    status = extraction_service.process_receipt_ocr(receipt_id=receipt_id)

    assert status == ReceiptStatus.PROCESSED
    receipt = _load(receipt_id)
    assert receipt.raw_ocr_json == _payload()
    assert receipt.processed_at is not None
    assert calls == ["https://img.example.com/x.jpg"]

    # Already processed: no second provider call.
    assert extraction_service.process_receipt_ocr(receipt_id=receipt_id) == ReceiptStatus.PROCESSED
    assert len(calls) == 1


def test_process_receipt_ocr_provider_error_fails_receipt(monkeypatch):
    from receiptflow.modules.extraction import service as extraction_service
    from receiptflow.modules.extraction.ocr import OCRProviderError

    def _boom(_url: str) -> dict:
        raise OCRProviderError("provider down")

    monkeypatch.setattr(extraction_service, "analyze_receipt", _boom)
    receipt_id = _new_receipt()

    assert extraction_service.process_receipt_ocr(receipt_id=receipt_id) == ReceiptStatus.FAILED
    receipt = _load(receipt_id)
    assert receipt.error_message == "provider down"
    assert receipt.raw_ocr_json is None


def test_process_receipt_ocr_unconfigured_fails_cleanly():
    from receiptflow.modules.extraction.service import process_receipt_ocr

    receipt_id = _new_receipt()
    assert process_receipt_ocr(receipt_id=receipt_id) == ReceiptStatus.FAILED
    assert "not configured" in (_load(receipt_id).error_message or "")


def test_process_receipt_ocr_unknown_receipt():
    from receiptflow.modules.extraction.service import process_receipt_ocr

    assert process_receipt_ocr(receipt_id="00000000-0000-0000-0000-000000000000") is None


class _Response:
    def __init__(self, status_code: int, body: dict | None = None, headers: dict | None = None):
        self.status_code = status_code
        self._body = body or {}
        self.headers = headers or {}

    def json(self) -> dict:
        return self._body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            request = httpx.Request("GET", "https://di.example.com")
            response = httpx.Response(self.status_code, request=request)
            raise httpx.HTTPStatusError("error", request=request, response=response)


@pytest.fixture
def _configured(monkeypatch):
    from receiptflow.core.config import settings

    monkeypatch.setattr(settings, "document_intelligence_endpoint", "https://di.example.com/")
    monkeypatch.setattr(settings, "document_intelligence_key", "secret")
    monkeypatch.setattr(settings, "document_intelligence_poll_interval_seconds", 0)
    monkeypatch.setattr(settings, "document_intelligence_max_polls", 3)


def test_analyze_receipt_polls_until_succeeded(monkeypatch, _configured):
    from receiptflow.modules.extraction import ocr

    posted: dict = {}
    polls = iter(
        [
            _Response(200, {"status": "running"}),
            _Response(200, {"status": "succeeded", "analyzeResult": _payload()}),
        ]
    )

    def _post(url, **kwargs):
        posted["url"] = url
        posted.update(kwargs)
        return _Response(202, headers={"operation-location": "https://di.example.com/op/1"})

    monkeypatch.setattr(ocr.httpx, "post", _post)
    monkeypatch.setattr(ocr.httpx, "get", lambda url, **kwargs: next(polls))

    result = ocr.analyze_receipt("https://img.example.com/x.jpg")

    assert result == _payload()
    assert posted["url"] == (
        "https://di.example.com/formrecognizer/documentModels/prebuilt-receipt:analyze"
    )
    assert posted["json"] == {"urlSource": "https://img.example.com/x.jpg"}
    assert posted["headers"]["Ocp-Apim-Subscription-Key"] == "secret"


def test_analyze_receipt_reports_failed_operation(monkeypatch, _configured):
    from receiptflow.modules.extraction import ocr

    monkeypatch.setattr(
        ocr.httpx,
        "post",
        lambda url, **kwargs: _Response(202, headers={"operation-location": "https://op"}),
    )
    monkeypatch.setattr(
        ocr.httpx,
        "get",
        lambda url, **kwargs: _Response(200, {"status": "failed", "error": {"message": "bad image"}}),
    )

    with pytest.raises(ocr.OCRProviderError, match="bad image"):
        ocr.analyze_receipt("https://img.example.com/x.jpg")


def test_analyze_receipt_wraps_transport_errors(monkeypatch, _configured):
    from receiptflow.modules.extraction import ocr

    def _post(url, **kwargs):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(ocr.httpx, "post", _post)

    with pytest.raises(ocr.OCRProviderError):
        ocr.analyze_receipt("https://img.example.com/x.jpg")


def test_analyze_receipt_times_out(monkeypatch, _configured):
    from receiptflow.modules.extraction import ocr

    monkeypatch.setattr(
        ocr.httpx,
        "post",
        lambda url, **kwargs: _Response(202, headers={"operation-location": "https://op"}),
    )
    monkeypatch.setattr(ocr.httpx, "get", lambda url, **kwargs: _Response(200, {"status": "running"}))

    with pytest.raises(ocr.OCRProviderError, match="did not finish"):
        ocr.analyze_receipt("https://img.example.com/x.jpg")
