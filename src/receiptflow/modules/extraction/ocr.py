from __future__ import annotations

import time
from typing import Any

import httpx

from receiptflow.core.config import settings
from receiptflow.core.logging import get_logger, log_event

logger = get_logger(__name__)


class OCRProviderError(RuntimeError):
    pass


class OCRNotConfiguredError(OCRProviderError):
    pass


def document_intelligence_available() -> bool:
    return bool(settings.document_intelligence_endpoint and settings.document_intelligence_key)


def analyze_receipt(image_url: str) -> dict[str, Any]:
    """
    Run the prebuilt receipt model on ``image_url`` and return its ``analyzeResult``.

    The service answers 202 with an ``operation-location`` to poll until the
    analysis succeeds or fails. Transport errors surface as ``OCRProviderError``.
    """
    if not document_intelligence_available():
        raise OCRNotConfiguredError("Document intelligence is not configured")

    endpoint = str(settings.document_intelligence_endpoint).rstrip("/")
    url = (
        f"{endpoint}/formrecognizer/documentModels/"
        f"{settings.document_intelligence_model}:analyze"
    )
    headers = {
        "Ocp-Apim-Subscription-Key": str(settings.document_intelligence_key),
        "Content-Type": "application/json",
    }
    timeout = float(settings.document_intelligence_timeout_seconds or 30.0)

    try:
        resp = httpx.post(
            url,
            params={"api-version": settings.document_intelligence_api_version},
            headers=headers,
            json={"urlSource": image_url},
            timeout=timeout,
            follow_redirects=True,
        )
        resp.raise_for_status()
        operation_url = resp.headers.get("operation-location")
        if not operation_url:
            raise OCRProviderError("Analyze request returned no operation-location")

        for _ in range(max(1, settings.document_intelligence_max_polls)):
            poll = httpx.get(operation_url, headers=headers, timeout=timeout)
            poll.raise_for_status()
            body = poll.json()
            status = str(body.get("status") or "").lower()
            if status == "succeeded":
                result = body.get("analyzeResult")
                if not isinstance(result, dict):
                    raise OCRProviderError("Analyze operation returned no analyzeResult")
                log_event(
                    logger,
                    "ocr.analyze.succeeded",
                    model=settings.document_intelligence_model,
                    documents=len(result.get("documents") or []),
                )
                return result
            if status == "failed":
                error = body.get("error") or {}
                raise OCRProviderError(f"Analyze operation failed: {error.get('message') or error}")
            time.sleep(settings.document_intelligence_poll_interval_seconds)
    except httpx.HTTPError as e:
        raise OCRProviderError(f"Document intelligence request failed: {e}") from e
    except ValueError as e:
        raise OCRProviderError("Document intelligence returned invalid JSON") from e

    raise OCRProviderError("Analyze operation did not finish in time")
