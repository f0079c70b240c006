from __future__ import annotations

from typing import Any

import httpx

from receiptflow.core.config import settings
from receiptflow.core.logging import get_logger, log_event

logger = get_logger(__name__)

_MAX_TEXT_CHARS = 500


def text_analytics_available() -> bool:
    return bool(settings.text_analytics_endpoint and settings.text_analytics_key)


def extract_key_phrases(text: str) -> list[str] | None:
    """
    Best-effort key phrase extraction.

    Returns ``None`` when the service is unconfigured or the call fails.
    """
    if not text_analytics_available():
        return None

    url = str(settings.text_analytics_endpoint).rstrip("/") + "/text/analytics/v3.1/keyPhrases"
    payload: dict[str, Any] = {
        "documents": [{"id": "1", "language": "en", "text": text[:_MAX_TEXT_CHARS]}]
    }
    try:
        resp = httpx.post(
            url,
            headers={
                "Ocp-Apim-Subscription-Key": str(settings.text_analytics_key),
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=float(settings.text_analytics_timeout_seconds or 10.0),
            follow_redirects=True,
        )
        resp.raise_for_status()
        documents = resp.json().get("documents") or []
    except (httpx.HTTPError, ValueError) as e:
        log_event(logger, "category.semantic.error", error=str(e))
        return None

    if not documents or not isinstance(documents[0], dict):
        return []
    phrases = documents[0].get("keyPhrases") or []
    return [str(p) for p in phrases if str(p).strip()]
