"""
Structured JSON logging.

Every record is one JSON object: ``ts``, ``level``, ``logger``, ``event`` plus the
keyword fields passed to ``log_event``. Ambient identifiers (request, user, celery
task, receipt under conversion) are bound with context variables and merged into
each event automatically.
"""

from __future__ import annotations

import contextvars
import json
import logging
import time
import uuid
from datetime import UTC, datetime
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from receiptflow.core.config import settings

_CONTEXT: dict[str, contextvars.ContextVar[str | None]] = {
    name: contextvars.ContextVar(name, default=None)
    for name in ("request_id", "user_id", "celery_task_id", "receipt_id")
}

_configured = False


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=UTC).isoformat().replace("+00:00", "Z")
        payload: dict[str, Any] = {
            "ts": ts,
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", None) or record.getMessage(),
            "env": settings.environment,
        }
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            payload.update(fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=True)


def configure_logging() -> None:
    global _configured  # noqa: PLW0603
    if _configured:
        return
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger("receiptflow")
    root.setLevel(level)
    root.handlers = [handler]
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


def _bind(name: str, value: str | None) -> contextvars.Token:
    return _CONTEXT[name].set(value)


def _unbind(name: str, token: contextvars.Token) -> None:
    _CONTEXT[name].reset(token)


def set_user_context(user_id: str | None) -> None:
    # Lives for the rest of the request; the request reset clears it.
    _bind("user_id", user_id)


def set_task_context(task_id: str | None) -> contextvars.Token:
    return _bind("celery_task_id", task_id)


def reset_task_context(token: contextvars.Token) -> None:
    _unbind("celery_task_id", token)


def set_receipt_context(receipt_id: str | None) -> contextvars.Token:
    return _bind("receipt_id", receipt_id)


def reset_receipt_context(token: contextvars.Token) -> None:
    _unbind("receipt_id", token)


def _merge_fields(fields: dict[str, Any]) -> dict[str, Any]:
    merged = {name: var.get() for name, var in _CONTEXT.items()}
    merged.update(fields)
    return {key: value for key, value in merged.items() if value is not None}


def log_event(
    logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any
) -> None:
    logger.log(level, event, extra={"event": event, "fields": _merge_fields(fields)})


def log_exception(logger: logging.Logger, event: str, **fields: Any) -> None:
    logger.exception(event, extra={"event": event, "fields": _merge_fields(fields)})


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id (``x-request-id`` or a fresh uuid) and log each request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        logger = get_logger(__name__)
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_token = _bind("request_id", request_id)
        user_token = _bind("user_id", None)
        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            log_exception(
                logger,
                "http.request.error",
                method=request.method,
                path=request.url.path,
                duration_ms=monotonic_ms(start),
            )
            raise
        else:
            response.headers["x-request-id"] = request_id
            log_event(
                logger,
                "http.request.finish",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=monotonic_ms(start),
            )
            return response
        finally:
            _unbind("user_id", user_token)
            _unbind("request_id", request_token)


def monotonic_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
