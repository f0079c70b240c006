from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from receiptflow.modules.receipts.models import ReceiptStatus


class ReceiptCreateIn(BaseModel):
    image_url: str = Field(min_length=1, max_length=1024)


class ReceiptOut(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID | None
    image_url: str
    status: ReceiptStatus
    ocr_warnings: list[str] = Field(default_factory=list)
    error_message: str | None
    processed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class OcrResultIn(BaseModel):
    payload: dict[str, Any]
