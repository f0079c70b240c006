from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from receiptflow.modules.conversion.service import ConversionStatus


class ConversionResultOut(BaseModel):
    receipt_id: str
    status: ConversionStatus
    success: bool
    expense_id: uuid.UUID | None = None
    items_created: int = 0
    items_failed: int = 0
    violations: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    error: str | None = None


class BacklogSummaryOut(BaseModel):
    mode: str = "backlog"
    selected: int
    inserted: int
    skipped: int
    no_ocr: int
    failed: int
    results: list[ConversionResultOut]


class BulkConvertIn(BaseModel):
    receipt_ids: list[str] = Field(min_length=1)
    currency: str | None = None


class BulkSummaryOut(BaseModel):
    total: int
    successful: int
    failed: int
    results: list[ConversionResultOut]
