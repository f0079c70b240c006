from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class CategoryCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    color: str | None = None


class CategoryOut(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None
    color: str | None
    is_default: bool
    created_at: datetime


class SuggestIn(BaseModel):
    merchant_name: str | None = None
    item_descriptions: list[str] = Field(default_factory=list)


class SuggestionOut(BaseModel):
    category_id: uuid.UUID | None
    category_name: str | None
    confidence: float
    reasoning: str
    source: str


class CorrectionIn(BaseModel):
    merchant_name: str | None = None
    suggested_category_id: uuid.UUID | None = None
    actual_category_id: uuid.UUID
