from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel


class ExpenseItemOut(BaseModel):
    id: uuid.UUID
    item_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    category: str | None


class ExpenseOut(BaseModel):
    id: uuid.UUID
    receipt_id: uuid.UUID
    merchant_name: str | None
    transaction_date: date
    currency: str
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    tip: Decimal | None = None
    payment_method: str | None
    merchant_address: str | None = None
    merchant_phone: str | None = None
    category_id: uuid.UUID | None
    category_confidence: float | None
    items_reconciled: bool
    created_at: datetime
    items: list[ExpenseItemOut]


class ExpenseStatsOut(BaseModel):
    total_expenses: int
    total_amount: Decimal
    average_amount: Decimal
    by_merchant: dict[str, Decimal]
    by_category: dict[str, Decimal]
