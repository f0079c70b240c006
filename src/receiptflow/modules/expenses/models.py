from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from receiptflow.core.models import Base, Timestamped, UUIDPrimaryKey


class Expense(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "expenses_expense"
    __table_args__ = (UniqueConstraint("receipt_id", name="uq_expense_receipt"),)

    receipt_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("receipts_receipt.id"), index=True
    )

    merchant_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    transaction_date: Mapped[date] = mapped_column(Date)
    currency: Mapped[str] = mapped_column(String(3))

    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    tip: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    merchant_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    merchant_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    category_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("categories_category.id"), nullable=True
    )
    category_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)

    # False when at least one line item failed to insert.
    items_reconciled: Mapped[bool] = mapped_column(Boolean, default=True)

    receipt = relationship("Receipt")
    category = relationship("Category")
    items = relationship(
        "ExpenseItem",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ExpenseItem.created_at",
    )


class ExpenseItem(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "expenses_expense_item"

    expense_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("expenses_expense.id"), index=True
    )

    item_name: Mapped[str] = mapped_column(String(500))
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)

    expense = relationship("Expense", back_populates="items")
