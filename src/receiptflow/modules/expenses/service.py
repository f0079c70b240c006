from __future__ import annotations

import time
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from receiptflow.core.logging import get_logger, log_event, log_exception, monotonic_ms
from receiptflow.core.models import utc_today
from receiptflow.modules.categories.matching import CategorySuggestion, categorize_item
from receiptflow.modules.categories.rules import GENERAL_CATEGORY
from receiptflow.modules.expenses.models import Expense, ExpenseItem
from receiptflow.modules.extraction.normalizer import ReceiptFields, ReceiptItemFields
from receiptflow.modules.identity.models import User
from receiptflow.modules.receipts.models import Receipt

logger = get_logger(__name__)

UNKNOWN_MERCHANT = "Unknown Merchant"
_CENTS = Decimal("0.01")
_ZERO = Decimal("0.00")


@dataclass(frozen=True)
class ExpenseCreationResult:
    success: bool
    expense_id: uuid.UUID | None = None
    items_created: int = 0
    items_failed: int = 0
    skipped: bool = False
    error: str | None = None


def find_expense_for_receipt(session: Session, *, receipt_id: uuid.UUID) -> Expense | None:
    return session.scalar(select(Expense).where(Expense.receipt_id == receipt_id))


def _money(value: Decimal | None) -> Decimal:
    if value is None:
        return _ZERO
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def _quantity(value: Decimal | None) -> int:
    if value is None or value <= 0 or value != value.to_integral_value():
        return 1
    return int(value)


def _build_item(*, expense_id: uuid.UUID, item: ReceiptItemFields) -> ExpenseItem:
    name = (item.description or "").strip()
    return ExpenseItem(
        expense_id=expense_id,
        item_name=name,
        quantity=_quantity(item.quantity),
        unit_price=_money(item.unit_price),
        total_price=_money(item.total_price),
        category=categorize_item(name),
    )


def _fallback_item(*, expense_id: uuid.UUID, merchant: str, total: Decimal | None) -> ExpenseItem:
    amount = _money(total)
    return ExpenseItem(
        expense_id=expense_id,
        item_name=f"Purchase from {merchant}",
        quantity=1,
        unit_price=amount,
        total_price=amount,
        category=GENERAL_CATEGORY,
    )


def create_expense_from_fields(
    session: Session,
    *,
    receipt: Receipt,
    fields: ReceiptFields,
    currency: str,
    category: CategorySuggestion | None = None,
) -> ExpenseCreationResult:
    """
    Create the receipt's Expense and its items from validated fields.

    Safe to call any number of times for one receipt: once an Expense exists the
    call reports ``skipped``. Item inserts are independent of the Expense insert;
    a failed item is counted and the Expense is kept with ``items_reconciled``
    cleared. Commits on success.
    """
    start = time.monotonic()
    existing = find_expense_for_receipt(session, receipt_id=receipt.id)
    if existing:
        log_event(
            logger,
            "expense.create.skipped",
            receipt_id=str(receipt.id),
            expense_id=str(existing.id),
        )
        return ExpenseCreationResult(success=True, expense_id=existing.id, skipped=True)

    merchant = (fields.merchant_name or "").strip() or UNKNOWN_MERCHANT
    total = fields.total if fields.total is not None else fields.subtotal
    expense = Expense(
        receipt_id=receipt.id,
        merchant_name=merchant,
        transaction_date=fields.transaction_date or utc_today(),
        currency=currency,
        subtotal=_money(fields.subtotal),
        tax=_money(fields.tax),
        total=_money(total),
        tip=_money(fields.tip) if fields.tip is not None else None,
        merchant_address=fields.merchant_address[:500] if fields.merchant_address else None,
        merchant_phone=fields.merchant_phone[:50] if fields.merchant_phone else None,
        category_id=category.category_id if category else None,
        category_confidence=category.confidence if category and category.category_id else None,
        items_reconciled=True,
    )
    try:
        with session.begin_nested():
            session.add(expense)
            session.flush()
    except IntegrityError:
        existing = find_expense_for_receipt(session, receipt_id=receipt.id)
        if existing:
            log_event(
                logger,
                "expense.create.skipped",
                receipt_id=str(receipt.id),
                expense_id=str(existing.id),
                reason="unique_conflict",
            )
            return ExpenseCreationResult(success=True, expense_id=existing.id, skipped=True)
        log_exception(logger, "expense.create.error", receipt_id=str(receipt.id))
        return ExpenseCreationResult(success=False, error="Failed to create expense")
    except SQLAlchemyError as e:
        log_exception(logger, "expense.create.error", receipt_id=str(receipt.id))
        return ExpenseCreationResult(success=False, error=f"Failed to create expense: {e}")

    retained = [item for item in fields.items if (item.description or "").strip()]
    items_created = 0
    items_failed = 0
    for idx, item in enumerate(retained, start=1):
        try:
            with session.begin_nested():
                session.add(_build_item(expense_id=expense.id, item=item))
                session.flush()
            items_created += 1
        except SQLAlchemyError as e:
            items_failed += 1
            log_event(
                logger,
                "expense_item.insert_failed",
                expense_id=str(expense.id),
                item_index=idx,
                item_name=item.description,
                error=str(e),
            )

    if not retained:
        try:
            with session.begin_nested():
                session.add(_fallback_item(expense_id=expense.id, merchant=merchant, total=total))
                session.flush()
            items_created = 1
        except SQLAlchemyError as e:
            items_failed += 1
            log_event(
                logger,
                "expense_item.insert_failed",
                expense_id=str(expense.id),
                item_index=0,
                item_name=f"Purchase from {merchant}",
                error=str(e),
            )

    if items_failed:
        expense.items_reconciled = False
        session.add(expense)
    session.commit()

    log_event(
        logger,
        "expense.create.finish",
        receipt_id=str(receipt.id),
        expense_id=str(expense.id),
        items_created=items_created,
        items_failed=items_failed,
        fallback_item=not retained,
        duration_ms=monotonic_ms(start),
    )
    return ExpenseCreationResult(
        success=True,
        expense_id=expense.id,
        items_created=items_created,
        items_failed=items_failed,
    )


def delete_expense_for_receipt(session: Session, *, receipt_id: uuid.UUID) -> bool:
    """Remove a receipt's Expense and its items. The caller commits."""
    expense = find_expense_for_receipt(session, receipt_id=receipt_id)
    if not expense:
        return False
    session.delete(expense)
    session.flush()
    log_event(
        logger,
        "expense.deleted",
        receipt_id=str(receipt_id),
        expense_id=str(expense.id),
    )
    return True


def _owned_expenses(user: User):
    return (
        select(Expense)
        .join(Receipt, Receipt.id == Expense.receipt_id)
        .where(Receipt.owner_id == user.id)
    )


def list_expenses(
    session: Session,
    *,
    user: User,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[Expense]:
    stmt = _owned_expenses(user).options(selectinload(Expense.items))
    if start_date:
        stmt = stmt.where(Expense.transaction_date >= start_date)
    if end_date:
        stmt = stmt.where(Expense.transaction_date <= end_date)
    stmt = stmt.order_by(Expense.transaction_date.desc(), Expense.created_at.desc())
    return list(session.scalars(stmt))


def get_expense_for_user(session: Session, *, expense_id: uuid.UUID, user: User) -> Expense:
    expense = session.scalar(
        _owned_expenses(user)
        .where(Expense.id == expense_id)
        .options(selectinload(Expense.items))
    )
    if not expense:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expense not found")
    return expense


def expense_stats(
    session: Session,
    *,
    user: User,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict:
    expenses = list_expenses(session, user=user, start_date=start_date, end_date=end_date)
    total_amount = sum((e.total or _ZERO for e in expenses), _ZERO)
    by_merchant: dict[str, Decimal] = defaultdict(lambda: _ZERO)
    by_category: dict[str, Decimal] = defaultdict(lambda: _ZERO)
    for expense in expenses:
        by_merchant[expense.merchant_name or UNKNOWN_MERCHANT] += expense.total or _ZERO
        for item in expense.items:
            by_category[item.category or GENERAL_CATEGORY] += item.total_price or _ZERO

    count = len(expenses)
    return {
        "total_expenses": count,
        "total_amount": _money(total_amount),
        "average_amount": _money(total_amount / count) if count else _ZERO,
        "by_merchant": {k: _money(v) for k, v in sorted(by_merchant.items())},
        "by_category": {k: _money(v) for k, v in sorted(by_category.items())},
    }
