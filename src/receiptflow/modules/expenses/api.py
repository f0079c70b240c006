from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from receiptflow.api.deps import get_current_user
from receiptflow.core.db import db_session
from receiptflow.modules.expenses.schemas import ExpenseOut, ExpenseStatsOut
from receiptflow.modules.expenses.service import expense_stats, get_expense_for_user, list_expenses
from receiptflow.modules.identity.models import User

router = APIRouter(tags=["expenses"])


@router.get("/expenses", response_model=list[ExpenseOut])
def list_expenses_endpoint(
    start_date: date | None = None,
    end_date: date | None = None,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> list[ExpenseOut]:
    expenses = list_expenses(session, user=user, start_date=start_date, end_date=end_date)
    return [ExpenseOut.model_validate(e, from_attributes=True) for e in expenses]


@router.get("/expenses/stats", response_model=ExpenseStatsOut)
def expense_stats_endpoint(
    start_date: date | None = None,
    end_date: date | None = None,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> ExpenseStatsOut:
    stats = expense_stats(session, user=user, start_date=start_date, end_date=end_date)
    return ExpenseStatsOut(**stats)


@router.get("/expenses/{expense_id}", response_model=ExpenseOut)
def get_expense_endpoint(
    expense_id: uuid.UUID,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> ExpenseOut:
    expense = get_expense_for_user(session, expense_id=expense_id, user=user)
    return ExpenseOut.model_validate(expense, from_attributes=True)
