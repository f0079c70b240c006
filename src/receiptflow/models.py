"""
Alembic model import hook.

Importing this module ensures all SQLAlchemy models are registered on Base.metadata.
"""

from __future__ import annotations

# Import User first - other models have relationships to User
from receiptflow.modules.identity.models import User  # noqa: F401

from receiptflow.modules.categories.models import Category, CategoryCorrection  # noqa: F401
from receiptflow.modules.expenses.models import Expense, ExpenseItem  # noqa: F401
from receiptflow.modules.receipts.models import Receipt  # noqa: F401
