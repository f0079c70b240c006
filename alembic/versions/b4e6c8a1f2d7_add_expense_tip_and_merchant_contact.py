"""add expense tip and merchant contact

Revision ID: b4e6c8a1f2d7
Revises: 8d2f4b6e1a93
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "b4e6c8a1f2d7"
down_revision: Union[str, Sequence[str], None] = "8d2f4b6e1a93"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("expenses_expense", sa.Column("tip", sa.Numeric(12, 2), nullable=True))
    op.add_column(
        "expenses_expense", sa.Column("merchant_address", sa.String(length=500), nullable=True)
    )
    op.add_column(
        "expenses_expense", sa.Column("merchant_phone", sa.String(length=50), nullable=True)
    )


def downgrade() -> None:
    op.drop_column("expenses_expense", "merchant_phone")
    op.drop_column("expenses_expense", "merchant_address")
    op.drop_column("expenses_expense", "tip")
