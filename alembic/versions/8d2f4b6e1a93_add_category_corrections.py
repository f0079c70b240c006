"""add category corrections

Revision ID: 8d2f4b6e1a93
Revises: 3c1e7a9b2d40
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "8d2f4b6e1a93"
down_revision: Union[str, Sequence[str], None] = "3c1e7a9b2d40"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "categories_correction",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("owner_id", sa.Uuid(as_uuid=True), sa.ForeignKey("identity_user.id"), nullable=True),
        sa.Column("merchant_name", sa.String(length=255), nullable=True),
        sa.Column(
            "suggested_category_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("categories_category.id"),
            nullable=True,
        ),
        sa.Column(
            "actual_category_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("categories_category.id"),
            nullable=False,
        ),
    )
    op.create_index("ix_categories_correction_owner_id", "categories_correction", ["owner_id"])


def downgrade() -> None:
    op.drop_index("ix_categories_correction_owner_id", table_name="categories_correction")
    op.drop_table("categories_correction")
