"""initial schema

Revision ID: 3c1e7a9b2d40
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "3c1e7a9b2d40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

RECEIPT_STATUSES = (
    "uploaded",
    "processing",
    "processed",
    "processed_with_warnings",
    "failed",
    "expense_creation_failed",
    "expense_created",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "identity_user",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("preferred_currency", sa.String(length=3), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_identity_user_email", "identity_user", ["email"], unique=True)

    op.create_table(
        "receipts_receipt",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("owner_id", sa.Uuid(as_uuid=True), sa.ForeignKey("identity_user.id"), nullable=True),
        sa.Column("image_url", sa.String(length=1024), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*RECEIPT_STATUSES, name="receiptstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("raw_ocr_json", sa.JSON(none_as_null=True), nullable=True),
        sa.Column("ocr_warnings", sa.JSON(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_receipts_receipt_owner_id", "receipts_receipt", ["owner_id"])
    op.create_index("ix_receipts_receipt_status", "receipts_receipt", ["status"])

    op.create_table(
        "categories_category",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("owner_id", sa.Uuid(as_uuid=True), sa.ForeignKey("identity_user.id"), nullable=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(length=20), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("owner_id", "name", name="uq_category_owner_name"),
    )
    op.create_index("ix_categories_category_owner_id", "categories_category", ["owner_id"])

    op.create_table(
        "expenses_expense",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column(
            "receipt_id", sa.Uuid(as_uuid=True), sa.ForeignKey("receipts_receipt.id"), nullable=False
        ),
        sa.Column("merchant_name", sa.String(length=255), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("tax", sa.Numeric(12, 2), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        sa.Column(
            "category_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("categories_category.id"),
            nullable=True,
        ),
        sa.Column("category_confidence", sa.Float(), nullable=True),
        sa.Column("items_reconciled", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("receipt_id", name="uq_expense_receipt"),
    )
    op.create_index("ix_expenses_expense_receipt_id", "expenses_expense", ["receipt_id"])

    op.create_table(
        "expenses_expense_item",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column(
            "expense_id", sa.Uuid(as_uuid=True), sa.ForeignKey("expenses_expense.id"), nullable=False
        ),
        sa.Column("item_name", sa.String(length=500), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=True),
    )
    op.create_index("ix_expenses_expense_item_expense_id", "expenses_expense_item", ["expense_id"])


def downgrade() -> None:
    op.drop_index("ix_expenses_expense_item_expense_id", table_name="expenses_expense_item")
    op.drop_table("expenses_expense_item")
    op.drop_index("ix_expenses_expense_receipt_id", table_name="expenses_expense")
    op.drop_table("expenses_expense")
    op.drop_index("ix_categories_category_owner_id", table_name="categories_category")
    op.drop_table("categories_category")
    op.drop_index("ix_receipts_receipt_status", table_name="receipts_receipt")
    op.drop_index("ix_receipts_receipt_owner_id", table_name="receipts_receipt")
    op.drop_table("receipts_receipt")
    op.drop_index("ix_identity_user_email", table_name="identity_user")
    op.drop_table("identity_user")
