from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from receiptflow.core.models import Base, Timestamped, UUIDPrimaryKey


class Category(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "categories_category"
    __table_args__ = (UniqueConstraint("owner_id", "name", name="uq_category_owner_name"),)

    # NULL owner means a shared category visible to every user.
    owner_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("identity_user.id"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)


class CategoryCorrection(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "categories_correction"

    owner_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("identity_user.id"), nullable=True, index=True
    )
    merchant_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    suggested_category_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("categories_category.id"), nullable=True
    )
    actual_category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("categories_category.id")
    )
