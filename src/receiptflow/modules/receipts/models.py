from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from receiptflow.core.models import Base, Timestamped, UUIDPrimaryKey


class ReceiptStatus(str, enum.Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    PROCESSED = "processed"
    PROCESSED_WITH_WARNINGS = "processed_with_warnings"
    FAILED = "failed"
    EXPENSE_CREATION_FAILED = "expense_creation_failed"
    EXPENSE_CREATED = "expense_created"


class Receipt(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "receipts_receipt"

    owner_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("identity_user.id"), nullable=True, index=True
    )
    image_url: Mapped[str] = mapped_column(String(1024))

    status: Mapped[ReceiptStatus] = mapped_column(
        Enum(ReceiptStatus, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        index=True,
    )
    raw_ocr_json: Mapped[dict | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    ocr_warnings: Mapped[list] = mapped_column(JSON, default=list)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    owner = relationship("User")
