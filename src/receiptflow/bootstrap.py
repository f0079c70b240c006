from __future__ import annotations

import receiptflow.models  # noqa: F401
from receiptflow.core.config import settings
from receiptflow.core.db import engine, is_sqlite
from receiptflow.core.logging import get_logger, log_event
from receiptflow.core.models import Base

logger = get_logger(__name__)


def bootstrap() -> None:
    """Create tables for local sqlite runs; other databases are migrated with alembic."""
    if settings.environment in {"dev", "test"} and is_sqlite:
        Base.metadata.create_all(engine)
        log_event(logger, "bootstrap.schema.created", environment=settings.environment)
