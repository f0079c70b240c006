from __future__ import annotations

import os

import pytest

# Set env before any receiptflow imports (settings/engine are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./.receiptflow_test.db")


@pytest.fixture(autouse=True)
def _reset_db() -> None:
    import receiptflow.models  # noqa: F401
    from receiptflow.core.db import engine
    from receiptflow.core.models import Base

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield
