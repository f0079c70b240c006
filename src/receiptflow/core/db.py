from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker

from receiptflow.core.config import settings

_url = make_url(settings.database_url)
is_sqlite = _url.drivername.startswith("sqlite")

_connect_args: dict = {}
if is_sqlite:
    # Eager tasks write through their own connection while a request session is open.
    _connect_args = {"check_same_thread": False, "timeout": 15}

engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=_connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def db_session() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
