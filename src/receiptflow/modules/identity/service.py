from __future__ import annotations

import uuid

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from receiptflow.core.config import settings
from receiptflow.core.currencies import normalize_currency
from receiptflow.modules.identity.models import User


def get_user_by_email(session: Session, *, email: str) -> User | None:
    return session.scalar(select(User).where(User.email == email))


def get_user(session: Session, *, user_id: uuid.UUID) -> User | None:
    return session.scalar(select(User).where(User.id == user_id))


def create_user(
    session: Session,
    *,
    email: str,
    full_name: str | None = None,
    preferred_currency: str | None = None,
) -> User:
    existing = get_user_by_email(session, email=email)
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")

    user = User(
        email=email,
        full_name=full_name,
        preferred_currency=normalize_currency(preferred_currency) or settings.default_currency,
        is_active=True,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def update_preferred_currency(session: Session, *, user: User, currency: str) -> User:
    code = normalize_currency(currency)
    if not code:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="preferred_currency must be a valid ISO-4217 code",
        )
    user.preferred_currency = code
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def preferred_currency_for(session: Session, *, user_id: uuid.UUID | None) -> str | None:
    if user_id is None:
        return None
    user = get_user(session, user_id=user_id)
    if not user:
        return None
    return normalize_currency(user.preferred_currency)
