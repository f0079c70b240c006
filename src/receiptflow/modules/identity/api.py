from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from receiptflow.api.deps import get_current_user
from receiptflow.core.db import db_session
from receiptflow.modules.identity.models import User
from receiptflow.modules.identity.schemas import PreferencesUpdateIn, UserOut
from receiptflow.modules.identity.service import update_preferred_currency

router = APIRouter(tags=["identity"])


@router.get("/auth/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> UserOut:
    return UserOut.model_validate(user, from_attributes=True)


@router.patch("/users/me/preferences", response_model=UserOut)
def update_preferences_endpoint(
    payload: PreferencesUpdateIn,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> UserOut:
    user = update_preferred_currency(session, user=user, currency=payload.preferred_currency)
    return UserOut.model_validate(user, from_attributes=True)
