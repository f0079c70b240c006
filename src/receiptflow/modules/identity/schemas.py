from __future__ import annotations

import uuid

from pydantic import BaseModel


class UserOut(BaseModel):
    id: uuid.UUID
    email: str
    full_name: str | None
    preferred_currency: str
    is_active: bool


class PreferencesUpdateIn(BaseModel):
    preferred_currency: str
