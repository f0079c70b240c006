from __future__ import annotations

from fastapi import APIRouter

from receiptflow.modules.categories.api import router as categories_router
from receiptflow.modules.conversion.api import router as conversion_router
from receiptflow.modules.expenses.api import router as expenses_router
from receiptflow.modules.identity.api import router as identity_router
from receiptflow.modules.receipts.api import router as receipts_router

router = APIRouter()

router.include_router(identity_router, prefix="/api")
router.include_router(receipts_router, prefix="/api")
router.include_router(conversion_router, prefix="/api")
router.include_router(expenses_router, prefix="/api")
router.include_router(categories_router, prefix="/api")


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}
