from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from receiptflow.api.deps import get_current_user
from receiptflow.core.db import db_session
from receiptflow.core.logging import get_logger, log_event, log_exception
from receiptflow.modules.categories.schemas import (
    CategoryCreateIn,
    CategoryOut,
    CorrectionIn,
    SuggestIn,
    SuggestionOut,
)
from receiptflow.modules.categories.service import (
    CategoryBootstrapError,
    create_category,
    get_category,
    list_categories,
    suggest_category,
)
from receiptflow.modules.identity.models import User
from receiptflow.worker.tasks import record_category_correction_task

router = APIRouter(tags=["categories"])
logger = get_logger(__name__)


@router.get("/categories", response_model=list[CategoryOut])
def list_categories_endpoint(
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> list[CategoryOut]:
    categories = list_categories(session, owner_id=user.id)
    return [CategoryOut.model_validate(c, from_attributes=True) for c in categories]


@router.post("/categories", response_model=CategoryOut)
def create_category_endpoint(
    payload: CategoryCreateIn,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> CategoryOut:
    category = create_category(session, owner_id=user.id, **payload.model_dump())
    return CategoryOut.model_validate(category, from_attributes=True)


@router.post("/categories/suggest", response_model=SuggestionOut)
def suggest_category_endpoint(
    payload: SuggestIn,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> SuggestionOut:
    try:
        suggestion = suggest_category(
            session,
            owner_id=user.id,
            merchant_name=payload.merchant_name,
            item_descriptions=payload.item_descriptions,
        )
    except CategoryBootstrapError as e:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
    session.commit()
    return SuggestionOut(**asdict(suggestion))


@router.post("/categories/corrections", status_code=202)
def record_correction_endpoint(
    payload: CorrectionIn,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> Response:
    if not get_category(session, owner_id=user.id, category_id=payload.actual_category_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    try:
        async_result = record_category_correction_task.delay(
            str(user.id),
            payload.merchant_name,
            str(payload.suggested_category_id) if payload.suggested_category_id else None,
            str(payload.actual_category_id),
        )
    except Exception:
        log_exception(
            logger,
            "category.correction.enqueue_failed",
            user_id=str(user.id),
            actual_category_id=str(payload.actual_category_id),
        )
        return Response(status_code=202)
    log_event(
        logger,
        "celery.task.enqueued",
        task_name="record_category_correction",
        celery_task_id=getattr(async_result, "id", None),
    )
    return Response(status_code=202)
