from __future__ import annotations

import uuid
from collections.abc import Iterable

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from receiptflow.core.db import SessionLocal
from receiptflow.core.logging import get_logger, log_event, log_exception
from receiptflow.modules.categories.matching import (
    CategoryOption,
    CategorySuggestion,
    match_suggestion_rules,
    receipt_signal,
    score_key_phrases,
)
from receiptflow.modules.categories.models import Category, CategoryCorrection
from receiptflow.modules.categories.rules import DEFAULT_CATEGORIES
from receiptflow.modules.categories.semantic import extract_key_phrases, text_analytics_available

logger = get_logger(__name__)


class CategoryBootstrapError(RuntimeError):
    pass


def _owner_clause(owner_id: uuid.UUID | None):
    if owner_id is None:
        return Category.owner_id.is_(None)
    return Category.owner_id == owner_id


def list_categories(session: Session, *, owner_id: uuid.UUID | None) -> list[Category]:
    return list(
        session.scalars(
            select(Category).where(_owner_clause(owner_id)).order_by(Category.created_at, Category.name)
        )
    )


def get_category(
    session: Session, *, owner_id: uuid.UUID | None, category_id: uuid.UUID
) -> Category | None:
    return session.scalar(
        select(Category).where(Category.id == category_id, _owner_clause(owner_id))
    )


def bootstrap_default_categories(session: Session, *, owner_id: uuid.UUID | None) -> list[Category]:
    """
    Create the default category set for an owner that has none.

    A concurrent bootstrap that wins the unique (owner, name) race is fine: the
    categories it created are returned instead.
    """
    try:
        with session.begin_nested():
            for name, description in DEFAULT_CATEGORIES:
                session.add(
                    Category(
                        owner_id=owner_id,
                        name=name,
                        description=description,
                        is_default=True,
                    )
                )
            session.flush()
    except IntegrityError:
        log_event(logger, "category.bootstrap.conflict", owner_id=str(owner_id) if owner_id else None)
    except SQLAlchemyError as e:
        log_exception(logger, "category.bootstrap.error", owner_id=str(owner_id) if owner_id else None)
        raise CategoryBootstrapError(f"Failed to create default categories: {e}") from e

    categories = list_categories(session, owner_id=owner_id)
    if not categories:
        raise CategoryBootstrapError("No categories defined and failed to create defaults")
    log_event(
        logger,
        "category.bootstrap",
        owner_id=str(owner_id) if owner_id else None,
        count=len(categories),
    )
    return categories


def suggest_category(
    session: Session,
    *,
    owner_id: uuid.UUID | None,
    merchant_name: str | None,
    item_descriptions: Iterable[str | None] = (),
) -> CategorySuggestion:
    descriptions = [d for d in item_descriptions if d]
    categories = list_categories(session, owner_id=owner_id)
    if not categories:
        categories = bootstrap_default_categories(session, owner_id=owner_id)
    options = [CategoryOption(id=c.id, name=c.name) for c in categories]

    suggestion = match_suggestion_rules(receipt_signal(merchant_name, descriptions), options)
    if suggestion.category_id is None and text_analytics_available():
        semantic = _semantic_suggestion(merchant_name, descriptions, options)
        if semantic.category_id is not None:
            suggestion = semantic

    log_event(
        logger,
        "category.suggest",
        owner_id=str(owner_id) if owner_id else None,
        merchant_name=merchant_name,
        category_id=str(suggestion.category_id) if suggestion.category_id else None,
        category_name=suggestion.category_name,
        confidence=suggestion.confidence,
        source=suggestion.source,
    )
    return suggestion


def semantic_suggestion(
    session: Session,
    *,
    owner_id: uuid.UUID | None,
    merchant_name: str | None,
    item_descriptions: Iterable[str | None] = (),
) -> CategorySuggestion:
    options = [
        CategoryOption(id=c.id, name=c.name) for c in list_categories(session, owner_id=owner_id)
    ]
    return _semantic_suggestion(merchant_name, [d for d in item_descriptions if d], options)


def _semantic_suggestion(
    merchant_name: str | None, descriptions: list[str], options: list[CategoryOption]
) -> CategorySuggestion:
    if not text_analytics_available():
        return CategorySuggestion(
            category_id=None,
            confidence=0.0,
            reasoning="Text analytics not configured",
            source="semantic",
        )
    text = f"{merchant_name or ''}. Items: {', '.join(descriptions)}"
    phrases = extract_key_phrases(text)
    if phrases is None:
        return CategorySuggestion(
            category_id=None,
            confidence=0.0,
            reasoning="Text analytics unavailable",
            source="semantic",
        )
    return score_key_phrases(phrases, options)


def create_category(
    session: Session,
    *,
    owner_id: uuid.UUID | None,
    name: str,
    description: str | None = None,
    color: str | None = None,
) -> Category:
    clean = name.strip()
    if not clean:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category name required")
    existing = session.scalar(
        select(Category).where(_owner_clause(owner_id), Category.name == clean)
    )
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category already exists")
    category = Category(owner_id=owner_id, name=clean, description=description, color=color)
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


def ensure_category(
    session: Session,
    *,
    owner_id: uuid.UUID | None,
    name: str,
    description: str | None = None,
) -> Category:
    """Get or create ``name`` in the owner's scope. The caller commits."""
    clean = name.strip()
    category = session.scalar(
        select(Category).where(_owner_clause(owner_id), Category.name == clean)
    )
    if category:
        return category
    category = Category(owner_id=owner_id, name=clean, description=description)
    try:
        with session.begin_nested():
            session.add(category)
            session.flush()
    except IntegrityError:
        category = session.scalar(
            select(Category).where(_owner_clause(owner_id), Category.name == clean)
        )
        if not category:
            raise
    return category


def record_category_correction(
    *,
    owner_id: str | None,
    merchant_name: str | None,
    suggested_category_id: str | None,
    actual_category_id: str,
) -> bool:
    """
    Persist a user correction of a suggested category.

    Runs in its own session and never raises; returns whether the row was stored.
    """
    with SessionLocal() as session:
        try:
            correction = CategoryCorrection(
                owner_id=uuid.UUID(owner_id) if owner_id else None,
                merchant_name=merchant_name,
                suggested_category_id=(
                    uuid.UUID(suggested_category_id) if suggested_category_id else None
                ),
                actual_category_id=uuid.UUID(actual_category_id),
            )
            session.add(correction)
            session.commit()
        except (SQLAlchemyError, ValueError):
            session.rollback()
            log_exception(
                logger,
                "category.correction.error",
                owner_id=owner_id,
                merchant_name=merchant_name,
                suggested_category_id=suggested_category_id,
                actual_category_id=actual_category_id,
            )
            return False
    log_event(
        logger,
        "category.correction.recorded",
        owner_id=owner_id,
        merchant_name=merchant_name,
        suggested_category_id=suggested_category_id,
        actual_category_id=actual_category_id,
    )
    return True
