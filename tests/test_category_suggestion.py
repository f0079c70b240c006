from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select

from receiptflow.core.db import SessionLocal
from receiptflow.modules.categories.matching import (
    CategoryOption,
    match_suggestion_rules,
    receipt_signal,
    score_key_phrases,
)
from receiptflow.modules.categories.models import Category, CategoryCorrection
from receiptflow.modules.identity.service import create_user


def _options(*names: str) -> list[CategoryOption]:
    return [CategoryOption(id=uuid.uuid4(), name=name) for name in names]


def test_starbucks_maps_to_food_deterministically():
    options = _options("Food & Dining", "Transportation")
    text = receipt_signal("Starbucks Coffee", [])

    results = [match_suggestion_rules(text, options) for _ in range(5)]

    assert all(r.category_id == options[0].id for r in results)
    assert all(r.confidence >= 0.7 for r in results)
    assert len({(r.category_id, r.confidence, r.reasoning) for r in results}) == 1
    assert results[0].category_name == "Food & Dining"


def test_confidence_grows_with_keyword_count_up_to_weight():
    options = _options("Food & Dining")

    one = match_suggestion_rules(receipt_signal("Joe's Pizza", []), options)
    two = match_suggestion_rules(receipt_signal("Starbucks Coffee", []), options)

    assert one.confidence == pytest.approx(0.8)
    assert two.confidence == pytest.approx(0.9)


def test_first_firing_rule_with_resolvable_category_wins():
    text = receipt_signal("Shell Gas Station", ["coffee"])

    with_food = _options("Transportation", "Food & Dining")
    only_transport = _options("Transportation")

    assert match_suggestion_rules(text, with_food).category_name == "Food & Dining"
    assert match_suggestion_rules(text, only_transport).category_name == "Transportation"


def test_items_contribute_to_signal():
    options = _options("Entertainment", "Healthcare")
    result = match_suggestion_rules(receipt_signal("Main St", ["Cinema ticket"]), options)
    assert result.category_name == "Entertainment"


def test_no_match_returns_low_confidence():
    result = match_suggestion_rules(receipt_signal("Acme Widgets", ["sprocket"]), _options("Travel"))
    assert result.category_id is None
    assert result.confidence == pytest.approx(0.3)
    assert "No strong" in result.reasoning


def test_score_key_phrases():
    options = _options("Healthcare", "Travel")

    hit = score_key_phrases(["dental cleaning", "healthcare visit"], options)
    assert hit.category_name == "Healthcare"
    assert hit.confidence == pytest.approx(0.8)
    assert hit.source == "semantic"

    miss = score_key_phrases(["sprocket"], options)
    assert miss.category_id is None
    assert miss.confidence == pytest.approx(0.2)


def test_suggest_bootstraps_default_categories():
    from receiptflow.modules.categories.service import list_categories, suggest_category

    with SessionLocal() as session:
        user = create_user(session, email="owner@example.com")

        suggestion = suggest_category(
            session, owner_id=user.id, merchant_name="Starbucks Coffee", item_descriptions=[]
        )
        session.commit()

        categories = list_categories(session, owner_id=user.id)
        assert len(categories) == 10
        assert all(c.is_default for c in categories)
        assert suggestion.category_name == "Food & Dining"
        assert suggestion.confidence >= 0.7

        # Second call reuses the existing set.
        suggest_category(session, owner_id=user.id, merchant_name="Uber", item_descriptions=[])
        session.commit()
        assert len(list_categories(session, owner_id=user.id)) == 10


def test_bootstrap_failure_is_reported(monkeypatch):
    from receiptflow.modules.categories import service as categories_service

    monkeypatch.setattr(categories_service, "DEFAULT_CATEGORIES", ())

    with SessionLocal() as session:
        user = create_user(session, email="owner@example.com")
        with pytest.raises(categories_service.CategoryBootstrapError):
            categories_service.suggest_category(
                session, owner_id=user.id, merchant_name="Starbucks", item_descriptions=[]
            )


def test_semantic_fallback_when_rules_do_not_resolve(monkeypatch):
    from receiptflow.core.config import settings
    from receiptflow.modules.categories import service as categories_service

    monkeypatch.setattr(settings, "text_analytics_endpoint", "https://ta.example.com")
    monkeypatch.setattr(settings, "text_analytics_key", "key")
    monkeypatch.setattr(
        categories_service,
        "extract_key_phrases",
        lambda _text: ["dental cleaning", "healthcare visit"],
    )

    with SessionLocal() as session:
        user = create_user(session, email="owner@example.com")
        suggestion = categories_service.suggest_category(
            session,
            owner_id=user.id,
            merchant_name="Bright Smile",
            item_descriptions=["Dental cleaning"],
        )

    assert suggestion.source == "semantic"
    assert suggestion.category_name == "Healthcare"


def test_semantic_unconfigured_degrades_cleanly():
    from receiptflow.modules.categories.service import semantic_suggestion

    with SessionLocal() as session:
        result = semantic_suggestion(session, owner_id=None, merchant_name="Anything")

    assert result.category_id is None
    assert result.confidence == 0.0
    assert result.reasoning == "Text analytics not configured"


def test_record_category_correction():
    from receiptflow.modules.categories.service import (
        ensure_category,
        record_category_correction,
    )

    with SessionLocal() as session:
        user = create_user(session, email="owner@example.com")
        food = ensure_category(session, owner_id=user.id, name="Food & Dining")
        travel = ensure_category(session, owner_id=user.id, name="Travel")
        session.commit()
        user_id, food_id, travel_id = str(user.id), str(food.id), str(travel.id)

    assert record_category_correction(
        owner_id=user_id,
        merchant_name="Airport Cafe",
        suggested_category_id=food_id,
        actual_category_id=travel_id,
    )
    assert not record_category_correction(
        owner_id=user_id,
        merchant_name="Airport Cafe",
        suggested_category_id=None,
        actual_category_id="not-a-uuid",
    )

    with SessionLocal() as session:
        rows = list(session.scalars(select(CategoryCorrection)))
        assert len(rows) == 1
        assert rows[0].merchant_name == "Airport Cafe"
        assert str(rows[0].actual_category_id) == travel_id


def test_ensure_category_is_get_or_create():
    from receiptflow.modules.categories.service import ensure_category

    with SessionLocal() as session:
        first = ensure_category(session, owner_id=None, name="Business")
        second = ensure_category(session, owner_id=None, name=" Business ")
        session.commit()
        assert first.id == second.id
        assert len(list(session.scalars(select(Category)))) == 1
