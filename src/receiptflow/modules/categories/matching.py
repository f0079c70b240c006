"""
Pure category matching: no session, no network.

``categorize_item`` labels one line item; ``match_suggestion_rules`` picks one of
an owner's categories for a whole receipt; ``score_key_phrases`` ranks
categories against key phrases returned by the text-analytics service.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from receiptflow.modules.categories.rules import (
    GENERAL_CATEGORY,
    ITEM_CATEGORY_RULES,
    SUGGESTION_RULES,
    SuggestionRule,
)

NO_MATCH_CONFIDENCE = 0.3
SEMANTIC_THRESHOLD = 0.3
SEMANTIC_MAX_CONFIDENCE = 0.8
SEMANTIC_NO_MATCH_CONFIDENCE = 0.2


@dataclass(frozen=True)
class CategoryOption:
    id: uuid.UUID
    name: str


@dataclass(frozen=True)
class CategorySuggestion:
    category_id: uuid.UUID | None
    confidence: float
    reasoning: str
    category_name: str | None = None
    source: str = "rules"


def categorize_item(description: str | None) -> str:
    text = (description or "").lower()
    if not text.strip():
        return GENERAL_CATEGORY
    for label, keywords in ITEM_CATEGORY_RULES:
        if any(keyword in text for keyword in keywords):
            return label
    return GENERAL_CATEGORY


def receipt_signal(merchant_name: str | None, item_descriptions: Iterable[str | None]) -> str:
    items_text = " ".join((d or "").lower() for d in item_descriptions)
    return f"{(merchant_name or '').lower()} {items_text}".lower()


def _resolve_category(
    rule: SuggestionRule, categories: Sequence[CategoryOption]
) -> CategoryOption | None:
    for category in categories:
        name = category.name.strip().lower()
        if not name:
            continue
        if any(candidate in name or name in candidate for candidate in rule.candidate_names):
            return category
    return None


def match_suggestion_rules(
    text: str,
    categories: Sequence[CategoryOption],
    *,
    rules: Sequence[SuggestionRule] = SUGGESTION_RULES,
) -> CategorySuggestion:
    """First firing rule that resolves to one of ``categories`` wins."""
    haystack = text.lower()
    for rule in rules:
        matched = [keyword for keyword in rule.keywords if keyword in haystack]
        if not matched:
            continue
        category = _resolve_category(rule, categories)
        if category is None:
            continue
        confidence = min(rule.weight, 0.7 + 0.1 * len(matched))
        return CategorySuggestion(
            category_id=category.id,
            confidence=round(confidence, 4),
            reasoning=f'Rule-based match: "{", ".join(matched)}" -> "{category.name}"',
            category_name=category.name,
        )
    return CategorySuggestion(
        category_id=None,
        confidence=NO_MATCH_CONFIDENCE,
        reasoning="No strong rule-based matches found",
    )


def score_key_phrases(
    key_phrases: Sequence[str], categories: Sequence[CategoryOption]
) -> CategorySuggestion:
    best: CategoryOption | None = None
    best_score = 0.0
    for category in categories:
        name = category.name.lower()
        category_words = name.split()
        score = 0.0
        for phrase in key_phrases:
            phrase_lower = phrase.lower()
            phrase_words = phrase_lower.split()
            overlap = sum(
                1
                for word in category_words
                if any(pw in word or word in pw for pw in phrase_words)
            )
            score += overlap * 0.3
            if name in phrase_lower or phrase_lower in name:
                score += 0.5
        if best is None or score > best_score:
            best, best_score = category, score

    phrases = ", ".join(key_phrases)
    if best is not None and best_score > SEMANTIC_THRESHOLD:
        return CategorySuggestion(
            category_id=best.id,
            confidence=round(min(SEMANTIC_MAX_CONFIDENCE, best_score), 4),
            reasoning=f'Semantic match on key phrases: {phrases} -> "{best.name}"',
            category_name=best.name,
            source="semantic",
        )
    return CategorySuggestion(
        category_id=None,
        confidence=SEMANTIC_NO_MATCH_CONFIDENCE,
        reasoning=f"No strong semantic match. Key phrases: {phrases}",
        source="semantic",
    )
