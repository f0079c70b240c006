from __future__ import annotations

from dataclasses import dataclass

GENERAL_CATEGORY = "General"

# Line-item labels, first matching group wins.
ITEM_CATEGORY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "Food & Dining",
        (
            "coffee",
            "tea",
            "drink",
            "food",
            "meal",
            "breakfast",
            "lunch",
            "dinner",
            "pizza",
            "burger",
            "sandwich",
            "salad",
            "restaurant",
            "cafe",
        ),
    ),
    (
        "Transportation",
        ("gas", "fuel", "parking", "taxi", "uber", "lyft", "train", "bus", "metro", "transport", "toll"),
    ),
    (
        "Office Supplies",
        (
            "pen",
            "paper",
            "notebook",
            "stapler",
            "envelope",
            "folder",
            "marker",
            "office",
            "supplies",
            "printing",
        ),
    ),
    (
        "Entertainment",
        ("movie", "ticket", "entertainment", "game", "music", "book", "theater", "concert"),
    ),
    (
        "Health & Medical",
        ("pharmacy", "medicine", "medical", "doctor", "hospital", "health", "prescription", "clinic"),
    ),
    ("Shopping", ("store", "market", "shop", "retail", "clothes", "clothing", "mall")),
    ("Technology", ("computer", "software", "tech", "electronics", "cable", "internet", "phone")),
)


@dataclass(frozen=True)
class SuggestionRule:
    keywords: tuple[str, ...]
    candidate_names: tuple[str, ...]
    weight: float


# Receipt-level rules in priority order.
SUGGESTION_RULES: tuple[SuggestionRule, ...] = (
    SuggestionRule(
        keywords=(
            "restaurant",
            "cafe",
            "coffee",
            "pizza",
            "burger",
            "food",
            "dining",
            "mcdonald",
            "subway",
            "starbucks",
            "tim horton",
            "a&w",
            "kfc",
            "wendy",
            "domino",
            "uber eats",
            "doordash",
            "skip",
            "grubhub",
        ),
        candidate_names=("food", "dining", "meal", "restaurant", "grocery", "groceries"),
        weight=0.9,
    ),
    SuggestionRule(
        keywords=(
            "gas",
            "fuel",
            "petrol",
            "shell",
            "exxon",
            "chevron",
            "bp",
            "mobil",
            "taxi",
            "uber",
            "lyft",
            "bus",
            "train",
            "metro",
            "transit",
            "parking",
        ),
        candidate_names=("transportation", "fuel", "gas", "travel", "commute", "parking"),
        weight=0.9,
    ),
    SuggestionRule(
        keywords=(
            "movie",
            "theater",
            "cinema",
            "concert",
            "ticket",
            "entertainment",
            "netflix",
            "spotify",
            "game",
            "bowling",
            "arcade",
            "amusement",
        ),
        candidate_names=("entertainment", "movies", "music", "games", "recreation"),
        weight=0.85,
    ),
    SuggestionRule(
        keywords=(
            "walmart",
            "target",
            "amazon",
            "costco",
            "store",
            "shop",
            "retail",
            "clothing",
            "shoes",
            "electronics",
            "best buy",
        ),
        candidate_names=("shopping", "retail", "clothing", "electronics", "personal"),
        weight=0.8,
    ),
    SuggestionRule(
        keywords=(
            "pharmacy",
            "doctor",
            "hospital",
            "clinic",
            "medical",
            "health",
            "prescription",
            "cvs",
            "walgreens",
        ),
        candidate_names=("health", "medical", "healthcare", "pharmacy", "wellness"),
        weight=0.9,
    ),
    SuggestionRule(
        keywords=(
            "electric",
            "power",
            "utility",
            "phone",
            "internet",
            "cable",
            "insurance",
            "rent",
            "mortgage",
        ),
        candidate_names=("utilities", "bills", "insurance", "rent", "housing"),
        weight=0.9,
    ),
    SuggestionRule(
        keywords=(
            "home depot",
            "lowes",
            "hardware",
            "garden",
            "furniture",
            "appliance",
            "home improvement",
        ),
        candidate_names=("home", "garden", "hardware", "furniture", "improvement"),
        weight=0.85,
    ),
)

DEFAULT_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("Food & Dining", "Restaurants, cafes, food delivery, groceries"),
    ("Transportation", "Gas, public transit, parking, taxi, car maintenance"),
    ("Shopping", "Clothing, electronics, general retail purchases"),
    ("Entertainment", "Movies, concerts, streaming services, recreation"),
    ("Healthcare", "Medical expenses, pharmacy, insurance copays"),
    ("Utilities", "Electric, gas, water, internet, phone bills"),
    ("Home & Garden", "Home improvement, furniture, garden supplies"),
    ("Education", "Books, courses, school supplies, tuition"),
    ("Travel", "Hotels, flights, vacation expenses"),
    ("Business", "Office supplies, business meals, equipment"),
)
