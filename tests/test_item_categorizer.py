from __future__ import annotations

import pytest

from receiptflow.modules.categories.matching import categorize_item


@pytest.mark.parametrize(
    ("description", "label"),
    [
        ("COFFEE BEANS", "Food & Dining"),
        ("Chicken sandwich", "Food & Dining"),
        ("Parking fee", "Transportation"),
        ("Uber ride", "Transportation"),
        ("Printer paper", "Office Supplies"),
        ("Concert ticket", "Entertainment"),
        ("Prescription refill", "Health & Medical"),
        ("Shopping bag", "Shopping"),
        ("USB cable", "Technology"),
        ("Widget", "General"),
        ("", "General"),
        (None, "General"),
    ],
)
def test_categorize_item(description, label):
    assert categorize_item(description) == label


def test_first_matching_group_wins():
    # "coffee" (Food & Dining) is checked before "phone" (Technology).
    assert categorize_item("coffee for the phone shop") == "Food & Dining"
