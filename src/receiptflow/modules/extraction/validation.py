from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from receiptflow.core.config import settings
from receiptflow.modules.extraction.normalizer import ReceiptFields


@dataclass
class ValidationResult:
    violations: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.violations


def validate_receipt_fields(
    fields: ReceiptFields, *, ceiling: Decimal | None = None
) -> ValidationResult:
    """
    Check that normalized fields are plausible enough to become an expense.

    Every violation is collected; nothing is mutated.
    """
    limit = ceiling if ceiling is not None else settings.amount_ceiling
    violations: list[str] = []

    amount = fields.total if fields.total is not None else fields.subtotal
    if amount is None:
        violations.append("No total amount found in OCR data")
    elif amount < 0:
        violations.append("Total amount cannot be negative")
    elif amount > limit:
        violations.append(f"Total amount {amount} is unreasonably large")

    for label, value in (("Subtotal", fields.subtotal), ("Tax", fields.tax)):
        if value is None:
            continue
        if value < 0:
            violations.append(f"{label} cannot be negative")
        elif value > limit:
            violations.append(f"{label} {value} is unreasonably large")

    for n, item in enumerate(fields.items, start=1):
        if not (item.description or "").strip():
            violations.append(f"Item {n} has no description")
        if item.quantity is not None and item.quantity <= 0:
            violations.append(f"Item {n} quantity must be positive")
        if item.total_price is not None:
            if item.total_price < 0:
                violations.append(f"Item {n} price cannot be negative")
            elif item.total_price > limit:
                violations.append(f"Item {n} price {item.total_price} is unreasonably large")

    return ValidationResult(violations=violations)
