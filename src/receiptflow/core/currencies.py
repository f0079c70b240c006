from __future__ import annotations

import re

_ISO_4217_RE = re.compile(r"^[A-Z]{3}$")


def normalize_currency(value: str | None) -> str | None:
    """Upper-case a currency code; ``None`` unless it looks like ISO-4217."""
    if not isinstance(value, str):
        return None
    code = value.strip().upper()
    if not _ISO_4217_RE.match(code):
        return None
    return code
