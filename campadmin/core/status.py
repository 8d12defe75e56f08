from __future__ import annotations

import re
from typing import Any

CANONICAL_STATUSES: dict[str, tuple[str, ...]] = {
    "invoice": ("pending", "paid", "cancelled"),
    "credit_note": ("issued", "sent"),
    "bank_transaction": ("unmatched", "matched", "partially_matched", "overpaid", "ignored"),
    "cancellation_request": ("pending", "approved", "rejected"),
    "inclusion_request": ("pending", "approved", "rejected", "converted"),
    "waiting_list": ("waiting", "invited", "converted", "cancelled"),
}

_STATUS_ALIASES = {
    "partiallymatched": "partially_matched",
    "partially_matched": "partially_matched",
    "partial": "partially_matched",
    "canceled": "cancelled",
    "not_matched": "unmatched",
    "notmatched": "unmatched",
}


def canonical_status(kind: str, value: Any) -> str:
    allowed = CANONICAL_STATUSES[kind]
    initial = allowed[0]
    if value is None:
        return initial

    raw = str(value).strip()
    if not raw:
        return initial

    token = raw.lower()
    token = re.sub(r"[\s\-]+", "_", token)
    token = re.sub(r"_+", "_", token).strip("_")

    mapped = _STATUS_ALIASES.get(token, token)
    if mapped in allowed:
        return mapped

    # Legacy rows may carry values outside the current check constraint.
    return initial
