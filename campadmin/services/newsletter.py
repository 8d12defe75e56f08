from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

from campadmin.controllers.validation import EMAIL_PATTERN
from campadmin.core.config import settings
from campadmin.core.errors import AdminError, ValidationError
from campadmin.entities.models import NewsletterSubscriberRow
from campadmin.entities.registry import NEWSLETTER_SUBSCRIBERS
from campadmin.integrations.gateway import Gateway

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[\n,;]")


@dataclass
class ImportSummary:
    imported: int = 0
    failed: int = 0
    invalid: list[str] = field(default_factory=list)


def parse_import_emails(raw: str) -> tuple[list[str], list[str]]:
    """Split pasted text into ``(valid, invalid)`` addresses, de-duplicated case-insensitively."""
    valid: list[str] = []
    invalid: list[str] = []
    seen: set[str] = set()
    for chunk in _SEPARATORS.split(raw or ""):
        email = chunk.strip()
        if not email:
            continue
        if not EMAIL_PATTERN.match(email):
            invalid.append(email)
            continue
        key = email.lower()
        if key in seen:
            continue
        seen.add(key)
        valid.append(email)
    return valid, invalid


def import_emails(gateway: Gateway, raw: str, *, batch_size: int | None = None) -> ImportSummary:
    if not (raw or "").strip():
        raise ValidationError("Enter at least one e-mail address.", field_errors={"emails": "Required."})
    emails, invalid = parse_import_emails(raw)
    if not emails:
        raise ValidationError("No valid e-mail address found.", field_errors={"emails": "No valid address."})

    size = batch_size or settings.newsletter_import_batch_size
    summary = ImportSummary(invalid=invalid)
    for start in range(0, len(emails), size):
        batch = emails[start : start + size]
        rows = [{"email": email, "source": "import", "active": True, "unsubscribed_at": None} for email in batch]
        try:
            gateway.upsert(NEWSLETTER_SUBSCRIBERS, rows, on_conflict="email")
        except AdminError as exc:
            summary.failed += len(batch)
            logger.warning("Newsletter import batch at %s failed: %s", start, exc.message)
            continue
        summary.imported += len(batch)

    logger.info("Newsletter import: imported=%s failed=%s invalid=%s", summary.imported, summary.failed, len(invalid))
    return summary


def toggle_active(
    gateway: Gateway,
    subscriber: NewsletterSubscriberRow,
    *,
    now: datetime | None = None,
) -> dict[str, object]:
    active = not subscriber.active
    changes: dict[str, object] = {
        "active": active,
        "unsubscribed_at": None if active else (now or datetime.now(timezone.utc)).isoformat(),
    }
    gateway.update(NEWSLETTER_SUBSCRIBERS, subscriber.id, changes)
    return changes
