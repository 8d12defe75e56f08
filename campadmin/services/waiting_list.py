from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from campadmin.core.config import settings
from campadmin.core.errors import AdminError, NotFoundError, ValidationError
from campadmin.entities.models import WaitingListRow
from campadmin.entities.registry import TARIF_CONDITIONS, WAITING_LIST
from campadmin.integrations.gateway import Gateway, ensure_procedure_success
from campadmin.services.registrations import create_pending_registration, resolve_price

logger = logging.getLogger(__name__)

NOTIFY_FUNCTION = "notify-waiting-list"
OFFERABLE_STATUSES = ("waiting", "invited")


@dataclass
class SeatOffer:
    entry_id: str
    invited_at: datetime
    expires_at: datetime
    notified: bool
    warning: str | None = None


@dataclass
class Conversion:
    entry_id: str
    registration: dict[str, Any]
    price: float
    price_type: str


def offer_seat(gateway: Gateway, entry_id: str, *, now: datetime | None = None) -> SeatOffer:
    entry: WaitingListRow = gateway.get(WAITING_LIST, entry_id)
    if entry.status not in OFFERABLE_STATUSES:
        raise ValidationError(f"Cannot offer a seat to a {entry.status} waiting-list entry.")
    invited_at = now or datetime.now(timezone.utc)
    expires_at = invited_at + timedelta(hours=settings.waiting_list_offer_hours)
    gateway.update(
        WAITING_LIST,
        entry_id,
        {
            "status": "invited",
            "invited_at": invited_at.isoformat(),
            "expires_at": expires_at.isoformat(),
        },
    )

    offer = SeatOffer(entry_id=entry_id, invited_at=invited_at, expires_at=expires_at, notified=True)
    try:
        ensure_procedure_success(
            gateway.call_function(NOTIFY_FUNCTION, {"waitingListId": entry_id}),
            NOTIFY_FUNCTION,
        )
    except AdminError as exc:
        # The seat stays offered; the parent can still be contacted by hand.
        offer.notified = False
        offer.warning = f"Seat offered, but the notification e-mail may not have been sent: {exc.message}"
        logger.warning("Waiting-list notification for %s failed: %s", entry_id, exc.message)
    return offer


def convert_to_registration(gateway: Gateway, entry_id: str) -> Conversion:
    entry: WaitingListRow = gateway.get(WAITING_LIST, entry_id)
    if entry.status == "converted":
        raise ValidationError("This waiting-list entry was already converted.")
    session = entry.session
    if session is None:
        raise NotFoundError("Session not found for this waiting-list entry.", details={"activity_id": entry.activity_id})

    condition = None
    if session.prix_local and session.tarif_condition_id:
        try:
            condition = gateway.get(TARIF_CONDITIONS, session.tarif_condition_id)
        except NotFoundError:
            logger.info("Pricing condition %s is gone; using normal price", session.tarif_condition_id)

    price, price_type = resolve_price(session, entry.kid, condition)
    registration = create_pending_registration(
        gateway,
        user_id=entry.user_id,
        kid_id=entry.kid_id,
        activity_id=entry.activity_id,
        amount=price,
        price_type=price_type,
    )
    gateway.update(WAITING_LIST, entry_id, {"status": "converted"})
    return Conversion(entry_id=entry_id, registration=registration, price=price, price_type=price_type)


def cancel_entry(gateway: Gateway, entry_id: str) -> None:
    gateway.update(WAITING_LIST, entry_id, {"status": "cancelled"})


def remaining_offer_time(entry: WaitingListRow, *, now: datetime | None = None) -> timedelta | None:
    if entry.status != "invited" or entry.expires_at is None:
        return None
    current = now or datetime.now(timezone.utc)
    expires_at = entry.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return max(expires_at - current, timedelta(0))
