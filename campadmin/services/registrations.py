from __future__ import annotations

import logging
from typing import Any

from campadmin.entities.models import KidRef, SessionRef, TarifConditionRow
from campadmin.integrations.gateway import Gateway

logger = logging.getLogger(__name__)

REGISTRATIONS_TABLE = "registrations"


def resolve_price(
    session: SessionRef,
    kid: KidRef | None,
    condition: TarifConditionRow | None,
) -> tuple[float, str]:
    """Pick the local price when the kid qualifies for the session's pricing condition."""
    normal = session.prix_normal or 0.0
    if not session.prix_local or condition is None or kid is None:
        return normal, "normal"
    if condition.allows(postal_code=kid.cpostal, school_id=kid.ecole):
        return session.prix_local, "local"
    return normal, "normal"


def create_pending_registration(
    gateway: Gateway,
    *,
    user_id: str | None,
    kid_id: str | None,
    activity_id: str | None,
    amount: float,
    price_type: str,
) -> dict[str, Any]:
    row = gateway.insert_row(
        REGISTRATIONS_TABLE,
        {
            "user_id": user_id,
            "kid_id": kid_id,
            "activity_id": activity_id,
            "payment_status": "pending",
            "amount_paid": amount,
            "price_type": price_type,
            "reduced_declaration": False,
        },
    )
    logger.info("Registration created for kid %s on session %s (%s, %.2f)", kid_id, activity_id, price_type, amount)
    return row
