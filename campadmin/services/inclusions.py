from __future__ import annotations

import logging
from typing import Any

from campadmin.core.errors import NotFoundError, ValidationError
from campadmin.entities.models import InclusionRequestRow
from campadmin.entities.registry import INCLUSION_REQUESTS, SESSIONS
from campadmin.services.registrations import create_pending_registration
from campadmin.integrations.gateway import Gateway

logger = logging.getLogger(__name__)

DECISION_STATUSES = ("approved", "rejected", "converted")


def set_status(gateway: Gateway, request_id: str, status: str, admin_notes: str | None = None) -> None:
    if status not in DECISION_STATUSES:
        raise ValidationError(
            "Unknown inclusion request status.",
            field_errors={"status": f"Must be one of: {', '.join(DECISION_STATUSES)}."},
        )
    updates: dict[str, Any] = {"status": status}
    if admin_notes is not None:
        updates["admin_notes"] = admin_notes
    gateway.update(INCLUSION_REQUESTS, request_id, updates)
    logger.info("Inclusion request %s set to %s", request_id, status)


def convert_to_registration(gateway: Gateway, request_id: str) -> dict[str, Any]:
    request: InclusionRequestRow = gateway.get(INCLUSION_REQUESTS, request_id)
    if request.status == "converted":
        raise ValidationError("This inclusion request was already converted.")
    if not request.activity_id:
        raise NotFoundError("Session not found for this inclusion request.")

    if request.session is not None and request.session.prix_normal is not None:
        price = request.session.prix_normal
    else:
        price = gateway.get(SESSIONS, request.activity_id).prix_normal

    registration = create_pending_registration(
        gateway,
        user_id=request.user_id,
        kid_id=request.kid_id,
        activity_id=request.activity_id,
        amount=price,
        price_type="normal",
    )
    gateway.update(INCLUSION_REQUESTS, request_id, {"status": "converted"})
    return registration
