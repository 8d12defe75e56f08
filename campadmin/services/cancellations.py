from __future__ import annotations

import logging
from typing import Any

from campadmin.core.errors import ValidationError
from campadmin.entities.models import CancellationRequestRow
from campadmin.entities.registry import CANCELLATION_REQUESTS
from campadmin.integrations.gateway import Gateway, ensure_procedure_success

logger = logging.getLogger(__name__)

APPROVAL_FUNCTION = "process-cancellation-approval"
REFUND_TYPES = ("full", "partial", "none")
PARTIAL_REFUND_RATIO = 0.5


def _pending_request(gateway: Gateway, request_id: str) -> CancellationRequestRow:
    request = gateway.get(CANCELLATION_REQUESTS, request_id)
    if request.status != "pending":
        raise ValidationError(
            f"This request has already been {request.status}.",
            details={"status": request.status},
        )
    return request


def refund_preview(request: CancellationRequestRow, refund_type: str) -> float:
    """Credit-note amount the approval function is expected to issue."""
    paid = (request.registration.amount_paid if request.registration else None) or 0.0
    if refund_type == "full":
        return round(paid, 2)
    if refund_type == "partial":
        return round(paid * PARTIAL_REFUND_RATIO, 2)
    return 0.0


def approve(gateway: Gateway, request_id: str, refund_type: str, admin_notes: str | None = None) -> Any:
    if refund_type not in REFUND_TYPES:
        raise ValidationError(
            "Unknown refund type.",
            field_errors={"refund_type": f"Must be one of: {', '.join(REFUND_TYPES)}."},
        )
    _pending_request(gateway, request_id)
    result = gateway.call_function(
        APPROVAL_FUNCTION,
        {
            "cancellationRequestId": request_id,
            "refundType": refund_type,
            "adminNotes": admin_notes or "",
        },
    )
    ensure_procedure_success(result, APPROVAL_FUNCTION)
    logger.info("Cancellation request %s approved (refund=%s)", request_id, refund_type)
    return result


def reject(gateway: Gateway, request_id: str, admin_notes: str | None = None) -> None:
    _pending_request(gateway, request_id)
    gateway.update(CANCELLATION_REQUESTS, request_id, {"status": "rejected", "admin_notes": admin_notes})
    logger.info("Cancellation request %s rejected", request_id)


def save_notes(gateway: Gateway, request_id: str, admin_notes: str | None) -> None:
    gateway.update(CANCELLATION_REQUESTS, request_id, {"admin_notes": admin_notes})
