from fastapi import APIRouter

from campadmin.api.errors import http_error
from campadmin.core.errors import AdminError
from campadmin.integrations.gateway import get_gateway
from campadmin.schemas.common import AdminNotesRequest, CancellationApproveRequest, OkResponse
from campadmin.services import cancellations

router = APIRouter()


@router.post("/{request_id}/approve", response_model=OkResponse)
def approve_cancellation(request_id: str, payload: CancellationApproveRequest):
    try:
        cancellations.approve(get_gateway(), request_id, payload.refund_type, payload.admin_notes)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {"ok": True, "id": request_id, "status": "approved"}


@router.post("/{request_id}/reject", response_model=OkResponse)
def reject_cancellation(request_id: str, payload: AdminNotesRequest):
    try:
        cancellations.reject(get_gateway(), request_id, payload.admin_notes)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {"ok": True, "id": request_id, "status": "rejected"}


@router.put("/{request_id}/notes", response_model=OkResponse)
def save_cancellation_notes(request_id: str, payload: AdminNotesRequest):
    try:
        cancellations.save_notes(get_gateway(), request_id, payload.admin_notes)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {"ok": True, "id": request_id}
