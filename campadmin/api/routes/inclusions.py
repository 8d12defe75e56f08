from fastapi import APIRouter

from campadmin.api.errors import http_error
from campadmin.core.errors import AdminError
from campadmin.integrations.gateway import get_gateway
from campadmin.schemas.common import ConversionResponse, InclusionStatusRequest, OkResponse
from campadmin.services import inclusions

router = APIRouter()


@router.put("/{request_id}/status", response_model=OkResponse)
def set_inclusion_status(request_id: str, payload: InclusionStatusRequest):
    try:
        inclusions.set_status(get_gateway(), request_id, payload.status, payload.admin_notes)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {"ok": True, "id": request_id, "status": payload.status}


@router.post("/{request_id}/convert", response_model=ConversionResponse)
def convert_inclusion_request(request_id: str):
    try:
        registration = inclusions.convert_to_registration(get_gateway(), request_id)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {
        "ok": True,
        "id": request_id,
        "registration": registration,
        "price": registration.get("amount_paid") or 0.0,
        "price_type": "normal",
    }
