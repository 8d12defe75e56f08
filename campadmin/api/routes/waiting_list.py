from fastapi import APIRouter

from campadmin.api.errors import http_error
from campadmin.core.errors import AdminError
from campadmin.integrations.gateway import get_gateway
from campadmin.schemas.common import ConversionResponse, OkResponse, SeatOfferResponse
from campadmin.services import waiting_list

router = APIRouter()


@router.post("/{entry_id}/offer", response_model=SeatOfferResponse)
def offer_waiting_list_seat(entry_id: str):
    try:
        offer = waiting_list.offer_seat(get_gateway(), entry_id)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {
        "ok": True,
        "id": entry_id,
        "invited_at": offer.invited_at,
        "expires_at": offer.expires_at,
        "notified": offer.notified,
        "warning": offer.warning,
    }


@router.post("/{entry_id}/convert", response_model=ConversionResponse)
def convert_waiting_list_entry(entry_id: str):
    try:
        conversion = waiting_list.convert_to_registration(get_gateway(), entry_id)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {
        "ok": True,
        "id": entry_id,
        "registration": conversion.registration,
        "price": conversion.price,
        "price_type": conversion.price_type,
    }


@router.post("/{entry_id}/cancel", response_model=OkResponse)
def cancel_waiting_list_entry(entry_id: str):
    try:
        waiting_list.cancel_entry(get_gateway(), entry_id)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {"ok": True, "id": entry_id, "status": "cancelled"}
