from fastapi import APIRouter, HTTPException, status

from campadmin.api.errors import http_error
from campadmin.core.errors import AdminError
from campadmin.integrations.gateway import get_gateway
from campadmin.schemas.common import CreditNoteCreateResponse, CreditNoteDraftRequest, CreditNoteDraftResponse
from campadmin.services.credit_notes import CreditNoteDraft, CreditNoteType, create_credit_note, load_draft

router = APIRouter()


def _build_draft(payload: CreditNoteDraftRequest) -> CreditNoteDraft:
    draft = load_draft(get_gateway(), payload.invoice_id).with_type(payload.type)
    if payload.registration_ids is not None and payload.type is not CreditNoteType.FULL:
        for registration_id in payload.registration_ids:
            draft = draft.toggle_registration(registration_id)
    if payload.amount is not None and payload.type is CreditNoteType.CUSTOM:
        draft = draft.with_amount(payload.amount)
    return draft.model_copy(
        update={
            "cancel_registrations": payload.cancel_registrations,
            "admin_notes": payload.admin_notes,
        }
    )


@router.post("/draft", response_model=CreditNoteDraftResponse)
def preview_credit_note(payload: CreditNoteDraftRequest):
    try:
        draft = _build_draft(payload)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {"draft": draft.model_dump(mode="json"), "errors": draft.errors()}


@router.post("", response_model=CreditNoteCreateResponse)
def issue_credit_note(payload: CreditNoteDraftRequest):
    try:
        draft = _build_draft(payload)
        errors = draft.errors()
        if errors:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={"message": "The credit note is incomplete.", "field_errors": errors},
            )
        result = create_credit_note(get_gateway(), draft)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {"ok": True, "invoice_id": payload.invoice_id, "result": result}
