from fastapi import APIRouter

from campadmin.core.structured_reference import generate_structured_reference, is_valid_structured_reference
from campadmin.schemas.common import (
    StructuredReferenceResponse,
    StructuredReferenceValidateRequest,
    StructuredReferenceValidateResponse,
)

router = APIRouter()


@router.get("/structured", response_model=StructuredReferenceResponse)
def new_structured_reference():
    return {"reference": generate_structured_reference()}


@router.post("/structured/validate", response_model=StructuredReferenceValidateResponse)
def validate_structured_reference(payload: StructuredReferenceValidateRequest):
    return {"reference": payload.reference, "valid": is_valid_structured_reference(payload.reference)}
