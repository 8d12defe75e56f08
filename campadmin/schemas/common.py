from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from campadmin.services.credit_notes import CreditNoteType


class RecordResponse(BaseModel):
    ok: bool = True
    record: dict[str, Any]
    warning: str | None = None


class DeleteResponse(BaseModel):
    ok: bool = True
    id: str


class OkResponse(BaseModel):
    ok: bool = True
    id: str
    status: str | None = None


class CandidateListResponse(BaseModel):
    items: list[dict[str, Any]]
    count: int


class MatchRequest(BaseModel):
    invoice_id: str


class MatchResponse(BaseModel):
    ok: bool = True
    transaction_id: str
    invoice_id: str
    result: Any = None


class ReconciliationResponse(BaseModel):
    matched: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)


class StatementImportResponse(BaseModel):
    ok: bool = True
    file_path: str
    batch_id: str
    transactions: int | None = None


class CancellationApproveRequest(BaseModel):
    refund_type: Literal["full", "partial", "none"] = "none"
    admin_notes: str | None = None


class AdminNotesRequest(BaseModel):
    admin_notes: str | None = None


class CreditNoteDraftRequest(BaseModel):
    invoice_id: str
    type: CreditNoteType = CreditNoteType.FULL
    registration_ids: list[str] | None = None
    amount: float | None = Field(default=None, ge=0)
    cancel_registrations: bool = True
    admin_notes: str = ""


class CreditNoteDraftResponse(BaseModel):
    draft: dict[str, Any]
    errors: dict[str, str] = Field(default_factory=dict)


class CreditNoteCreateResponse(BaseModel):
    ok: bool = True
    invoice_id: str
    result: Any = None


class SeatOfferResponse(BaseModel):
    ok: bool = True
    id: str
    invited_at: datetime
    expires_at: datetime
    notified: bool
    warning: str | None = None


class ConversionResponse(BaseModel):
    ok: bool = True
    id: str
    registration: dict[str, Any]
    price: float
    price_type: str


class InclusionStatusRequest(BaseModel):
    status: Literal["approved", "rejected", "converted"]
    admin_notes: str | None = None


class NewsletterImportRequest(BaseModel):
    emails: str = Field(min_length=1)


class NewsletterImportResponse(BaseModel):
    imported: int = 0
    failed: int = 0
    invalid: list[str] = Field(default_factory=list)


class NewsletterToggleResponse(BaseModel):
    ok: bool = True
    id: str
    active: bool
    unsubscribed_at: str | None = None


class StructuredReferenceResponse(BaseModel):
    reference: str


class StructuredReferenceValidateRequest(BaseModel):
    reference: str


class StructuredReferenceValidateResponse(BaseModel):
    reference: str
    valid: bool


class ReportFiltersResponse(BaseModel):
    periodes: list[Any] = Field(default_factory=list)
    centers: list[Any] = Field(default_factory=list)
    semaines: list[Any] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)
