from __future__ import annotations

from datetime import date, datetime
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from campadmin.core.status import canonical_status

PERIODES = ("Détente", "Printemps", "Été", "Automne", "Hiver")
SEMAINES = tuple(f"S{index}" for index in range(1, 8))


class RowModel(BaseModel):
    """A backend row parsed at the gateway boundary."""

    model_config = ConfigDict(extra="ignore")

    status_kind: ClassVar[str | None] = None

    id: str

    @model_validator(mode="before")
    @classmethod
    def _canonical_status(cls, data: Any) -> Any:
        if cls.status_kind and isinstance(data, dict) and "status" in data:
            data = dict(data)
            data["status"] = canonical_status(cls.status_kind, data.get("status"))
        return data


class RelatedModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


# --- embedded relations ---------------------------------------------------


class PersonRef(RelatedModel):
    prenom: str | None = None
    nom: str | None = None
    email: str | None = None
    telephone: str | None = None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.prenom, self.nom) if part)


class KidRef(RelatedModel):
    prenom: str | None = None
    nom: str | None = None
    cpostal: str | None = None
    ecole: str | None = None


class StageRef(RelatedModel):
    title: str | None = None


class CenterRef(RelatedModel):
    name: str | None = None


class SessionRef(RelatedModel):
    start_date: date | None = None
    end_date: date | None = None
    stage: StageRef | None = None
    center: CenterRef | None = None
    prix_normal: float | None = None
    prix_reduit: float | None = None
    prix_local: float | None = None
    prix_local_reduit: float | None = None
    tarif_condition_id: str | None = None


class RegistrationRef(RelatedModel):
    amount_paid: float | None = None
    payment_status: str | None = None
    invoice_id: str | None = None


# --- rows -----------------------------------------------------------------


class CenterRow(RowModel):
    created_at: datetime | None = None
    name: str
    address: str | None = None
    address2: str | None = None
    postal_code: str | None = None
    city: str | None = None
    tag: str | None = None
    phone: str | None = None
    active: bool = True


class StageRow(RowModel):
    created_at: datetime | None = None
    title: str
    description: str | None = None
    age_min: int
    age_max: int
    base_price: float
    image_url: str | None = None
    active: bool = True


class SessionRow(RowModel):
    created_at: datetime | None = None
    stage_id: str
    center_id: str
    periode: str | None = None
    semaine: str | None = None
    start_date: date
    end_date: date
    nombre_jours: int | None = None
    capacity: int = 0
    current_registrations: int = 0
    prix_normal: float = 0
    prix_reduit: float | None = None
    prix_local: float | None = None
    prix_local_reduit: float | None = None
    remarques: str | None = None
    tarif_condition_id: str | None = None
    visible_from: datetime | None = None
    active: bool = True
    stage: StageRef | None = None
    center: CenterRef | None = None


class SchoolRow(RowModel):
    created_at: datetime | None = None
    name: str
    code_postal: str
    active: bool = True


class TarifConditionRow(RowModel):
    created_at: datetime | None = None
    label: str
    code_postaux_autorises: list[str] = Field(default_factory=list)
    school_ids: list[str] = Field(default_factory=list)
    active: bool = True

    @field_validator("code_postaux_autorises", "school_ids", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def allows(self, *, postal_code: str | None, school_id: str | None) -> bool:
        postal_match = bool(postal_code) and postal_code in self.code_postaux_autorises
        school_match = bool(school_id) and school_id in self.school_ids
        return postal_match or school_match


class InvoiceRow(RowModel):
    status_kind: ClassVar[str | None] = "invoice"

    created_at: datetime | None = None
    user_id: str | None = None
    invoice_number: str
    amount: float
    status: str = "pending"
    due_date: datetime | None = None
    paid_at: datetime | None = None
    pdf_url: str | None = None
    communication: str | None = None
    registration_ids: list[str] = Field(default_factory=list)
    user: PersonRef | None = None

    @field_validator("registration_ids", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class CreditNoteRow(RowModel):
    status_kind: ClassVar[str | None] = "credit_note"

    created_at: datetime | None = None
    user_id: str | None = None
    registration_id: str | None = None
    cancellation_request_id: str | None = None
    invoice_id: str | None = None
    invoice_number: str | None = None
    credit_note_number: str
    amount: float
    pdf_url: str | None = None
    status: str = "issued"
    user: PersonRef | None = None


class BankTransactionRow(RowModel):
    status_kind: ClassVar[str | None] = "bank_transaction"

    created_at: datetime | None = None
    transaction_date: date
    amount: float
    currency: str = "EUR"
    communication: str | None = None
    account_number: str | None = None
    account_name: str | None = None
    bank_reference: str | None = None
    status: str = "unmatched"
    invoice_id: str | None = None
    import_batch_id: str | None = None
    notes: str | None = None
    extracted_invoice_number: str | None = None
    movement_number: str | None = None
    counterparty_name: str | None = None
    counterparty_address: str | None = None


class CancellationRequestRow(RowModel):
    status_kind: ClassVar[str | None] = "cancellation_request"

    created_at: datetime | None = None
    user_id: str | None = None
    registration_id: str | None = None
    kid_id: str | None = None
    activity_id: str | None = None
    request_date: datetime | None = None
    status: str = "pending"
    parent_notes: str | None = None
    admin_notes: str | None = None
    refund_type: Literal["full", "partial", "none"] | None = None
    credit_note_id: str | None = None
    credit_note_url: str | None = None
    registration: RegistrationRef | None = None
    kid: KidRef | None = None
    session: SessionRef | None = None
    user: PersonRef | None = None


class InclusionRequestRow(RowModel):
    status_kind: ClassVar[str | None] = "inclusion_request"

    user_id: str | None = None
    kid_id: str | None = None
    activity_id: str | None = None
    request_date: datetime | None = None
    status: str = "pending"
    inclusion_details: dict[str, Any] = Field(default_factory=dict)
    admin_notes: str | None = None
    kid: KidRef | None = None
    parent: PersonRef | None = None
    session: SessionRef | None = None


class WaitingListRow(RowModel):
    status_kind: ClassVar[str | None] = "waiting_list"

    created_at: datetime | None = None
    activity_id: str
    kid_id: str
    user_id: str | None = None
    invited_at: datetime | None = None
    expires_at: datetime | None = None
    status: str = "waiting"
    kid: KidRef | None = None
    parent: PersonRef | None = None
    session: SessionRef | None = None


class NewsletterSubscriberRow(RowModel):
    email: str
    user_id: str | None = None
    subscribed_at: datetime | None = None
    source: str | None = None
    active: bool = True
    unsubscribed_at: datetime | None = None
    user: PersonRef | None = None


# --- write models (form buffers are coerced through these) -------------------


class WriteModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _blank_as_none(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: (None if isinstance(value, str) and not value.strip() else value) for key, value in data.items()}
        return data


class CenterWrite(WriteModel):
    name: str
    address: str
    address2: str | None = None
    postal_code: str
    city: str
    tag: str
    phone: str | None = None
    active: bool = True


class StageWrite(WriteModel):
    title: str
    description: str | None = None
    age_min: int
    age_max: int
    base_price: float = Field(ge=0)
    image_url: str | None = None
    active: bool = True


class SessionWrite(WriteModel):
    stage_id: str
    center_id: str
    periode: Literal["Détente", "Printemps", "Été", "Automne", "Hiver"]
    semaine: str | None = None
    start_date: date
    end_date: date
    nombre_jours: int | None = Field(default=None, ge=1)
    capacity: int = Field(ge=0)
    prix_normal: float = Field(ge=0)
    prix_reduit: float | None = Field(default=None, ge=0)
    prix_local: float | None = Field(default=None, ge=0)
    prix_local_reduit: float | None = Field(default=None, ge=0)
    remarques: str | None = None
    tarif_condition_id: str | None = None
    visible_from: datetime | None = None
    active: bool = True


class SchoolWrite(WriteModel):
    name: str
    code_postal: str
    active: bool = True


class TarifConditionWrite(WriteModel):
    label: str
    code_postaux_autorises: list[str] = Field(default_factory=list)
    school_ids: list[str] = Field(default_factory=list)
    active: bool = True

    @field_validator("code_postaux_autorises", "school_ids", mode="before")
    @classmethod
    def _split_codes(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [code.strip() for code in value.split(",") if code.strip()]
        return value


class InvoiceWrite(WriteModel):
    user_id: str
    invoice_number: str
    amount: float = Field(ge=0)
    status: Literal["pending", "paid", "cancelled"] = "pending"
    due_date: datetime | None = None
    communication: str
    registration_ids: list[str] = Field(default_factory=list)


class CreditNoteWrite(WriteModel):
    status: Literal["issued", "sent"] = "issued"
    pdf_url: str | None = None


class BankTransactionWrite(WriteModel):
    status: Literal["unmatched", "matched", "partially_matched", "overpaid", "ignored"] = "unmatched"
    notes: str | None = None
    invoice_id: str | None = None


class CancellationRequestWrite(WriteModel):
    status: Literal["pending", "approved", "rejected"] = "pending"
    admin_notes: str | None = None
    refund_type: Literal["full", "partial", "none"] | None = None


class InclusionRequestWrite(WriteModel):
    status: Literal["pending", "approved", "rejected", "converted"] = "pending"
    admin_notes: str | None = None


class WaitingListWrite(WriteModel):
    activity_id: str
    kid_id: str
    user_id: str
    status: Literal["waiting", "invited", "converted", "cancelled"] = "waiting"


class NewsletterSubscriberWrite(WriteModel):
    email: str
    source: str | None = "admin"
    active: bool = True
