from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from campadmin.core.errors import ValidationError
from campadmin.core.relations import unwrap_relation
from campadmin.entities.models import InvoiceRow
from campadmin.entities.query import Predicate
from campadmin.entities.registry import INVOICES
from campadmin.integrations.gateway import Gateway, ensure_procedure_success

logger = logging.getLogger(__name__)

CREATE_FUNCTION = "admin-create-credit-note"


class CreditNoteType(StrEnum):
    FULL = "full"
    PARTIAL = "partial"
    CUSTOM = "custom"


class RegistrationLine(BaseModel):
    id: str
    amount_paid: float = 0.0
    kid_name: str | None = None


class CreditNoteDraft(BaseModel):
    invoice_id: str
    invoice_amount: float
    registrations: list[RegistrationLine] = Field(default_factory=list)
    type: CreditNoteType = CreditNoteType.FULL
    registration_ids: list[str] = Field(default_factory=list)
    amount: float = 0.0
    cancel_registrations: bool = True
    admin_notes: str = ""

    @classmethod
    def for_invoice(cls, invoice: InvoiceRow, registrations: list[RegistrationLine]) -> CreditNoteDraft:
        return cls(
            invoice_id=invoice.id,
            invoice_amount=invoice.amount,
            registrations=registrations,
            type=CreditNoteType.FULL,
            registration_ids=[line.id for line in registrations],
            amount=invoice.amount,
        )

    def _line(self, registration_id: str) -> RegistrationLine:
        for line in self.registrations:
            if line.id == registration_id:
                return line
        raise ValidationError(
            "Registration does not belong to this invoice.",
            field_errors={"registration_ids": "Unknown registration."},
        )

    def with_type(self, credit_type: CreditNoteType | str) -> CreditNoteDraft:
        credit_type = CreditNoteType(credit_type)
        if credit_type is CreditNoteType.FULL:
            return self.model_copy(
                update={
                    "type": credit_type,
                    "amount": self.invoice_amount,
                    "registration_ids": [line.id for line in self.registrations],
                }
            )
        return self.model_copy(update={"type": credit_type, "amount": 0.0, "registration_ids": []})

    def toggle_registration(self, registration_id: str) -> CreditNoteDraft:
        line = self._line(registration_id)
        selected = list(self.registration_ids)
        amount = self.amount
        if registration_id in selected:
            selected.remove(registration_id)
            amount -= line.amount_paid
        else:
            if self.type is CreditNoteType.CUSTOM and selected:
                raise ValidationError(
                    "A custom credit note covers a single registration.",
                    field_errors={"registration_ids": "Only one registration can be selected."},
                )
            selected.append(registration_id)
            amount += line.amount_paid
        if self.type is CreditNoteType.CUSTOM:
            amount = self.amount
        return self.model_copy(update={"registration_ids": selected, "amount": round(amount, 2)})

    def with_amount(self, amount: float) -> CreditNoteDraft:
        if self.type is not CreditNoteType.CUSTOM:
            raise ValidationError(
                "Only custom credit notes take a free amount.",
                field_errors={"amount": "Amount is derived from the selection."},
            )
        return self.model_copy(update={"amount": round(float(amount), 2)})

    def errors(self) -> dict[str, str]:
        errors: dict[str, str] = {}
        if self.amount <= 0:
            errors["amount"] = "Amount must be greater than zero."
        elif self.amount - self.invoice_amount > 0.005:
            errors["amount"] = "Amount cannot exceed the invoice amount."
        if self.type is not CreditNoteType.FULL and not self.registration_ids:
            errors["registration_ids"] = "Select at least one registration."
        return errors


def load_draft(gateway: Gateway, invoice_id: str) -> CreditNoteDraft:
    invoice = gateway.get(INVOICES, invoice_id)
    lines: list[RegistrationLine] = []
    if invoice.registration_ids:
        rows = gateway.select_rows(
            "registrations",
            columns="id, amount_paid, kid:kid_id(prenom, nom)",
            predicates=[Predicate("id", "in", invoice.registration_ids)],
        )
        for row in rows:
            kid = unwrap_relation(row.get("kid")) or {}
            name = " ".join(part for part in (kid.get("prenom"), kid.get("nom")) if part)
            lines.append(
                RegistrationLine(id=str(row["id"]), amount_paid=row.get("amount_paid") or 0.0, kid_name=name or None)
            )
    return CreditNoteDraft.for_invoice(invoice, lines)


def create_credit_note(gateway: Gateway, draft: CreditNoteDraft) -> Any:
    errors = draft.errors()
    if errors:
        raise ValidationError("The credit note is incomplete.", field_errors=errors)

    result = gateway.call_function(
        CREATE_FUNCTION,
        {
            "invoiceId": draft.invoice_id,
            "type": draft.type.value,
            "registrationIds": draft.registration_ids,
            "amount": draft.amount,
            "cancelRegistrations": draft.cancel_registrations,
            "adminNotes": draft.admin_notes,
        },
    )
    ensure_procedure_success(result, CREATE_FUNCTION)
    logger.info("Credit note issued for invoice %s (%s, %.2f)", draft.invoice_id, draft.type, draft.amount)
    return result
