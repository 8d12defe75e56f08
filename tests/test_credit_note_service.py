import pytest

from campadmin.core.errors import ValidationError
from campadmin.services.credit_notes import (
    CREATE_FUNCTION,
    CreditNoteDraft,
    CreditNoteType,
    RegistrationLine,
    create_credit_note,
    load_draft,
)


def _draft() -> CreditNoteDraft:
    return CreditNoteDraft(
        invoice_id="inv-1",
        invoice_amount=300.0,
        registrations=[
            RegistrationLine(id="reg-1", amount_paid=120.0),
            RegistrationLine(id="reg-2", amount_paid=180.0),
        ],
        registration_ids=["reg-1", "reg-2"],
        amount=300.0,
    )


def test_full_draft_covers_the_invoice() -> None:
    draft = _draft().with_type("partial").with_type(CreditNoteType.FULL)
    assert draft.amount == 300.0
    assert draft.registration_ids == ["reg-1", "reg-2"]
    assert draft.errors() == {}


def test_partial_draft_sums_selected_registrations() -> None:
    draft = _draft().with_type("partial")
    assert draft.amount == 0.0
    assert draft.errors()["registration_ids"] == "Select at least one registration."

    draft = draft.toggle_registration("reg-2")
    assert draft.amount == 180.0
    draft = draft.toggle_registration("reg-1").toggle_registration("reg-2")
    assert draft.registration_ids == ["reg-1"]
    assert draft.amount == 120.0


def test_custom_draft_takes_one_registration_and_a_free_amount() -> None:
    draft = _draft().with_type("custom").toggle_registration("reg-1")
    with pytest.raises(ValidationError):
        draft.toggle_registration("reg-2")

    draft = draft.with_amount(45.5)
    assert draft.amount == 45.5
    assert draft.errors() == {}
    assert draft.with_amount(400).errors()["amount"] == "Amount cannot exceed the invoice amount."


def test_free_amount_is_custom_only() -> None:
    with pytest.raises(ValidationError):
        _draft().with_amount(10)


def test_unknown_registration_is_refused() -> None:
    with pytest.raises(ValidationError):
        _draft().with_type("partial").toggle_registration("reg-9")


def test_load_draft_reads_invoice_registrations(gateway) -> None:
    gateway.tables["invoices"] = [
        {"id": "inv-1", "invoice_number": "F-1", "amount": 300.0, "registration_ids": ["reg-1", "reg-2"]}
    ]
    gateway.tables["registrations"] = [
        {"id": "reg-1", "amount_paid": 120.0, "kid": [{"prenom": "Lou", "nom": "Martin"}]},
        {"id": "reg-2", "amount_paid": 180.0, "kid": None},
        {"id": "reg-3", "amount_paid": 99.0, "kid": None},
    ]

    draft = load_draft(gateway, "inv-1")

    assert [line.id for line in draft.registrations] == ["reg-1", "reg-2"]
    assert draft.registrations[0].kid_name == "Lou Martin"
    assert draft.amount == 300.0
    assert draft.type is CreditNoteType.FULL


def test_create_credit_note_posts_the_draft(gateway) -> None:
    draft = _draft().with_type("partial").toggle_registration("reg-1")

    create_credit_note(gateway, draft)

    assert gateway.calls_to("call_function") == [
        (
            "call_function",
            CREATE_FUNCTION,
            {
                "invoiceId": "inv-1",
                "type": "partial",
                "registrationIds": ["reg-1"],
                "amount": 120.0,
                "cancelRegistrations": True,
                "adminNotes": "",
            },
        )
    ]


def test_incomplete_draft_is_not_sent(gateway) -> None:
    with pytest.raises(ValidationError):
        create_credit_note(gateway, _draft().with_type("partial"))
    assert gateway.calls == []
