from __future__ import annotations

from collections.abc import Callable, Mapping
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from campadmin.controllers.validation import (
    DateOrder,
    EmailFormat,
    NotLessThan,
    NumberRange,
    OneOf,
    Required,
    Rule,
)
from campadmin.core.config import settings
from campadmin.core.errors import NotFoundError, ValidationError
from campadmin.core.formatting import format_currency, format_date, format_datetime
from campadmin.core.status import CANONICAL_STATUSES
from campadmin.core.structured_reference import generate_structured_reference
from campadmin.entities import models
from campadmin.entities.query import Predicate, PredicateOp, SortSpec

_ALL = "all"


@dataclass(frozen=True)
class FilterSpec:
    column: str
    op: PredicateOp = "eq"
    choices: Mapping[str, Any] | None = None

    def to_predicate(self, value: Any) -> Predicate | None:
        if value is None:
            return None
        if isinstance(value, str):
            value = value.strip()
            if not value or value.lower() == _ALL:
                return None
        if self.choices is not None:
            if value not in self.choices:
                raise KeyError(value)
            value = self.choices[value]
        if self.op in ("like", "ilike"):
            value = f"%{value}%"
        return Predicate(self.column, self.op, value)


@dataclass(frozen=True)
class CsvColumn:
    header: str
    path: str
    formatter: Callable[[Any], str] | None = None

    def resolve(self, row: Any) -> Any:
        value = row
        for part in self.path.split("."):
            if value is None:
                return None
            if isinstance(value, Mapping):
                value = value.get(part)
            else:
                value = getattr(value, part, None)
        return value


@dataclass(frozen=True)
class EntityDefinition:
    name: str
    table: str
    label: str
    model: type[models.RowModel]
    write_model: type[BaseModel]
    select: str = "*"
    relations: tuple[str, ...] = ()
    search_fields: tuple[str, ...] = ()
    filters: Mapping[str, FilterSpec] = field(default_factory=dict)
    default_sort: SortSpec = SortSpec("created_at", descending=True)
    sortable: tuple[str, ...] = ()
    page_size: int | None = None
    create_defaults: Mapping[str, Any] | Callable[[], dict[str, Any]] = field(default_factory=dict)
    rules: tuple[Rule, ...] = ()
    creatable: bool = True
    deletable: bool = True
    image_bucket: str | None = None
    csv_columns: tuple[CsvColumn, ...] = ()
    export_prefix: str | None = None

    @property
    def editable(self) -> tuple[str, ...]:
        return tuple(self.write_model.model_fields)

    @property
    def sort_fields(self) -> tuple[str, ...]:
        return self.sortable or (self.default_sort.field,)

    def initial_buffer(self) -> dict[str, Any]:
        defaults = self.create_defaults() if callable(self.create_defaults) else self.create_defaults
        return deepcopy(dict(defaults))

    def predicates(self, filters: Mapping[str, Any]) -> list[Predicate]:
        predicates: list[Predicate] = []
        for name, value in filters.items():
            spec = self.filters.get(name)
            if spec is None:
                continue
            try:
                predicate = spec.to_predicate(value)
            except KeyError:
                raise ValidationError(
                    f"Unknown value '{value}' for filter '{name}'.",
                    field_errors={name: "Unknown value."},
                ) from None
            if predicate is not None:
                predicates.append(predicate)
        return predicates


def _invoice_defaults() -> dict[str, Any]:
    return {
        "status": "pending",
        "communication": generate_structured_reference(),
        "registration_ids": [],
    }


def _yes_no(value: Any) -> str:
    return "yes" if value else "no"


def _status_filter(kind: str) -> FilterSpec:
    return FilterSpec("status", choices={status: status for status in CANONICAL_STATUSES[kind]})


_PERSON = "prenom, nom, email, telephone"
_KID = "prenom, nom, cpostal, ecole"
_SESSION_SUMMARY = "start_date, end_date, stage:stage_id(title), center:center_id(name)"
_SESSION_PRICING = (
    "start_date, end_date, prix_normal, prix_reduit, prix_local, prix_local_reduit, "
    "tarif_condition_id, stage:stage_id(title), center:center_id(name)"
)

_STAGE_AGE_MESSAGE = f"Age must be between {settings.stage_age_floor} and {settings.stage_age_ceiling}."


CENTERS = EntityDefinition(
    name="centers",
    table="centers",
    label="Center",
    model=models.CenterRow,
    write_model=models.CenterWrite,
    search_fields=("name", "city", "tag"),
    filters={"active": FilterSpec("active", choices={"active": True, "inactive": False})},
    default_sort=SortSpec("name"),
    sortable=("name", "city", "postal_code", "created_at"),
    create_defaults={"active": True},
    rules=(Required(("name", "address", "postal_code", "city", "tag")),),
    csv_columns=(
        CsvColumn("Name", "name"),
        CsvColumn("Address", "address"),
        CsvColumn("Postal code", "postal_code"),
        CsvColumn("City", "city"),
        CsvColumn("Tag", "tag"),
        CsvColumn("Phone", "phone"),
        CsvColumn("Active", "active", _yes_no),
    ),
    export_prefix="centres",
)

STAGES = EntityDefinition(
    name="stages",
    table="stages",
    label="Stage",
    model=models.StageRow,
    write_model=models.StageWrite,
    search_fields=("title", "description"),
    filters={"active": FilterSpec("active", choices={"active": True, "inactive": False})},
    default_sort=SortSpec("title"),
    sortable=("title", "age_min", "base_price", "created_at"),
    create_defaults={"description": "", "active": True},
    rules=(
        Required(("title", "age_min", "age_max", "base_price")),
        NumberRange("age_min", settings.stage_age_floor, settings.stage_age_ceiling, _STAGE_AGE_MESSAGE),
        NumberRange("age_max", settings.stage_age_floor, settings.stage_age_ceiling, _STAGE_AGE_MESSAGE),
        NotLessThan("age_max", "age_min", "Maximum age cannot be below minimum age."),
        NumberRange("base_price", minimum=0),
    ),
    image_bucket=settings.stage_image_bucket,
    csv_columns=(
        CsvColumn("Title", "title"),
        CsvColumn("Minimum age", "age_min"),
        CsvColumn("Maximum age", "age_max"),
        CsvColumn("Base price", "base_price", format_currency),
        CsvColumn("Active", "active", _yes_no),
    ),
    export_prefix="stages",
)

SESSIONS = EntityDefinition(
    name="sessions",
    table="sessions",
    label="Session",
    model=models.SessionRow,
    write_model=models.SessionWrite,
    select="*, stage:stage_id(title), center:center_id(name)",
    relations=("stage", "center"),
    search_fields=("periode", "semaine", "remarques"),
    filters={
        "center_id": FilterSpec("center_id"),
        "stage_id": FilterSpec("stage_id"),
        "periode": FilterSpec("periode", choices={periode: periode for periode in models.PERIODES}),
        "semaine": FilterSpec("semaine", choices={semaine: semaine for semaine in models.SEMAINES}),
        "active": FilterSpec("active", choices={"active": True, "inactive": False}),
        "date_from": FilterSpec("start_date", "gte"),
        "date_to": FilterSpec("start_date", "lte"),
    },
    default_sort=SortSpec("start_date", descending=True),
    sortable=("start_date", "end_date", "capacity", "prix_normal", "created_at"),
    create_defaults={"capacity": 0, "active": True},
    rules=(
        Required(("stage_id", "center_id", "periode", "start_date", "end_date", "capacity", "prix_normal")),
        OneOf("periode", models.PERIODES),
        OneOf("semaine", models.SEMAINES),
        DateOrder("start_date", "end_date"),
        NumberRange("capacity", minimum=0),
        NumberRange("nombre_jours", minimum=1),
        NumberRange("prix_normal", minimum=0),
        NumberRange("prix_reduit", minimum=0),
        NumberRange("prix_local", minimum=0),
        NumberRange("prix_local_reduit", minimum=0),
    ),
    csv_columns=(
        CsvColumn("Stage", "stage.title"),
        CsvColumn("Center", "center.name"),
        CsvColumn("Period", "periode"),
        CsvColumn("Week", "semaine"),
        CsvColumn("Start", "start_date", format_date),
        CsvColumn("End", "end_date", format_date),
        CsvColumn("Capacity", "capacity"),
        CsvColumn("Registrations", "current_registrations"),
        CsvColumn("Price", "prix_normal", format_currency),
    ),
    export_prefix="sessions",
)

SCHOOLS = EntityDefinition(
    name="schools",
    table="schools",
    label="School",
    model=models.SchoolRow,
    write_model=models.SchoolWrite,
    search_fields=("name", "code_postal"),
    filters={
        "active": FilterSpec("active", choices={"active": True, "inactive": False}),
        "code_postal": FilterSpec("code_postal"),
    },
    default_sort=SortSpec("name"),
    sortable=("name", "code_postal"),
    create_defaults={"active": True},
    rules=(Required(("name", "code_postal")),),
    csv_columns=(
        CsvColumn("Name", "name"),
        CsvColumn("Postal code", "code_postal"),
        CsvColumn("Active", "active", _yes_no),
    ),
    export_prefix="ecoles",
)

TARIF_CONDITIONS = EntityDefinition(
    name="tarif-conditions",
    table="tarif_conditions",
    label="Pricing condition",
    model=models.TarifConditionRow,
    write_model=models.TarifConditionWrite,
    search_fields=("label",),
    filters={"active": FilterSpec("active", choices={"active": True, "inactive": False})},
    default_sort=SortSpec("label"),
    sortable=("label", "created_at"),
    create_defaults={"code_postaux_autorises": [], "school_ids": [], "active": True},
    rules=(Required(("label",)),),
    csv_columns=(
        CsvColumn("Label", "label"),
        CsvColumn("Postal codes", "code_postaux_autorises", lambda codes: ", ".join(codes or [])),
        CsvColumn("Active", "active", _yes_no),
    ),
    export_prefix="conditions_tarifaires",
)

INVOICES = EntityDefinition(
    name="invoices",
    table="invoices",
    label="Invoice",
    model=models.InvoiceRow,
    write_model=models.InvoiceWrite,
    select=f"*, user:user_id({_PERSON})",
    relations=("user",),
    search_fields=("invoice_number", "communication"),
    filters={
        "status": _status_filter("invoice"),
        "user_id": FilterSpec("user_id"),
        "date_from": FilterSpec("created_at", "gte"),
        "date_to": FilterSpec("created_at", "lte"),
    },
    default_sort=SortSpec("created_at", descending=True),
    sortable=("created_at", "due_date", "amount", "invoice_number"),
    create_defaults=_invoice_defaults,
    rules=(
        Required(("user_id", "invoice_number", "amount", "communication")),
        NumberRange("amount", minimum=0),
        OneOf("status", CANONICAL_STATUSES["invoice"]),
    ),
    deletable=False,
    csv_columns=(
        CsvColumn("Number", "invoice_number"),
        CsvColumn("Date", "created_at", format_date),
        CsvColumn("Parent", "user.full_name"),
        CsvColumn("E-mail", "user.email"),
        CsvColumn("Amount", "amount", format_currency),
        CsvColumn("Status", "status"),
        CsvColumn("Communication", "communication"),
        CsvColumn("Due date", "due_date", format_date),
    ),
    export_prefix="factures",
)

CREDIT_NOTES = EntityDefinition(
    name="credit-notes",
    table="credit_notes",
    label="Credit note",
    model=models.CreditNoteRow,
    write_model=models.CreditNoteWrite,
    select=f"*, user:user_id({_PERSON})",
    relations=("user",),
    search_fields=("credit_note_number", "invoice_number"),
    filters={"status": _status_filter("credit_note"), "invoice_id": FilterSpec("invoice_id")},
    default_sort=SortSpec("created_at", descending=True),
    sortable=("created_at", "amount", "credit_note_number"),
    rules=(OneOf("status", CANONICAL_STATUSES["credit_note"]),),
    creatable=False,
    deletable=False,
    csv_columns=(
        CsvColumn("Number", "credit_note_number"),
        CsvColumn("Date", "created_at", format_date),
        CsvColumn("Invoice", "invoice_number"),
        CsvColumn("Parent", "user.full_name"),
        CsvColumn("Amount", "amount", format_currency),
        CsvColumn("Status", "status"),
    ),
    export_prefix="notes_de_credit",
)

BANK_TRANSACTIONS = EntityDefinition(
    name="bank-transactions",
    table="bank_transactions",
    label="Bank transaction",
    model=models.BankTransactionRow,
    write_model=models.BankTransactionWrite,
    search_fields=(
        "communication",
        "account_name",
        "counterparty_name",
        "extracted_invoice_number",
        "movement_number",
    ),
    filters={
        "status": _status_filter("bank_transaction"),
        "date_from": FilterSpec("transaction_date", "gte"),
        "date_to": FilterSpec("transaction_date", "lte"),
        "amount_min": FilterSpec("amount", "gte"),
        "amount_max": FilterSpec("amount", "lte"),
        "import_batch_id": FilterSpec("import_batch_id"),
    },
    default_sort=SortSpec("transaction_date", descending=True),
    sortable=("transaction_date", "amount", "created_at"),
    rules=(OneOf("status", CANONICAL_STATUSES["bank_transaction"]),),
    creatable=False,
    csv_columns=(
        CsvColumn("Date", "transaction_date", format_date),
        CsvColumn("Movement", "movement_number"),
        CsvColumn("Amount", "amount", format_currency),
        CsvColumn("Currency", "currency"),
        CsvColumn("Counterparty", "counterparty_name"),
        CsvColumn("Account", "account_number"),
        CsvColumn("Communication", "communication"),
        CsvColumn("Invoice number", "extracted_invoice_number"),
        CsvColumn("Status", "status"),
        CsvColumn("Notes", "notes"),
    ),
    export_prefix="transactions_bancaires",
)

CANCELLATION_REQUESTS = EntityDefinition(
    name="cancellation-requests",
    table="cancellation_requests",
    label="Cancellation request",
    model=models.CancellationRequestRow,
    write_model=models.CancellationRequestWrite,
    select=(
        "*, registration:registration_id(amount_paid, payment_status, invoice_id), "
        f"kid:kid_id({_KID}), session:activity_id({_SESSION_SUMMARY}), user:user_id({_PERSON})"
    ),
    relations=("registration", "kid", "session.stage", "session.center", "user"),
    search_fields=("parent_notes", "admin_notes"),
    filters={
        "status": _status_filter("cancellation_request"),
        "refund_type": FilterSpec("refund_type", choices={"full": "full", "partial": "partial", "none": "none"}),
    },
    default_sort=SortSpec("request_date", descending=True),
    sortable=("request_date", "created_at"),
    rules=(
        OneOf("status", CANONICAL_STATUSES["cancellation_request"]),
        OneOf("refund_type", ("full", "partial", "none")),
    ),
    creatable=False,
    deletable=False,
    csv_columns=(
        CsvColumn("Date", "request_date", format_datetime),
        CsvColumn("Parent", "user.full_name"),
        CsvColumn("Child first name", "kid.prenom"),
        CsvColumn("Child last name", "kid.nom"),
        CsvColumn("Stage", "session.stage.title"),
        CsvColumn("Center", "session.center.name"),
        CsvColumn("Amount paid", "registration.amount_paid", format_currency),
        CsvColumn("Status", "status"),
        CsvColumn("Refund", "refund_type"),
    ),
    export_prefix="demandes_annulation",
)

INCLUSION_REQUESTS = EntityDefinition(
    name="inclusion-requests",
    table="inclusion_requests",
    label="Inclusion request",
    model=models.InclusionRequestRow,
    write_model=models.InclusionRequestWrite,
    select=(
        f"*, kid:kid_id({_KID}), parent:user_id({_PERSON}), "
        f"session:activity_id({_SESSION_PRICING})"
    ),
    relations=("kid", "parent", "session.stage", "session.center"),
    search_fields=("admin_notes",),
    filters={"status": _status_filter("inclusion_request"), "activity_id": FilterSpec("activity_id")},
    default_sort=SortSpec("request_date", descending=True),
    sortable=("request_date",),
    rules=(OneOf("status", CANONICAL_STATUSES["inclusion_request"]),),
    creatable=False,
    csv_columns=(
        CsvColumn("Date", "request_date", format_datetime),
        CsvColumn("Parent", "parent.full_name"),
        CsvColumn("Child first name", "kid.prenom"),
        CsvColumn("Child last name", "kid.nom"),
        CsvColumn("Stage", "session.stage.title"),
        CsvColumn("Status", "status"),
    ),
    export_prefix="demandes_inclusion",
)

WAITING_LIST = EntityDefinition(
    name="waiting-list",
    table="waiting_list",
    label="Waiting list entry",
    model=models.WaitingListRow,
    write_model=models.WaitingListWrite,
    select=(
        f"*, kid:kid_id({_KID}), parent:users!waiting_list_user_id_fkey({_PERSON}), "
        f"session:activity_id({_SESSION_PRICING})"
    ),
    relations=("kid", "parent", "session.stage", "session.center"),
    filters={"status": _status_filter("waiting_list"), "activity_id": FilterSpec("activity_id")},
    default_sort=SortSpec("created_at"),
    sortable=("created_at", "invited_at", "expires_at"),
    create_defaults={"status": "waiting"},
    rules=(
        Required(("activity_id", "kid_id", "user_id")),
        OneOf("status", CANONICAL_STATUSES["waiting_list"]),
    ),
    csv_columns=(
        CsvColumn("Registered", "created_at", format_datetime),
        CsvColumn("Parent", "parent.full_name"),
        CsvColumn("E-mail", "parent.email"),
        CsvColumn("Child first name", "kid.prenom"),
        CsvColumn("Child last name", "kid.nom"),
        CsvColumn("Stage", "session.stage.title"),
        CsvColumn("Status", "status"),
        CsvColumn("Offer expires", "expires_at", format_datetime),
    ),
    export_prefix="liste_attente",
)

NEWSLETTER_SUBSCRIBERS = EntityDefinition(
    name="newsletter-subscribers",
    table="newsletter_subscribers",
    label="Newsletter subscriber",
    model=models.NewsletterSubscriberRow,
    write_model=models.NewsletterSubscriberWrite,
    select="*, user:user_id(prenom, nom)",
    relations=("user",),
    search_fields=("email", "source"),
    filters={
        "status": FilterSpec("active", choices={"active": True, "inactive": False}),
        "source": FilterSpec("source"),
    },
    default_sort=SortSpec("subscribed_at", descending=True),
    sortable=("subscribed_at", "email"),
    create_defaults={"source": "admin", "active": True},
    rules=(Required(("email",)), EmailFormat("email")),
    csv_columns=(
        CsvColumn("E-mail", "email"),
        CsvColumn("Name", "user.full_name"),
        CsvColumn("Source", "source"),
        CsvColumn("Subscribed", "subscribed_at", format_date),
        CsvColumn("Active", "active", _yes_no),
    ),
    export_prefix="newsletter_subscribers",
)


ENTITIES: dict[str, EntityDefinition] = {
    entity.name: entity
    for entity in (
        CENTERS,
        STAGES,
        SESSIONS,
        SCHOOLS,
        TARIF_CONDITIONS,
        INVOICES,
        CREDIT_NOTES,
        BANK_TRANSACTIONS,
        CANCELLATION_REQUESTS,
        INCLUSION_REQUESTS,
        WAITING_LIST,
        NEWSLETTER_SUBSCRIBERS,
    )
}


def get_entity(name: str | EntityDefinition) -> EntityDefinition:
    if isinstance(name, EntityDefinition):
        return name
    entity = ENTITIES.get(name)
    if entity is None:
        raise NotFoundError(f"Unknown entity '{name}'.", details={"entity": name})
    return entity
