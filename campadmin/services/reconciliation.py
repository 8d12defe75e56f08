from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from campadmin.core.config import settings
from campadmin.core.errors import AdminError, ValidationError
from campadmin.entities.models import BankTransactionRow, InvoiceRow
from campadmin.entities.query import ListQuery, Predicate, SortSpec
from campadmin.entities.registry import BANK_TRANSACTIONS, INVOICES
from campadmin.integrations.gateway import Gateway, ensure_procedure_success

logger = logging.getLogger(__name__)

MATCH_FUNCTION = "match-transaction-to-invoice"
IMPORT_FUNCTION = "process-csv-file"

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class ReconciliationSummary:
    matched: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class StatementImport:
    file_path: str
    batch_id: str
    transactions: int | None
    result: Any


def amounts_match(left: float, right: float) -> bool:
    return abs(float(left) - float(right)) < settings.amount_match_tolerance


def _candidate_matches_search(invoice: InvoiceRow, term: str) -> bool:
    user = invoice.user
    haystack = [invoice.invoice_number, invoice.communication]
    if user is not None:
        haystack.extend([user.prenom, user.nom, user.email])
    return any(term in value.lower() for value in haystack if value)


def _pending_invoices(gateway: Gateway) -> list[InvoiceRow]:
    invoices: list[InvoiceRow] = []
    page = 1
    while True:
        result = gateway.list(
            INVOICES,
            ListQuery(
                predicates=[Predicate("status", "eq", "pending")],
                sort=SortSpec("created_at", descending=True),
                page=page,
                page_size=settings.list_max_page_size,
            ),
        )
        invoices.extend(result.rows)
        if not result.rows or len(invoices) >= result.total_count:
            return invoices
        page += 1


def list_match_candidates(
    gateway: Gateway,
    transaction: BankTransactionRow,
    search: str = "",
) -> list[InvoiceRow]:
    """Pending invoices a transaction could settle, exact-amount matches first."""
    invoices = _pending_invoices(gateway)

    term = (search or "").strip().lower()
    if term:
        invoices = [invoice for invoice in invoices if _candidate_matches_search(invoice, term)]

    # sorted() is stable, so newest-first order holds within each group.
    return sorted(invoices, key=lambda invoice: not amounts_match(invoice.amount, transaction.amount))


def match_transaction(gateway: Gateway, transaction_id: str, invoice_id: str) -> Any:
    result = gateway.call_function(
        MATCH_FUNCTION,
        {"transaction_id": transaction_id, "invoice_id": invoice_id},
    )
    return ensure_procedure_success(result, MATCH_FUNCTION)


def reconcile_pending(gateway: Gateway) -> ReconciliationSummary:
    transactions = gateway.select_rows(
        BANK_TRANSACTIONS.table,
        predicates=[Predicate("status", "eq", "unmatched")],
    )
    invoices = gateway.select_rows(
        INVOICES.table,
        columns="id, invoice_number, amount",
        predicates=[Predicate("status", "eq", "pending")],
    )

    summary = ReconciliationSummary()
    for transaction in transactions:
        number = transaction.get("extracted_invoice_number")
        if not number:
            summary.skipped += 1
            continue
        invoice = next(
            (
                candidate
                for candidate in invoices
                if candidate.get("invoice_number") == number
                and amounts_match(candidate.get("amount") or 0, transaction.get("amount") or 0)
            ),
            None,
        )
        if invoice is None:
            summary.skipped += 1
            continue
        try:
            match_transaction(gateway, str(transaction["id"]), str(invoice["id"]))
        except AdminError as exc:
            summary.failed += 1
            summary.errors.append(f"{number}: {exc.message}")
            logger.warning("Matching transaction %s to %s failed: %s", transaction["id"], invoice["id"], exc.message)
            continue
        summary.matched += 1
        # One transaction settles one invoice.
        invoices = [candidate for candidate in invoices if candidate is not invoice]

    logger.info(
        "Reconciliation done: matched=%s failed=%s skipped=%s",
        summary.matched,
        summary.failed,
        summary.skipped,
    )
    return summary


def import_statement(
    gateway: Gateway,
    filename: str,
    content: bytes,
    *,
    now: datetime | None = None,
) -> StatementImport:
    if not content:
        raise ValidationError("The statement file is empty.", field_errors={"file": "Empty file."})
    if not filename.lower().endswith(".csv"):
        raise ValidationError("Only CSV statements can be imported.", field_errors={"file": "Expected a .csv file."})

    stamp = int((now or datetime.now(timezone.utc)).timestamp() * 1000)
    safe_name = _UNSAFE_FILENAME.sub("_", filename).strip("_") or "statement.csv"
    file_path = f"imports/{stamp}_{safe_name}"
    batch_id = f"batch-{stamp}"

    gateway.upload(settings.csv_import_bucket, file_path, content, "text/csv")
    result = ensure_procedure_success(
        gateway.call_function(IMPORT_FUNCTION, {"filePath": file_path, "batchId": batch_id}),
        IMPORT_FUNCTION,
    )
    transactions = result.get("transactions") if isinstance(result, dict) else None
    logger.info("Imported statement %s as %s (%s transactions)", file_path, batch_id, transactions)
    return StatementImport(file_path=file_path, batch_id=batch_id, transactions=transactions, result=result)


def invoice_payment_summary(gateway: Gateway, invoice_number: str) -> dict[str, Any]:
    result = gateway.invoke("get_invoice_payment_summary", {"p_invoice_number": invoice_number})
    return ensure_procedure_success(result, "get_invoice_payment_summary")


def reconcile_invoice(gateway: Gateway, invoice_number: str) -> dict[str, Any]:
    result = gateway.invoke("reconcile_invoice", {"p_invoice_number": invoice_number})
    ensure_procedure_success(result, "reconcile_invoice")
    logger.info("Invoice %s reconciled", invoice_number)
    return invoice_payment_summary(gateway, invoice_number)
