from datetime import datetime, timezone

import pytest

from campadmin.core.errors import ProcedureError, ValidationError
from campadmin.entities.models import BankTransactionRow
from campadmin.services.reconciliation import (
    IMPORT_FUNCTION,
    MATCH_FUNCTION,
    import_statement,
    invoice_payment_summary,
    list_match_candidates,
    match_transaction,
    reconcile_invoice,
    reconcile_pending,
)


def _invoice(index: int, amount: float, **overrides) -> dict:
    row = {
        "id": f"inv-{index}",
        "invoice_number": f"F-2024-{index:03d}",
        "amount": amount,
        "status": "pending",
        "communication": f"+++000/0000/{index:05d}+++",
        "created_at": f"2024-04-{index:02d}T10:00:00+00:00",
        "user": {"prenom": "Parent", "nom": f"N{index}", "email": f"p{index}@example.be"},
    }
    row.update(overrides)
    return row


def _transaction(index: int, amount: float, number: str | None) -> dict:
    return {
        "id": f"tx-{index}",
        "transaction_date": "2024-05-01",
        "amount": amount,
        "status": "unmatched",
        "extracted_invoice_number": number,
    }


def test_candidates_put_exact_amounts_first(gateway) -> None:
    gateway.tables["invoices"] = [
        _invoice(1, 90.0),
        _invoice(2, 150.0),
        _invoice(3, 150.0),
        _invoice(4, 150.0, status="paid"),
    ]
    transaction = BankTransactionRow.model_validate(_transaction(1, 150.0, None))

    candidates = list_match_candidates(gateway, transaction)

    assert [invoice.id for invoice in candidates] == ["inv-3", "inv-2", "inv-1"]


def test_candidates_search_on_number_and_parent(gateway) -> None:
    gateway.tables["invoices"] = [_invoice(1, 90.0), _invoice(2, 150.0)]
    transaction = BankTransactionRow.model_validate(_transaction(1, 150.0, None))

    assert [i.id for i in list_match_candidates(gateway, transaction, "f-2024-001")] == ["inv-1"]
    assert [i.id for i in list_match_candidates(gateway, transaction, "p2@example")] == ["inv-2"]


def test_candidates_cover_every_pending_invoice(gateway) -> None:
    gateway.tables["invoices"] = [
        _invoice(i, 40.0, invoice_number=f"F-{i:04d}", created_at=f"2024-01-01T00:00:{i % 60:02d}+00:00")
        for i in range(250)
    ]
    transaction = BankTransactionRow.model_validate(_transaction(1, 40.0, None))

    everything = list_match_candidates(gateway, transaction)
    oldest = list_match_candidates(gateway, transaction, search="F-0000")

    assert len(everything) == 250
    assert [invoice.id for invoice in oldest] == ["inv-0"]
    assert len(gateway.calls_to("list")) == 4


def test_match_transaction_calls_the_edge_function(gateway) -> None:
    match_transaction(gateway, "tx-1", "inv-1")
    assert gateway.calls_to("call_function") == [
        ("call_function", MATCH_FUNCTION, {"transaction_id": "tx-1", "invoice_id": "inv-1"})
    ]


def test_match_failure_in_payload_raises(gateway) -> None:
    gateway.function_results[MATCH_FUNCTION] = {"success": False, "error": "Invoice already paid"}
    with pytest.raises(ProcedureError):
        match_transaction(gateway, "tx-1", "inv-1")


def test_reconcile_pending_counts_outcomes(gateway) -> None:
    gateway.tables["invoices"] = [
        _invoice(1, 100.0),
        _invoice(2, 200.0),
        _invoice(3, 300.0),
    ]
    gateway.tables["bank_transactions"] = [
        _transaction(1, 100.0, "F-2024-001"),
        _transaction(2, 100.0, "F-2024-001"),
        _transaction(3, 250.0, "F-2024-002"),
        _transaction(4, 300.0, None),
        _transaction(5, 300.0, "F-2024-003"),
    ]

    def fake_match(body):
        if body["invoice_id"] == "inv-3":
            return {"success": False, "error": "Locked"}
        return {"success": True}

    gateway.function_results[MATCH_FUNCTION] = fake_match

    summary = reconcile_pending(gateway)

    assert summary.matched == 1
    assert summary.failed == 1
    # tx-2 lost its invoice to tx-1; tx-3 amount differs; tx-4 has no number.
    assert summary.skipped == 3
    assert summary.errors == ["F-2024-003: Locked"]


def test_import_statement_uploads_then_processes(gateway) -> None:
    gateway.function_results[IMPORT_FUNCTION] = {"success": True, "transactions": 12}
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    stamp = int(now.timestamp() * 1000)

    imported = import_statement(gateway, "relevé mai.csv", b"date;amount\n", now=now)

    assert imported.file_path == f"imports/{stamp}_relev_mai.csv"
    assert imported.batch_id == f"batch-{stamp}"
    assert imported.transactions == 12
    assert gateway.uploads[0][0] == "csv-files"
    assert gateway.calls_to("call_function") == [
        ("call_function", IMPORT_FUNCTION, {"filePath": imported.file_path, "batchId": imported.batch_id})
    ]


@pytest.mark.parametrize(("filename", "content"), [("statement.csv", b""), ("statement.xlsx", b"x")])
def test_import_statement_validates_input(gateway, filename, content) -> None:
    with pytest.raises(ValidationError):
        import_statement(gateway, filename, content)
    assert gateway.uploads == []


def test_reconcile_invoice_returns_fresh_summary(gateway) -> None:
    gateway.rpc_results["reconcile_invoice"] = {"success": True}
    gateway.rpc_results["get_invoice_payment_summary"] = {"invoice_number": "F-1", "paid": 80, "due": 0}

    summary = reconcile_invoice(gateway, "F-1")

    assert summary["paid"] == 80
    assert [call[1] for call in gateway.calls_to("invoke")] == ["reconcile_invoice", "get_invoice_payment_summary"]
    assert invoice_payment_summary(gateway, "F-1")["due"] == 0
