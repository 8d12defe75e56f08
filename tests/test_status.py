import pytest

from campadmin.core.status import canonical_status
from campadmin.entities.models import BankTransactionRow


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("matched", "matched"),
        ("Partially Matched", "partially_matched"),
        ("partially-matched", "partially_matched"),
        ("not matched", "unmatched"),
        ("", "unmatched"),
        (None, "unmatched"),
        ("legacy", "unmatched"),
    ],
)
def test_bank_transaction_statuses_are_canonical(raw, expected) -> None:
    assert canonical_status("bank_transaction", raw) == expected


def test_invoice_status_alias() -> None:
    assert canonical_status("invoice", "Canceled") == "cancelled"


def test_rows_are_normalised_when_parsed() -> None:
    row = BankTransactionRow.model_validate(
        {"id": "t1", "transaction_date": "2024-05-01", "amount": 10, "status": "Partially matched"}
    )
    assert row.status == "partially_matched"
