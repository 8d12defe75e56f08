from datetime import date, datetime

from campadmin.core.formatting import (
    GROUP_SEPARATOR,
    SYMBOL_SEPARATOR,
    export_filename,
    format_amount,
    format_currency,
    format_date,
    format_date_range,
    format_datetime,
)


def test_format_currency_uses_belgian_grouping() -> None:
    assert format_currency(1234.5) == f"1{GROUP_SEPARATOR}234,50{SYMBOL_SEPARATOR}€"
    assert format_currency(0) == f"0,00{SYMBOL_SEPARATOR}€"
    assert format_currency("12.345") == f"12,35{SYMBOL_SEPARATOR}€"


def test_format_amount_handles_negative_and_empty_values() -> None:
    assert format_amount(-1500) == f"-1{GROUP_SEPARATOR}500,00"
    assert format_amount(None) == ""
    assert format_amount("abc") == ""
    assert format_currency(None) == ""


def test_format_date_variants() -> None:
    assert format_date("2024-07-01") == "01/07/2024"
    assert format_date(date(2024, 12, 31)) == "31/12/2024"
    assert format_date("2024-07-01T08:30:00Z") == "01/07/2024"
    assert format_date(None) == ""
    assert format_date("garbage") == ""


def test_format_datetime_and_range() -> None:
    assert format_datetime(datetime(2024, 7, 1, 9, 5)) == "01/07/2024 09:05"
    assert format_datetime("2024-07-01") == "01/07/2024 00:00"
    assert format_date_range("2024-07-01", "2024-07-05") == "01/07/2024 - 05/07/2024"


def test_export_filename_is_dated() -> None:
    assert export_filename("transactions_bancaires", date(2024, 3, 1)) == "transactions_bancaires_2024-03-01.csv"
