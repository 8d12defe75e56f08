from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

# fr-BE renders groups with a narrow no-break space and the symbol after a no-break space.
GROUP_SEPARATOR = " "
SYMBOL_SEPARATOR = " "
CURRENCY_SYMBOLS = {"EUR": "€"}


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def format_amount(value: Any) -> str:
    amount = _to_decimal(value)
    if amount is None:
        return ""
    quantized = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if quantized < 0 else ""
    integer_part, _, fraction = f"{abs(quantized):.2f}".partition(".")
    groups: list[str] = []
    while len(integer_part) > 3:
        groups.insert(0, integer_part[-3:])
        integer_part = integer_part[:-3]
    groups.insert(0, integer_part)
    return f"{sign}{GROUP_SEPARATOR.join(groups)},{fraction}"


def format_currency(value: Any, currency: str = "EUR") -> str:
    formatted = format_amount(value)
    if not formatted:
        return ""
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), currency.upper())
    return f"{formatted}{SYMBOL_SEPARATOR}{symbol}"


def _to_date(value: Any) -> date | datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, (date, datetime)):
        return value
    raw = str(value).strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        pass
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def format_date(value: Any) -> str:
    parsed = _to_date(value)
    if parsed is None:
        return ""
    return parsed.strftime("%d/%m/%Y")


def format_datetime(value: Any) -> str:
    parsed = _to_date(value)
    if parsed is None:
        return ""
    if not isinstance(parsed, datetime):
        return parsed.strftime("%d/%m/%Y")
    return parsed.strftime("%d/%m/%Y %H:%M")


def format_date_range(start: Any, end: Any) -> str:
    return f"{format_date(start)} - {format_date(end)}"


def export_filename(prefix: str, today: date | None = None) -> str:
    stamp = (today or date.today()).isoformat()
    return f"{prefix}_{stamp}.csv"
