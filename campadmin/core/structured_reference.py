"""Belgian structured payment communication (``+++123/4567/89012+++``).

The ten leading digits are the base; the last two are a modulo-97 check value
so that a bank can reject mistyped references.
"""

from __future__ import annotations

import random
import re

BASE_DIGITS = 10
MAX_BASE = 10**BASE_DIGITS - 1

_FORMATTED_PATTERN = re.compile(r"^\+\+\+(\d{3})/(\d{4})/(\d{5})\+\+\+$")


def compute_check_digits(base: int) -> int:
    if base < 0 or base > MAX_BASE:
        raise ValueError(f"Structured reference base must be within [0, {MAX_BASE}].")
    check = 97 - (base % 97)
    return 97 if check == 0 else check


def format_structured_reference(digits: str) -> str:
    if len(digits) != 12 or not digits.isdigit():
        raise ValueError("A structured reference needs exactly 12 digits.")
    return f"+++{digits[0:3]}/{digits[3:7]}/{digits[7:12]}+++"


def generate_structured_reference(base: int | None = None, rng: random.Random | None = None) -> str:
    if base is None:
        source = rng or random.SystemRandom()
        base = source.randint(0, MAX_BASE)
    check = compute_check_digits(base)
    return format_structured_reference(f"{base:010d}{check:02d}")


def parse_structured_reference(code: str) -> tuple[int, int]:
    raw = (code or "").strip()
    match = _FORMATTED_PATTERN.match(raw)
    if match:
        digits = "".join(match.groups())
    else:
        digits = re.sub(r"\D", "", raw)
    if len(digits) != 12:
        raise ValueError("A structured reference needs exactly 12 digits.")
    return int(digits[:BASE_DIGITS]), int(digits[BASE_DIGITS:])


def is_valid_structured_reference(code: str) -> bool:
    try:
        base, check = parse_structured_reference(code)
    except ValueError:
        return False
    if check < 1 or check > 97:
        return False
    # The check value complements the base remainder, so base + check is a multiple of 97.
    return (base + check) % 97 == 0
