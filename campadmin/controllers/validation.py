from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Protocol

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class Rule(Protocol):
    def check(self, buffer: Mapping[str, Any]) -> dict[str, str]: ...


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def to_number(value: Any) -> float | None:
    if isinstance(value, bool) or is_blank(value):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class Required:
    fields: tuple[str, ...]
    message: str = "This field is required."

    def check(self, buffer: Mapping[str, Any]) -> dict[str, str]:
        return {name: self.message for name in self.fields if is_blank(buffer.get(name))}


@dataclass(frozen=True)
class NumberRange:
    field: str
    minimum: float | None = None
    maximum: float | None = None
    message: str | None = None

    def check(self, buffer: Mapping[str, Any]) -> dict[str, str]:
        raw = buffer.get(self.field)
        if is_blank(raw):
            return {}
        number = to_number(raw)
        if number is None:
            return {self.field: "Must be a number."}
        if (self.minimum is not None and number < self.minimum) or (
            self.maximum is not None and number > self.maximum
        ):
            return {self.field: self.message or self._default_message()}
        return {}

    def _default_message(self) -> str:
        if self.minimum is not None and self.maximum is not None:
            return f"Must be between {self.minimum:g} and {self.maximum:g}."
        if self.minimum is not None:
            return f"Must be at least {self.minimum:g}."
        return f"Must be at most {self.maximum:g}."


@dataclass(frozen=True)
class NotLessThan:
    """Cross-field check; the error lands on ``field``."""

    field: str
    other: str
    message: str

    def check(self, buffer: Mapping[str, Any]) -> dict[str, str]:
        upper = to_number(buffer.get(self.field))
        lower = to_number(buffer.get(self.other))
        if upper is None or lower is None:
            return {}
        return {self.field: self.message} if upper < lower else {}


@dataclass(frozen=True)
class DateOrder:
    start: str
    end: str
    message: str = "End date cannot be before start date."

    def check(self, buffer: Mapping[str, Any]) -> dict[str, str]:
        start = to_date(buffer.get(self.start))
        end = to_date(buffer.get(self.end))
        if start is None or end is None:
            return {}
        return {self.end: self.message} if end < start else {}


@dataclass(frozen=True)
class OneOf:
    field: str
    choices: tuple[Any, ...]

    def check(self, buffer: Mapping[str, Any]) -> dict[str, str]:
        value = buffer.get(self.field)
        if is_blank(value) or value in self.choices:
            return {}
        return {self.field: f"Must be one of: {', '.join(str(choice) for choice in self.choices)}."}


@dataclass(frozen=True)
class EmailFormat:
    field: str = "email"
    message: str = "Invalid e-mail address."

    def check(self, buffer: Mapping[str, Any]) -> dict[str, str]:
        value = buffer.get(self.field)
        if is_blank(value):
            return {}
        return {} if EMAIL_PATTERN.match(str(value).strip()) else {self.field: self.message}


def run_rules(rules: Iterable[Rule], buffer: Mapping[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}
    for rule in rules:
        for name, message in rule.check(buffer).items():
            # First failing rule wins for a given field.
            errors.setdefault(name, message)
    return errors


def coerce(write_model: type[BaseModel], buffer: Mapping[str, Any]) -> tuple[BaseModel | None, dict[str, str]]:
    try:
        return write_model.model_validate(dict(buffer)), {}
    except PydanticValidationError as exc:
        errors: dict[str, str] = {}
        for item in exc.errors():
            location = item.get("loc") or ("__all__",)
            errors.setdefault(str(location[0]), str(item.get("msg", "Invalid value.")))
        return None, errors
