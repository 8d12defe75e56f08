"""Shared fakes: an in-memory gateway and a notifier that records toasts."""

from __future__ import annotations

import itertools
import threading
from copy import deepcopy
from typing import Any

import pytest

from campadmin.core.errors import AdminError, NotFoundError
from campadmin.entities.query import ListQuery, ListResult, Predicate
from campadmin.entities.registry import get_entity
from campadmin.integrations.gateway import parse_row


def _comparable(row_value: Any, value: Any) -> tuple[Any, Any]:
    if isinstance(row_value, (int, float)) and not isinstance(row_value, bool) and isinstance(value, str):
        return row_value, float(value)
    return row_value, value


def _matches(row: dict[str, Any], predicate: Predicate) -> bool:
    current = row.get(predicate.column)
    op = predicate.op
    if op == "is":
        return current is predicate.value or current == predicate.value
    if op == "in":
        return current in list(predicate.value)
    if op in ("like", "ilike"):
        needle = str(predicate.value).strip("%")
        haystack = str(current or "")
        if op == "ilike":
            return needle.lower() in haystack.lower()
        return needle in haystack
    if op == "eq":
        return current == predicate.value
    if op == "neq":
        return current != predicate.value
    if current is None:
        return False
    left, right = _comparable(current, predicate.value)
    return {
        "gt": left > right,
        "gte": left >= right,
        "lt": left < right,
        "lte": left <= right,
    }[op]


class InMemoryGateway:
    """Honours predicates, search, sort and paging over plain dict rows."""

    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[str, AdminError] = {}
        self.rpc_results: dict[str, Any] = {}
        self.function_results: dict[str, Any] = {}
        self.uploads: list[tuple[str, str, bytes, str]] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def fail(self, operation: str, error: AdminError) -> None:
        self.failures[operation] = error

    def calls_to(self, operation: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == operation]

    def _record(self, operation: str, *args: Any) -> None:
        with self._lock:
            self.calls.append((operation, *args))
        error = self.failures.get(operation)
        if error is not None:
            raise error

    def _table(self, name: str) -> list[dict[str, Any]]:
        return self.tables.setdefault(name, [])

    def _find(self, table: str, record_id: str) -> dict[str, Any] | None:
        for row in self._table(table):
            if str(row.get("id")) == str(record_id):
                return row
        return None

    def _new_id(self, table: str) -> str:
        return f"{table}-{next(self._ids)}"

    def list(self, entity, query: ListQuery) -> ListResult:
        definition = get_entity(entity)
        self._record("list", definition.name, query)
        rows = [row for row in self._table(definition.table) if all(_matches(row, p) for p in query.predicates)]

        fields = query.search_fields if query.search_fields is not None else definition.search_fields
        term = query.search.strip().lower()
        if term and fields:
            rows = [row for row in rows if any(term in str(row.get(name) or "").lower() for name in fields)]

        sort = query.sort or definition.default_sort
        present = [row for row in rows if row.get(sort.field) is not None]
        missing = [row for row in rows if row.get(sort.field) is None]
        present.sort(key=lambda row: row[sort.field], reverse=sort.descending)
        rows = present + missing

        page = rows[query.offset : query.offset + query.page_size]
        return ListResult(rows=[parse_row(definition, deepcopy(row)) for row in page], total_count=len(rows))

    def get(self, entity, record_id: str):
        definition = get_entity(entity)
        self._record("get", definition.name, record_id)
        row = self._find(definition.table, record_id)
        if row is None:
            raise NotFoundError(f"{definition.label} not found.", details={"id": record_id})
        return parse_row(definition, deepcopy(row))

    def insert(self, entity, fields):
        definition = get_entity(entity)
        self._record("insert", definition.name, dict(fields))
        row = {"id": self._new_id(definition.table), **deepcopy(dict(fields))}
        self._table(definition.table).append(row)
        return parse_row(definition, deepcopy(row))

    def update(self, entity, record_id: str, fields) -> None:
        definition = get_entity(entity)
        self._record("update", definition.name, record_id, dict(fields))
        row = self._find(definition.table, record_id)
        if row is None:
            raise NotFoundError(f"{definition.label} not found.", details={"id": record_id})
        row.update(deepcopy(dict(fields)))

    def remove(self, entity, record_id: str) -> None:
        definition = get_entity(entity)
        self._record("remove", definition.name, record_id)
        row = self._find(definition.table, record_id)
        if row is None:
            raise NotFoundError(f"{definition.label} not found.", details={"id": record_id})
        self._table(definition.table).remove(row)

    def upsert(self, entity, rows, *, on_conflict: str) -> int:
        definition = get_entity(entity)
        self._record("upsert", definition.name, [dict(row) for row in rows], on_conflict)
        table = self._table(definition.table)
        for incoming in rows:
            existing = next((row for row in table if row.get(on_conflict) == incoming.get(on_conflict)), None)
            if existing is None:
                table.append({"id": self._new_id(definition.table), **deepcopy(incoming)})
            else:
                existing.update(deepcopy(incoming))
        return len(rows)

    def select_rows(self, table: str, *, columns: str = "*", predicates=(), limit=None):
        predicates = list(predicates)
        self._record("select_rows", table, columns, predicates)
        rows = [deepcopy(row) for row in self._table(table) if all(_matches(row, p) for p in predicates)]
        return rows[:limit] if limit is not None else rows

    def insert_row(self, table: str, fields):
        self._record("insert_row", table, dict(fields))
        row = {"id": self._new_id(table), **deepcopy(dict(fields))}
        self._table(table).append(row)
        return deepcopy(row)

    def invoke(self, name: str, args=None):
        self._record("invoke", name, dict(args or {}))
        result = self.rpc_results.get(name)
        return result(dict(args or {})) if callable(result) else deepcopy(result)

    def call_function(self, name: str, body=None):
        self._record("call_function", name, dict(body or {}))
        result = self.function_results.get(name, {"success": True})
        return result(dict(body or {})) if callable(result) else deepcopy(result)

    def upload(self, bucket: str, path: str, content: bytes, content_type: str) -> str:
        self._record("upload", bucket, path, content_type)
        self.uploads.append((bucket, path, content, content_type))
        return f"https://storage.test/{bucket}/{path}"


class RecordingNotifier:
    def __init__(self) -> None:
        self.successes: list[str] = []
        self.errors: list[str] = []

    def success(self, message: str) -> None:
        self.successes.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
