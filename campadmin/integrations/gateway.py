from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from functools import lru_cache
from typing import Any, Protocol

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from supabase import Client

from campadmin.core.errors import GatewayError, NotFoundError, ProcedureError
from campadmin.core.relations import unwrap_relations
from campadmin.entities.query import ListQuery, ListResult, Predicate
from campadmin.entities.registry import EntityDefinition, get_entity
from campadmin.integrations.supabase_client import (
    decode_function_payload,
    get_supabase_client,
    timed_execute,
)

EntityRef = str | EntityDefinition

# Characters with meaning inside a PostgREST or=(...) expression.
_SEARCH_RESERVED = re.compile(r"[,()\"\\]")


class Gateway(Protocol):
    def list(self, entity: EntityRef, query: ListQuery) -> ListResult: ...

    def get(self, entity: EntityRef, record_id: str) -> BaseModel: ...

    def insert(self, entity: EntityRef, fields: Mapping[str, Any]) -> BaseModel: ...

    def update(self, entity: EntityRef, record_id: str, fields: Mapping[str, Any]) -> None: ...

    def remove(self, entity: EntityRef, record_id: str) -> None: ...

    def upsert(self, entity: EntityRef, rows: list[dict[str, Any]], *, on_conflict: str) -> int: ...

    def select_rows(
        self,
        table: str,
        *,
        columns: str = "*",
        predicates: Iterable[Predicate] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    def insert_row(self, table: str, fields: Mapping[str, Any]) -> dict[str, Any]: ...

    def invoke(self, name: str, args: Mapping[str, Any] | None = None) -> Any: ...

    def call_function(self, name: str, body: Mapping[str, Any] | None = None) -> Any: ...

    def upload(self, bucket: str, path: str, content: bytes, content_type: str) -> str: ...


def ensure_procedure_success(result: Any, name: str) -> Any:
    """Raise when a remote procedure flagged a business failure in its payload."""
    if isinstance(result, Mapping):
        error = result.get("error")
        if result.get("success") is False or error:
            message = error if isinstance(error, str) and error else result.get("message")
            raise ProcedureError(
                name,
                str(message or f"Procedure '{name}' reported a failure."),
                details={"result": dict(result)},
            )
    return result


def search_clause(fields: Iterable[str], term: str) -> str | None:
    cleaned = _SEARCH_RESERVED.sub(" ", term or "").strip()
    if not cleaned:
        return None
    return ",".join(f"{field}.ilike.%{cleaned}%" for field in fields)


def apply_predicate(query, predicate: Predicate):
    if predicate.op == "in":
        return query.in_(predicate.column, list(predicate.value))
    if predicate.op == "is":
        value = "null" if predicate.value is None else str(predicate.value).lower()
        return query.is_(predicate.column, value)
    return getattr(query, predicate.op)(predicate.column, predicate.value)


def parse_row(entity: EntityDefinition, row: Mapping[str, Any]) -> BaseModel:
    normalized = unwrap_relations(row, entity.relations)
    try:
        return entity.model.model_validate(normalized)
    except PydanticValidationError as exc:
        fields = [".".join(str(part) for part in error["loc"]) for error in exc.errors()]
        raise GatewayError(
            f"Unexpected {entity.label.lower()} row shape returned by the backend.",
            details={"entity": entity.name, "fields": fields},
        ) from exc


class SupabaseGateway:
    def __init__(self, client_factory: Callable[[], Client] = get_supabase_client) -> None:
        self._client_factory = client_factory

    @property
    def client(self) -> Client:
        return self._client_factory()

    def list(self, entity: EntityRef, query: ListQuery) -> ListResult:
        definition = get_entity(entity)
        builder = self.client.table(definition.table).select(definition.select, count="exact")
        for predicate in query.predicates:
            builder = apply_predicate(builder, predicate)

        fields = query.search_fields if query.search_fields is not None else definition.search_fields
        clause = search_clause(fields, query.search) if fields else None
        if clause:
            builder = builder.or_(clause)

        sort = query.sort or definition.default_sort
        builder = builder.order(sort.field, desc=sort.descending)

        offset = query.offset
        response = timed_execute(
            f"db.{definition.table}.list",
            lambda: builder.range(offset, offset + query.page_size - 1).execute(),
        )
        rows = [parse_row(definition, row) for row in response.data or []]
        return ListResult(rows=rows, total_count=int(response.count or 0))

    def get(self, entity: EntityRef, record_id: str) -> BaseModel:
        definition = get_entity(entity)
        response = timed_execute(
            f"db.{definition.table}.get",
            lambda: self.client.table(definition.table)
            .select(definition.select)
            .eq("id", record_id)
            .limit(1)
            .execute(),
        )
        rows = response.data or []
        if not rows:
            raise NotFoundError(f"{definition.label} not found.", details={"id": record_id})
        return parse_row(definition, rows[0])

    def insert(self, entity: EntityRef, fields: Mapping[str, Any]) -> BaseModel:
        definition = get_entity(entity)
        response = timed_execute(
            f"db.{definition.table}.insert",
            lambda: self.client.table(definition.table).insert(dict(fields)).execute(),
        )
        rows = response.data or []
        if not rows:
            raise GatewayError(f"{definition.label} creation returned no data.")
        created = rows[0]
        if definition.select != "*" and created.get("id"):
            return self.get(definition, str(created["id"]))
        return parse_row(definition, created)

    def update(self, entity: EntityRef, record_id: str, fields: Mapping[str, Any]) -> None:
        definition = get_entity(entity)
        if not fields:
            return None
        response = timed_execute(
            f"db.{definition.table}.update",
            lambda: self.client.table(definition.table).update(dict(fields)).eq("id", record_id).execute(),
        )
        if not response.data:
            raise NotFoundError(f"{definition.label} not found.", details={"id": record_id})
        return None

    def remove(self, entity: EntityRef, record_id: str) -> None:
        definition = get_entity(entity)
        response = timed_execute(
            f"db.{definition.table}.delete",
            lambda: self.client.table(definition.table).delete().eq("id", record_id).execute(),
        )
        if not response.data:
            raise NotFoundError(f"{definition.label} not found.", details={"id": record_id})
        return None

    def upsert(self, entity: EntityRef, rows: list[dict[str, Any]], *, on_conflict: str) -> int:
        definition = get_entity(entity)
        if not rows:
            return 0
        response = timed_execute(
            f"db.{definition.table}.upsert",
            lambda: self.client.table(definition.table)
            .upsert(rows, on_conflict=on_conflict, ignore_duplicates=False)
            .execute(),
        )
        return len(response.data or [])

    def select_rows(
        self,
        table: str,
        *,
        columns: str = "*",
        predicates: Iterable[Predicate] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        builder = self.client.table(table).select(columns)
        for predicate in predicates:
            builder = apply_predicate(builder, predicate)
        if limit is not None:
            builder = builder.limit(limit)
        response = timed_execute(f"db.{table}.select", builder.execute)
        return list(response.data or [])

    def insert_row(self, table: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        response = timed_execute(
            f"db.{table}.insert",
            lambda: self.client.table(table).insert(dict(fields)).execute(),
        )
        rows = response.data or []
        if not rows:
            raise GatewayError(f"Insert into {table} returned no data.")
        return rows[0]

    def invoke(self, name: str, args: Mapping[str, Any] | None = None) -> Any:
        response = timed_execute(
            f"rpc.{name}",
            lambda: self.client.rpc(name, dict(args or {})).execute(),
        )
        return response.data

    def call_function(self, name: str, body: Mapping[str, Any] | None = None) -> Any:
        payload = timed_execute(
            f"fn.{name}",
            lambda: self.client.functions.invoke(name, invoke_options={"body": dict(body or {})}),
        )
        return decode_function_payload(payload)

    def upload(self, bucket: str, path: str, content: bytes, content_type: str) -> str:
        storage = self.client.storage.from_(bucket)
        timed_execute(
            f"storage.{bucket}.upload",
            lambda: storage.upload(
                path,
                content,
                file_options={"content-type": content_type, "upsert": "true"},
            ),
        )
        public_url = storage.get_public_url(path)
        return str(public_url).rstrip("?")


@lru_cache(maxsize=1)
def get_gateway() -> Gateway:
    return SupabaseGateway()
