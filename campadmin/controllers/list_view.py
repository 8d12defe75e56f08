from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Mapping
from math import ceil
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from campadmin.core.config import settings
from campadmin.core.errors import AdminError, NotFoundError, ValidationError, user_message
from campadmin.core.notifier import LoggingNotifier, Notifier
from campadmin.entities.query import ListQuery, SortSpec
from campadmin.entities.registry import EntityDefinition, get_entity
from campadmin.integrations.gateway import Gateway

logger = logging.getLogger(__name__)


class SortState(BaseModel):
    field: str
    descending: bool


class ListViewState(BaseModel):
    entity: str
    filters: dict[str, Any] = Field(default_factory=dict)
    search_term: str = ""
    page: int = 1
    page_size: int
    total_count: int = 0
    total_pages: int = 0
    sort: SortState
    rows: list[dict[str, Any]] = Field(default_factory=list)
    is_loading: bool = False
    error: str | None = None
    error_code: str | None = None


def clamp_page_size(value: int | None, default: int) -> int:
    size = value or default
    return max(1, min(int(size), settings.list_max_page_size))


class ListViewController:
    """Filter, search, paginate and mutate one entity's rows.

    Criteria changes (filters, search) reset to page 1 and fetch after a
    debounce; page and sort changes fetch immediately. Every fetch is tagged
    with a sequence number and only the latest one may write to ``rows``.
    """

    def __init__(
        self,
        entity: str | EntityDefinition,
        gateway: Gateway,
        notifier: Notifier | None = None,
        *,
        page_size: int | None = None,
        debounce_seconds: float | None = None,
        filters: Mapping[str, Any] | None = None,
        search_term: str = "",
        sort: SortSpec | None = None,
        page: int = 1,
    ) -> None:
        self.entity = get_entity(entity)
        self.gateway = gateway
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.page_size = clamp_page_size(page_size, self.entity.page_size or settings.list_page_size)
        self.debounce_seconds = (
            settings.search_debounce_ms / 1000 if debounce_seconds is None else debounce_seconds
        )

        self.filters: dict[str, Any] = dict(filters or {})
        self.entity.predicates(self.filters)
        self.search_term = search_term or ""
        self.sort = sort or self.entity.default_sort
        self.page = max(1, int(page))

        self.rows: list[BaseModel] = []
        self.total_count = 0
        self.is_loading = False
        self.error: str | None = None
        self.error_code: str | None = None

        self._sequence = 0
        self._pending: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def total_pages(self) -> int:
        return ceil(self.total_count / self.page_size) if self.total_count else 0

    @property
    def last_page(self) -> int:
        return max(self.total_pages, 1)

    # --- criteria -------------------------------------------------------------

    def set_filter(self, name: str, value: Any) -> None:
        if name not in self.entity.filters:
            raise ValidationError(f"Unknown filter '{name}'.", field_errors={name: "Unknown filter."})
        self.entity.predicates({name: value})
        self.filters[name] = value
        self._criteria_changed()

    def set_filters(self, values: Mapping[str, Any]) -> None:
        unknown = [name for name in values if name not in self.entity.filters]
        if unknown:
            raise ValidationError(
                f"Unknown filter(s): {', '.join(sorted(unknown))}.",
                field_errors={name: "Unknown filter." for name in unknown},
            )
        self.entity.predicates(values)
        self.filters.update(values)
        self._criteria_changed()

    def clear_filters(self) -> None:
        self.filters.clear()
        self._criteria_changed()

    def set_search(self, term: str) -> None:
        self.search_term = term or ""
        self._criteria_changed()

    def _criteria_changed(self) -> None:
        self.page = 1
        self._schedule_fetch()

    def _schedule_fetch(self) -> None:
        self._cancel_pending()
        if self._closed:
            return
        self._pending = asyncio.get_running_loop().create_task(self._debounced_fetch())

    async def _debounced_fetch(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        await self.fetch()

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def wait_idle(self) -> None:
        pending = self._pending
        if pending is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await pending

    # --- navigation -----------------------------------------------------------

    async def set_page(self, page: int) -> bool:
        if page < 1 or page > self.last_page or page == self.page:
            return False
        self.page = page
        return await self.fetch()

    async def next_page(self) -> bool:
        return await self.set_page(self.page + 1)

    async def previous_page(self) -> bool:
        return await self.set_page(self.page - 1)

    async def set_sort(self, field: str, descending: bool | None = None) -> bool:
        if field not in self.entity.sort_fields:
            raise ValidationError(f"Cannot sort by '{field}'.", field_errors={"sort": "Unsupported sort field."})
        if descending is None:
            descending = not self.sort.descending if field == self.sort.field else False
        self.sort = SortSpec(field, descending)
        return await self.fetch()

    # --- fetching -------------------------------------------------------------

    def build_query(self) -> ListQuery:
        return ListQuery(
            predicates=self.entity.predicates(self.filters),
            search=self.search_term.strip(),
            sort=self.sort,
            page=self.page,
            page_size=self.page_size,
        )

    def _is_current(self, sequence: int) -> bool:
        return not self._closed and sequence == self._sequence

    async def fetch(self) -> bool:
        if self._closed:
            return False
        self._sequence += 1
        sequence = self._sequence
        self.is_loading = True
        self.error = None
        self.error_code = None
        query = self.build_query()

        try:
            result = await asyncio.to_thread(self.gateway.list, self.entity, query)
        except AdminError as exc:
            if self._is_current(sequence):
                self.error = user_message(exc, f"Could not load {self.entity.label.lower()} list.")
                self.error_code = exc.code
                logger.warning("List fetch for %s failed: %s", self.entity.name, exc.message)
            return False
        finally:
            if sequence == self._sequence:
                self.is_loading = False

        if not self._is_current(sequence):
            logger.debug("Discarding superseded %s fetch #%s", self.entity.name, sequence)
            return False

        self.rows = list(result.rows)
        self.total_count = result.total_count

        # A mutation can empty the last page; step back to the new last page.
        if not self.rows and self.page > self.last_page:
            self.page = self.last_page
            return await self.fetch()
        return True

    async def refresh(self) -> bool:
        self._cancel_pending()
        return await self.fetch()

    # --- mutations ------------------------------------------------------------

    def _active_columns(self) -> set[str]:
        columns = {predicate.column for predicate in self.entity.predicates(self.filters)}
        columns.add(self.sort.field)
        if self.search_term.strip():
            columns.update(self.entity.search_fields)
        return columns

    def _index_of(self, record_id: str) -> int | None:
        for index, row in enumerate(self.rows):
            if str(getattr(row, "id", "")) == str(record_id):
                return index
        return None

    def patch_row(self, record: BaseModel) -> bool:
        index = self._index_of(str(getattr(record, "id", "")))
        if index is None:
            return False
        rows = list(self.rows)
        rows[index] = record
        self.rows = rows
        return True

    async def apply_update(self, record_id: str, changes: Mapping[str, Any]) -> None:
        """Reflect a confirmed update: patch in place when safe, otherwise re-fetch."""
        if set(changes) & self._active_columns():
            await self.refresh()
            return

        index = self._index_of(record_id)
        if index is None:
            return
        current = self.rows[index]
        try:
            patched = type(current).model_validate({**current.model_dump(), **dict(changes)})
        except PydanticValidationError:
            await self.refresh()
            return
        self.patch_row(patched)

    async def update_row(self, record_id: str, changes: Mapping[str, Any]) -> bool:
        try:
            await asyncio.to_thread(self.gateway.update, self.entity, record_id, dict(changes))
        except AdminError as exc:
            self.error = user_message(exc, f"Could not update {self.entity.label.lower()}.")
            self.error_code = exc.code
            logger.warning("Update of %s %s failed: %s", self.entity.name, record_id, exc.message)
            self.notifier.error(self.error)
            return False

        self.notifier.success(f"{self.entity.label} updated.")
        await self.apply_update(record_id, changes)
        return True

    async def delete_row(self, record_id: str) -> bool:
        try:
            await asyncio.to_thread(self.gateway.remove, self.entity, record_id)
        except NotFoundError:
            logger.info("%s %s was already removed", self.entity.name, record_id)
        except AdminError as exc:
            self.error = user_message(exc, f"Could not delete {self.entity.label.lower()}.")
            self.error_code = exc.code
            logger.warning("Delete of %s %s failed: %s", self.entity.name, record_id, exc.message)
            self.notifier.error(self.error)
            return False

        self.notifier.success(f"{self.entity.label} deleted.")
        await self.refresh()
        return True

    # --- lifecycle ------------------------------------------------------------

    def close(self) -> None:
        self._closed = True
        self._cancel_pending()

    def snapshot(self) -> ListViewState:
        return ListViewState(
            entity=self.entity.name,
            filters=dict(self.filters),
            search_term=self.search_term,
            page=self.page,
            page_size=self.page_size,
            total_count=self.total_count,
            total_pages=self.total_pages,
            sort=SortState(field=self.sort.field, descending=self.sort.descending),
            rows=[row.model_dump(mode="json") for row in self.rows],
            is_loading=self.is_loading,
            error=self.error,
            error_code=self.error_code,
        )
