import asyncio
import logging
from typing import Any, Literal

from fastapi import APIRouter, Body, HTTPException, Query, Request, status
from fastapi.responses import Response

from campadmin.api.errors import http_error, status_for_code
from campadmin.controllers.entity_form import EntityFormController
from campadmin.controllers.list_view import ListViewController, ListViewState
from campadmin.core.config import settings
from campadmin.core.errors import AdminError, NotFoundError, ValidationError
from campadmin.entities.query import SortSpec
from campadmin.entities.registry import ENTITIES, EntityDefinition
from campadmin.integrations.gateway import get_gateway
from campadmin.integrations.images import ImageUpload
from campadmin.schemas.common import DeleteResponse, RecordResponse
from campadmin.services.exports import export_list

router = APIRouter()
logger = logging.getLogger(__name__)

_LIST_PARAMS = {"page", "page_size", "search", "sort", "direction"}


def _entity_or_404(name: str) -> EntityDefinition:
    entity = ENTITIES.get(name)
    if entity is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown entity '{name}'.")
    return entity


def _list_controller(
    entity: EntityDefinition,
    request: Request,
    *,
    page: int,
    page_size: int | None,
    search: str,
    sort: str | None,
    direction: str | None,
) -> ListViewController:
    filters = {
        key: value
        for key, value in request.query_params.items()
        if key not in _LIST_PARAMS and key in entity.filters
    }
    sort_spec = None
    if sort:
        if sort not in entity.sort_fields:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Cannot sort {entity.name} by '{sort}'.",
            )
        sort_spec = SortSpec(sort, descending=direction == "desc")
    return ListViewController(
        entity,
        get_gateway(),
        page_size=page_size,
        filters=filters,
        search_term=search,
        sort=sort_spec,
        page=page,
    )


async def _load_list(controller: ListViewController) -> ListViewController:
    await controller.fetch()
    if controller.error:
        raise HTTPException(status_code=status_for_code(controller.error_code), detail=controller.error)
    return controller


def _raise_form_failure(form: EntityFormController) -> None:
    if form.field_errors:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": form.error, "field_errors": form.field_errors},
        )
    raise HTTPException(status_code=status_for_code(form.error_code), detail=form.error)


async def _get_record(entity: EntityDefinition, record_id: str):
    try:
        return await asyncio.to_thread(get_gateway().get, entity, record_id)
    except AdminError as exc:
        raise http_error(exc) from exc


@router.get("/{entity}", response_model=ListViewState)
async def list_records(
    entity: str,
    request: Request,
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1, le=settings.list_max_page_size),
    search: str = Query(default="", max_length=120),
    sort: str | None = Query(default=None),
    direction: Literal["asc", "desc"] | None = Query(default=None),
):
    definition = _entity_or_404(entity)
    controller = _list_controller(
        definition, request, page=page, page_size=page_size, search=search, sort=sort, direction=direction
    )
    await _load_list(controller)
    return controller.snapshot()


@router.get("/{entity}/export")
async def export_records(
    entity: str,
    request: Request,
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1, le=settings.list_max_page_size),
    search: str = Query(default="", max_length=120),
    sort: str | None = Query(default=None),
    direction: Literal["asc", "desc"] | None = Query(default=None),
):
    definition = _entity_or_404(entity)
    controller = _list_controller(
        definition, request, page=page, page_size=page_size, search=search, sort=sort, direction=direction
    )
    await _load_list(controller)
    try:
        filename, content = export_list(controller)
    except ValidationError as exc:
        raise http_error(exc) from exc
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{entity}/{record_id}")
async def get_record(entity: str, record_id: str):
    definition = _entity_or_404(entity)
    record = await _get_record(definition, record_id)
    return record.model_dump(mode="json")


@router.post("/{entity}", response_model=RecordResponse)
async def create_record(entity: str, payload: dict[str, Any] = Body(...)):
    definition = _entity_or_404(entity)
    form = EntityFormController(definition, get_gateway())
    try:
        form.open_create(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_405_METHOD_NOT_ALLOWED, detail=exc.message) from exc

    if not await form.submit():
        _raise_form_failure(form)
    return {"ok": True, "record": form.saved_record.model_dump(mode="json"), "warning": form.warning}


@router.patch("/{entity}/{record_id}", response_model=RecordResponse)
async def update_record(entity: str, record_id: str, payload: dict[str, Any] = Body(...)):
    definition = _entity_or_404(entity)
    unknown = sorted(set(payload) - set(definition.editable))
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": "Some fields cannot be edited.",
                "field_errors": {name: "Not editable." for name in unknown},
            },
        )

    record = await _get_record(definition, record_id)
    form = EntityFormController(definition, get_gateway())
    form.open_edit(record)
    form.update_fields(payload)
    if not await form.submit():
        _raise_form_failure(form)
    return {"ok": True, "record": form.saved_record.model_dump(mode="json"), "warning": form.warning}


@router.delete("/{entity}/{record_id}", response_model=DeleteResponse)
async def delete_record(entity: str, record_id: str):
    definition = _entity_or_404(entity)
    if not definition.deletable:
        raise HTTPException(
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            detail=f"{definition.label} records cannot be deleted.",
        )
    try:
        await asyncio.to_thread(get_gateway().remove, definition, record_id)
    except NotFoundError:
        logger.info("%s %s was already removed", definition.name, record_id)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {"ok": True, "id": record_id}


@router.put("/{entity}/{record_id}/image", response_model=RecordResponse)
async def upload_record_image(
    entity: str,
    record_id: str,
    request: Request,
    filename: str = Query(..., min_length=1, max_length=200),
):
    definition = _entity_or_404(entity)
    if not definition.image_bucket:
        raise HTTPException(
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            detail=f"{definition.label} records do not accept images.",
        )
    content = await request.body()
    if not content:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Image body is empty.")

    record = await _get_record(definition, record_id)
    form = EntityFormController(definition, get_gateway())
    form.open_edit(record)
    form.attach_image(
        ImageUpload(
            filename=filename,
            content=content,
            content_type=request.headers.get("content-type", "application/octet-stream"),
        )
    )
    if not await form.submit():
        _raise_form_failure(form)
    return {"ok": True, "record": form.saved_record.model_dump(mode="json"), "warning": form.warning}
