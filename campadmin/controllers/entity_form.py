from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from copy import deepcopy
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import to_jsonable_python

from campadmin.controllers.list_view import ListViewController
from campadmin.controllers.validation import coerce, run_rules
from campadmin.core.errors import AdminError, ValidationError, user_message
from campadmin.core.notifier import LoggingNotifier, Notifier
from campadmin.entities.registry import EntityDefinition, get_entity
from campadmin.integrations.gateway import Gateway
from campadmin.integrations.images import ImageUpload, optimize_image

logger = logging.getLogger(__name__)

INVALID_FORM_MESSAGE = "Please correct the highlighted fields."


class FormMode(StrEnum):
    CREATE = "create"
    EDIT = "edit"


class EntityFormState(BaseModel):
    entity: str
    mode: FormMode | None = None
    is_open: bool = False
    record_id: str | None = None
    buffer: dict[str, Any] = Field(default_factory=dict)
    field_errors: dict[str, str] = Field(default_factory=dict)
    is_submitting: bool = False
    error: str | None = None
    error_code: str | None = None
    warning: str | None = None
    saved_record: dict[str, Any] | None = None


class EntityFormController:
    def __init__(
        self,
        entity: str | EntityDefinition,
        gateway: Gateway,
        notifier: Notifier | None = None,
        *,
        parent: ListViewController | None = None,
        optimizer: Callable[[ImageUpload], ImageUpload] = optimize_image,
    ) -> None:
        self.entity = get_entity(entity)
        self.gateway = gateway
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.parent = parent
        self.optimizer = optimizer

        self.mode: FormMode | None = None
        self.record_id: str | None = None
        self.buffer: dict[str, Any] = {}
        self.field_errors: dict[str, str] = {}
        self.is_submitting = False
        self.error: str | None = None
        self.error_code: str | None = None
        self.warning: str | None = None
        self.saved_record: BaseModel | None = None

        self._record: dict[str, Any] = {}
        self._original: dict[str, Any] = {}
        self._image: ImageUpload | None = None

    @property
    def is_open(self) -> bool:
        return self.mode is not None

    def _reset(self) -> None:
        self.mode = None
        self.record_id = None
        self.buffer = {}
        self.field_errors = {}
        self.error = None
        self.error_code = None
        self.warning = None
        self._record = {}
        self._original = {}
        self._image = None

    def open_create(self, initial: Mapping[str, Any] | None = None) -> None:
        if not self.entity.creatable:
            raise ValidationError(f"{self.entity.label} records cannot be created from the admin form.")
        self._reset()
        self.saved_record = None
        self.mode = FormMode.CREATE
        self.buffer = self.entity.initial_buffer()
        if initial:
            self.buffer.update(deepcopy(dict(initial)))

    def open_edit(self, record: BaseModel | Mapping[str, Any]) -> None:
        data = record.model_dump() if isinstance(record, BaseModel) else dict(record)
        if not data.get("id"):
            raise ValidationError("Cannot edit a record without an id.")
        self._reset()
        self.saved_record = None
        self.mode = FormMode.EDIT
        self.record_id = str(data["id"])
        self._record = deepcopy(data)
        self._original = {name: deepcopy(data[name]) for name in self.entity.editable if name in data}
        self.buffer = deepcopy(self._original)

    def _require_open(self) -> None:
        if not self.is_open:
            raise ValidationError("The form is not open.")

    def set_field(self, name: str, value: Any) -> None:
        self._require_open()
        self.buffer[name] = value
        self.field_errors.pop(name, None)

    def update_fields(self, values: Mapping[str, Any]) -> None:
        self._require_open()
        for name, value in values.items():
            self.set_field(name, value)

    def attach_image(self, upload: ImageUpload) -> None:
        self._require_open()
        if not self.entity.image_bucket:
            raise ValidationError(f"{self.entity.label} records do not accept images.")
        self._image = upload

    def validate(self) -> dict[str, Any] | None:
        """Run the entity rules, then coerce the buffer; returns the write payload."""
        errors = run_rules(self.entity.rules, self.buffer)
        if errors:
            self.field_errors = errors
            return None

        editable = set(self.entity.editable)
        model, errors = coerce(self.entity.write_model, {k: v for k, v in self.buffer.items() if k in editable})
        if model is None:
            self.field_errors = errors
            return None

        self.field_errors = {}
        return model.model_dump(mode="json", exclude_unset=True)

    def _changes(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        original = to_jsonable_python(self._original)
        return {name: value for name, value in payload.items() if original.get(name) != value}

    def _fail(self, exc: AdminError, fallback: str) -> None:
        self.error = user_message(exc, fallback)
        self.error_code = exc.code
        if isinstance(exc, ValidationError) and exc.field_errors:
            self.field_errors.update(exc.field_errors)
        self.notifier.error(self.error)

    async def submit(self) -> bool:
        self._require_open()
        if self.is_submitting:
            return False

        payload = self.validate()
        if payload is None:
            self.error = INVALID_FORM_MESSAGE
            self.error_code = ValidationError.code
            return False

        self.error = None
        self.error_code = None
        self.warning = None
        self.is_submitting = True
        try:
            if self.mode is FormMode.CREATE:
                saved = await self._create(payload)
                changes = payload
            else:
                changes = self._changes(payload)
                saved = await self._update(changes)
        except AdminError as exc:
            logger.warning("Saving %s failed: %s", self.entity.name, exc.message)
            self._fail(exc, f"Could not save {self.entity.label.lower()}.")
            return False
        finally:
            self.is_submitting = False

        record_id = str(getattr(saved, "id", self.record_id))
        image_url = await self._upload_attached_image(record_id) if self._image is not None else None
        if image_url:
            saved = saved.model_copy(update={"image_url": image_url})
            changes = {**changes, "image_url": image_url}

        mode = self.mode
        self.notifier.success(
            f"{self.entity.label} {'created' if mode is FormMode.CREATE else 'updated'}."
        )
        warning = self.warning
        self._reset()
        self.saved_record = saved
        self.warning = warning

        if self.parent is not None:
            if mode is FormMode.CREATE:
                await self.parent.refresh()
            elif changes:
                await self.parent.apply_update(record_id, changes)
        return True

    async def _create(self, payload: dict[str, Any]) -> BaseModel:
        return await asyncio.to_thread(self.gateway.insert, self.entity, payload)

    async def _update(self, changes: dict[str, Any]) -> BaseModel:
        if changes:
            await asyncio.to_thread(self.gateway.update, self.entity, self.record_id, changes)
        merged = {**self._record, **changes}
        try:
            return self.entity.model.model_validate(merged)
        except PydanticValidationError:
            return await asyncio.to_thread(self.gateway.get, self.entity, self.record_id)

    async def _upload_attached_image(self, record_id: str) -> str | None:
        upload = self._image
        bucket = self.entity.image_bucket
        if upload is None or not bucket:
            return None
        try:
            optimized = await asyncio.to_thread(self.optimizer, upload)
            path = f"{record_id}.{optimized.extension}"
            url = await asyncio.to_thread(
                self.gateway.upload, bucket, path, optimized.content, optimized.content_type
            )
            await asyncio.to_thread(self.gateway.update, self.entity, record_id, {"image_url": url})
        except AdminError as exc:
            self.warning = (
                f"{self.entity.label} saved, but the image upload failed: "
                f"{user_message(exc, 'unknown error')}"
            )
            logger.warning("Image upload for %s %s failed: %s", self.entity.name, record_id, exc.message)
            self.notifier.error(self.warning)
            return None
        return url

    def cancel(self) -> None:
        self._reset()

    def snapshot(self) -> EntityFormState:
        return EntityFormState(
            entity=self.entity.name,
            mode=self.mode,
            is_open=self.is_open,
            record_id=self.record_id,
            buffer=to_jsonable_python(self.buffer),
            field_errors=dict(self.field_errors),
            is_submitting=self.is_submitting,
            error=self.error,
            error_code=self.error_code,
            warning=self.warning,
            saved_record=self.saved_record.model_dump(mode="json") if self.saved_record else None,
        )
