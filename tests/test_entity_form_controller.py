from io import BytesIO

import pytest
from PIL import Image

from campadmin.controllers.entity_form import INVALID_FORM_MESSAGE, EntityFormController, FormMode
from campadmin.controllers.list_view import ListViewController
from campadmin.core.errors import GatewayError, ValidationError
from campadmin.integrations.images import ImageUpload


def _stage_row(**overrides) -> dict:
    row = {
        "id": "stage-1",
        "title": "Cirque",
        "description": "Jonglage et acrobaties",
        "age_min": 6,
        "age_max": 10,
        "base_price": 140.0,
        "image_url": None,
        "active": True,
    }
    row.update(overrides)
    return row


def _png_bytes() -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (40, 30), (200, 120, 40)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.mark.asyncio
async def test_missing_required_field_blocks_submit(gateway, notifier) -> None:
    form = EntityFormController("stages", gateway, notifier)
    form.open_create()
    form.update_fields({"title": "Aventure", "age_max": 12, "base_price": 150})

    assert await form.submit() is False

    assert form.field_errors == {"age_min": "This field is required."}
    assert form.error == INVALID_FORM_MESSAGE
    assert form.is_open
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_age_max_below_age_min_is_reported_on_age_max(gateway, notifier) -> None:
    form = EntityFormController("stages", gateway, notifier)
    form.open_create({"title": "Aventure", "age_min": 10, "age_max": 5, "base_price": 150})

    assert await form.submit() is False

    assert form.field_errors == {"age_max": "Maximum age cannot be below minimum age."}
    assert gateway.calls_to("insert") == []


@pytest.mark.asyncio
async def test_age_bounds_are_inclusive(gateway, notifier) -> None:
    form = EntityFormController("stages", gateway, notifier)
    form.open_create({"title": "Aventure", "age_min": 2, "age_max": 18, "base_price": 150})
    assert await form.submit() is True

    form.open_create({"title": "Bébés", "age_min": 1, "age_max": 3, "base_price": 90})
    assert await form.submit() is False
    assert form.field_errors["age_min"] == "Age must be between 2 and 18."
    assert len(gateway.calls_to("insert")) == 1


@pytest.mark.asyncio
async def test_created_stage_appears_in_parent_list(gateway, notifier) -> None:
    gateway.tables["stages"] = [_stage_row()]
    stages = ListViewController("stages", gateway, notifier)
    await stages.fetch()

    form = EntityFormController("stages", gateway, notifier, parent=stages)
    form.open_create()
    form.update_fields({"title": "Aventure", "age_min": 6, "age_max": 12, "base_price": 150})

    assert await form.submit() is True

    inserts = gateway.calls_to("insert")
    assert len(inserts) == 1
    payload = inserts[0][2]
    assert payload["title"] == "Aventure"
    assert payload["age_min"] == 6
    assert payload["age_max"] == 12
    assert payload["base_price"] == 150
    assert payload["active"] is True

    assert not form.is_open
    assert form.saved_record.title == "Aventure"
    assert [row.title for row in stages.rows] == ["Aventure", "Cirque"]
    assert "Stage created." in notifier.successes


@pytest.mark.asyncio
async def test_edit_sends_only_changed_fields(gateway, notifier) -> None:
    gateway.tables["stages"] = [_stage_row()]
    stages = ListViewController("stages", gateway, notifier)
    await stages.fetch()

    form = EntityFormController("stages", gateway, notifier, parent=stages)
    form.open_edit(stages.rows[0])
    assert form.mode is FormMode.EDIT
    form.set_field("base_price", 155)

    assert await form.submit() is True

    updates = gateway.calls_to("update")
    assert updates == [("update", "stages", "stage-1", {"base_price": 155.0})]
    assert stages.rows[0].base_price == 155.0


@pytest.mark.asyncio
async def test_edit_without_changes_makes_no_call(gateway, notifier) -> None:
    form = EntityFormController("stages", gateway, notifier)
    form.open_edit(_stage_row())

    assert await form.submit() is True

    assert gateway.calls_to("update") == []
    assert form.saved_record.title == "Cirque"


@pytest.mark.asyncio
async def test_backend_rejection_keeps_form_open(gateway, notifier) -> None:
    gateway.fail("insert", ValidationError("duplicate key value violates unique constraint"))
    form = EntityFormController("stages", gateway, notifier)
    form.open_create({"title": "Aventure", "age_min": 6, "age_max": 12, "base_price": 150})

    assert await form.submit() is False

    assert form.is_open
    assert form.error_code == "validation_error"
    assert notifier.errors == ["duplicate key value violates unique constraint"]


@pytest.mark.asyncio
async def test_image_is_uploaded_after_save(gateway, notifier) -> None:
    form = EntityFormController("stages", gateway, notifier)
    form.open_create({"title": "Aventure", "age_min": 6, "age_max": 12, "base_price": 150})
    form.attach_image(ImageUpload("affiche.png", _png_bytes(), "image/png"))

    assert await form.submit() is True

    record_id = form.saved_record.id
    assert gateway.uploads[0][:2] == ("stages", f"{record_id}.png")
    assert gateway.calls_to("update") == [
        ("update", "stages", record_id, {"image_url": f"https://storage.test/stages/{record_id}.png"})
    ]
    assert form.saved_record.image_url.endswith(f"{record_id}.png")
    assert form.warning is None


@pytest.mark.asyncio
async def test_image_upload_failure_is_a_warning(gateway, notifier) -> None:
    gateway.fail("upload", GatewayError("Storage unavailable."))
    form = EntityFormController("stages", gateway, notifier)
    form.open_create({"title": "Aventure", "age_min": 6, "age_max": 12, "base_price": 150})
    form.attach_image(ImageUpload("affiche.png", _png_bytes(), "image/png"))

    assert await form.submit() is True

    assert len(gateway.tables["stages"]) == 1
    assert "image upload failed" in form.warning
    assert notifier.errors == [form.warning]
    assert form.saved_record.image_url is None


@pytest.mark.asyncio
async def test_non_creatable_entity_refuses_create(gateway) -> None:
    form = EntityFormController("bank-transactions", gateway)
    with pytest.raises(ValidationError):
        form.open_create()


@pytest.mark.asyncio
async def test_image_requires_a_bucket(gateway) -> None:
    form = EntityFormController("schools", gateway)
    form.open_create()
    with pytest.raises(ValidationError):
        form.attach_image(ImageUpload("logo.png", _png_bytes(), "image/png"))


def test_invoice_form_starts_with_a_structured_reference(gateway) -> None:
    form = EntityFormController("invoices", gateway)
    form.open_create()
    assert form.buffer["status"] == "pending"
    assert form.buffer["communication"].startswith("+++")


@pytest.mark.asyncio
async def test_cancel_discards_the_buffer(gateway) -> None:
    form = EntityFormController("stages", gateway)
    form.open_create({"title": "Aventure"})
    form.cancel()

    assert not form.is_open
    assert form.snapshot().buffer == {}
