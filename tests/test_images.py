import os
from io import BytesIO

import pytest
from PIL import Image

from campadmin.core.errors import ValidationError
from campadmin.integrations.images import MB, ImageUpload, compression_plan, optimize_image


def _encoded(image: Image.Image, fmt: str) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.mark.parametrize(
    ("size", "plan"),
    [
        (100 * 1024, None),
        (250 * 1024, None),
        (300 * 1024, (75, 800)),
        (600 * 1024, (70, 1000)),
        (int(1.5 * MB), (60, 1200)),
        (3 * MB, (50, 1000)),
    ],
)
def test_compression_plan_by_size(size: int, plan) -> None:
    assert compression_plan(size) == plan


def test_small_image_is_kept_as_is() -> None:
    content = _encoded(Image.new("RGB", (64, 64), (10, 200, 30)), "PNG")
    optimized = optimize_image(ImageUpload("petit.png", content, "application/octet-stream"))

    assert optimized.content == content
    assert optimized.content_type == "image/png"
    assert optimized.extension == "png"


def test_large_image_is_reencoded_as_jpeg() -> None:
    noise = Image.frombytes("RGB", (700, 700), os.urandom(700 * 700 * 3))
    content = _encoded(noise, "PNG")
    assert len(content) > MB

    optimized = optimize_image(ImageUpload("affiche.png", content, "image/png"))

    assert optimized.content_type == "image/jpeg"
    assert optimized.filename == "affiche.jpg"
    assert optimized.size < len(content)
    with Image.open(BytesIO(optimized.content)) as reopened:
        assert max(reopened.size) <= 800


def test_oversized_upload_is_rejected() -> None:
    with pytest.raises(ValidationError) as excinfo:
        optimize_image(ImageUpload("huge.jpg", b"0" * (5 * MB + 1), "image/jpeg"))
    assert excinfo.value.field_errors == {"image": "File too large."}


def test_unreadable_file_is_rejected() -> None:
    with pytest.raises(ValidationError):
        optimize_image(ImageUpload("notes.png", b"definitely not an image", "image/png"))
