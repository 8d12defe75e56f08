from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import PurePosixPath

from PIL import Image, ImageOps, UnidentifiedImageError

from campadmin.core.config import settings
from campadmin.core.errors import ValidationError

logger = logging.getLogger(__name__)

KB = 1024
MB = 1024 * KB

SMALL_IMAGE_BYTES = 250 * KB
MEDIUM_IMAGE_BYTES = 500 * KB

_CONTENT_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}
_EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp", "image/gif": "gif"}


@dataclass(frozen=True)
class ImageUpload:
    filename: str
    content: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        suffix = PurePosixPath(self.filename).suffix.lstrip(".").lower()
        return suffix or _EXTENSIONS.get(self.content_type, "bin")


def compression_plan(size: int) -> tuple[int, int] | None:
    """Return ``(quality, max_dimension)`` for a file of ``size`` bytes, or ``None`` to keep it."""
    if size <= SMALL_IMAGE_BYTES:
        return None
    if size > 2 * MB:
        return 50, 1000
    if size > 1 * MB:
        return 60, 1200
    if size > MEDIUM_IMAGE_BYTES:
        return 70, 1000
    return 75, 800


def _open(upload: ImageUpload) -> Image.Image:
    try:
        image = Image.open(BytesIO(upload.content))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ValidationError(
            "The selected file is not a readable image.",
            field_errors={"image": "Unsupported image file."},
        ) from exc
    return image


def _encode(image: Image.Image, *, quality: int, max_dimension: int, keep_alpha: bool) -> tuple[bytes, str]:
    resized = ImageOps.exif_transpose(image)
    resized.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
    buffer = BytesIO()
    if keep_alpha:
        resized.save(buffer, format="PNG", optimize=True)
        return buffer.getvalue(), "image/png"
    if resized.mode not in ("RGB", "L"):
        resized = resized.convert("RGB")
    resized.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue(), "image/jpeg"


def optimize_image(upload: ImageUpload) -> ImageUpload:
    if upload.size > settings.image_max_upload_bytes:
        limit_mb = settings.image_max_upload_bytes / MB
        raise ValidationError(
            f"Image is too large (maximum {limit_mb:g} MB).",
            field_errors={"image": "File too large."},
        )

    image = _open(upload)
    plan = compression_plan(upload.size)
    if plan is None:
        content_type = _CONTENT_TYPES.get(image.format or "", upload.content_type)
        return ImageUpload(upload.filename, upload.content, content_type)

    quality, max_dimension = plan
    keep_alpha = image.mode in ("RGBA", "LA", "P") and image.format == "PNG"
    content, content_type = _encode(image, quality=quality, max_dimension=max_dimension, keep_alpha=keep_alpha)

    if len(content) > MEDIUM_IMAGE_BYTES:
        content, content_type = _encode(
            image,
            quality=60,
            max_dimension=min(max_dimension, settings.image_max_dimension),
            keep_alpha=keep_alpha,
        )

    stem = PurePosixPath(upload.filename).stem or "image"
    optimized = ImageUpload(f"{stem}.{_EXTENSIONS[content_type]}", content, content_type)
    logger.info(
        "Image optimised: %.2fKB -> %.2fKB (%s)",
        upload.size / KB,
        optimized.size / KB,
        optimized.filename,
    )
    return optimized
