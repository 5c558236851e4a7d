"""Utility helpers for image preprocessing and data-URI handling."""

from __future__ import annotations

import base64
import binascii
import io
import logging
import mimetypes
import re
from pathlib import Path
from typing import Iterable, Optional, Tuple

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

BASE_IMAGE_MAX_PX = 2048
REFERENCE_IMAGE_MAX_PX = 1024
UPSCALE_IMAGE_MAX_PX = 1536

ASPECT_RATIOS: dict[str, float] = {
    "16:9": 16 / 9,
    "4:3": 4 / 3,
    "1:1": 1.0,
    "3:4": 3 / 4,
    "9:16": 9 / 16,
}

FALLBACK_DIMENSIONS = (1024, 1024)
JPEG_QUALITY = 92

_DATA_URI_RE = re.compile(r"^data:([a-zA-Z0-9/+.-]+);")


def mime_type_of(data_uri: str) -> str:
    """Parse the MIME type from a data URI, defaulting to PNG."""
    if not data_uri or not data_uri.startswith("data:"):
        return "image/png"
    match = _DATA_URI_RE.match(data_uri)
    return match.group(1) if match else "image/png"


def base64_payload(data_uri: str) -> str:
    """Return the base64 part of a data URI (empty string when absent)."""
    if not data_uri or not isinstance(data_uri, str):
        return ""
    parts = data_uri.split(",", 1)
    return parts[1] if len(parts) > 1 else ""


def decode_data_uri(data_uri: str) -> bytes:
    """Decode the payload of a data URI into raw bytes."""
    return base64.b64decode(base64_payload(data_uri), validate=False)


def to_data_uri(data: bytes | str, mime_type: str = "image/png") -> str:
    """Build a data URI from raw bytes or an already base64-encoded string."""
    if isinstance(data, bytes):
        encoded = base64.b64encode(data).decode("ascii")
    else:
        encoded = data
    return f"data:{mime_type or 'image/png'};base64,{encoded}"


def open_data_uri(data_uri: str) -> Image.Image:
    """Decode a data URI into a fully loaded PIL image."""
    with Image.open(io.BytesIO(decode_data_uri(data_uri))) as img:
        img.load()
        return img.copy()


def image_to_data_uri(image: Image.Image, fmt: str = "PNG", **save_kwargs) -> str:
    """Encode a PIL image as a data URI."""
    if fmt.upper() == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **save_kwargs)
    mime = Image.MIME.get(fmt.upper(), f"image/{fmt.lower()}")
    return to_data_uri(buffer.getvalue(), mime)


def resize_for_transmission(data_uri: str, max_dimension: int = BASE_IMAGE_MAX_PX) -> str:
    """Downsample an image so its longest edge is at most ``max_dimension``.

    Images already within bounds are returned unchanged. Resized images are
    re-encoded as JPEG. Decoding failures return the input untouched so the
    upstream API can decide what to do with it.
    """
    try:
        image = open_data_uri(data_uri)
    except (UnidentifiedImageError, OSError, ValueError, binascii.Error) as exc:
        logger.warning("Could not decode image for resizing, sending original: %s", exc)
        return data_uri

    longest = max(image.width, image.height)
    if longest <= max_dimension:
        return data_uri

    scale = max_dimension / longest
    target = (max(1, round(image.width * scale)), max(1, round(image.height * scale)))
    resized = image.resize(target, Image.Resampling.LANCZOS)
    return image_to_data_uri(resized, "JPEG", quality=JPEG_QUALITY)


def image_dimensions(data_uri: str) -> Tuple[int, int]:
    """Return ``(width, height)`` of an encoded image, with a square fallback."""
    try:
        with Image.open(io.BytesIO(decode_data_uri(data_uri))) as img:
            return img.width, img.height
    except (UnidentifiedImageError, OSError, ValueError, binascii.Error):
        return FALLBACK_DIMENSIONS


def closest_aspect_ratio(width: int, height: int) -> str:
    """Pick the supported aspect ratio string closest to ``width / height``."""
    if not width or not height:
        return "1:1"
    ratio = width / height
    best = "16:9"
    for name, value in ASPECT_RATIOS.items():
        if abs(value - ratio) < abs(ASPECT_RATIOS[best] - ratio):
            best = name
    return best


def aspect_ratio_of(data_uri: str) -> str:
    """Closest supported aspect ratio for an encoded image."""
    return closest_aspect_ratio(*image_dimensions(data_uri))


def generate_thumbnail(image: Image.Image, max_size: Tuple[int, int] = (256, 256)) -> Image.Image:
    """Create a thumbnail suitable for history previews."""
    thumb = image.copy()
    thumb.thumbnail(max_size)
    return thumb


def load_images(data_uris: Iterable[str]) -> list[Optional[Image.Image]]:
    """Decode a sequence of data URIs, keeping ``None`` in place of undecodable ones."""
    images: list[Optional[Image.Image]] = []
    for uri in data_uris:
        try:
            images.append(open_data_uri(uri))
        except (UnidentifiedImageError, OSError, ValueError, binascii.Error) as exc:
            logger.warning("Skipping undecodable image: %s", exc)
            images.append(None)
    return images


ALLOWED_MIME_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif", "image/bmp")
MAX_UPLOAD_MB = 10
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024


def read_uploads(paths: Iterable[str | Path]) -> Tuple[list[str], list[str]]:
    """Validate uploaded files and return ``(data_uris, errors)``.

    Unsupported formats and files above the size limit are reported and
    skipped; the remaining files are returned as data URIs in input order.
    """
    valid: list[str] = []
    errors: list[str] = []
    for raw_path in paths:
        path = Path(raw_path)
        mime, _ = mimetypes.guess_type(path.name)
        if mime not in ALLOWED_MIME_TYPES:
            errors.append(f'"{path.name}": unsupported format (JPEG, PNG, WebP, GIF, BMP only)')
            continue
        if path.stat().st_size > MAX_UPLOAD_BYTES:
            errors.append(f'"{path.name}": file too large (max {MAX_UPLOAD_MB} MB)')
            continue
        valid.append(to_data_uri(path.read_bytes(), mime))
    return valid, errors
