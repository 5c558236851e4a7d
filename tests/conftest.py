"""Shared pytest fixtures."""

from __future__ import annotations

import io
from typing import Callable

import pytest
from PIL import Image

from modules.utils.image_utils import to_data_uri


def _make_png_uri(width: int = 64, height: int = 64, color=(255, 255, 255)) -> str:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return to_data_uri(buffer.getvalue(), "image/png")


@pytest.fixture
def png_uri() -> Callable[..., str]:
    """Factory for in-memory PNG data URIs."""
    return _make_png_uri
