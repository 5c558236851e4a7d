"""Image helper tests."""

from __future__ import annotations

import pytest

from modules.utils import image_utils


def test_resize_noop_when_within_bounds(png_uri):
    uri = png_uri(800, 600)

    assert image_utils.resize_for_transmission(uri, 1024) is uri


def test_resize_shrinks_longest_edge_and_reencodes_jpeg(png_uri):
    uri = png_uri(4000, 2000)

    resized = image_utils.resize_for_transmission(uri, 2048)

    assert resized.startswith("data:image/jpeg;base64,")
    assert image_utils.image_dimensions(resized) == (2048, 1024)


def test_resize_portrait_keeps_aspect(png_uri):
    resized = image_utils.resize_for_transmission(png_uri(1000, 3000), 1536)

    assert image_utils.image_dimensions(resized) == (512, 1536)


def test_resize_returns_input_on_decode_error():
    broken = "data:image/png;base64,bm90LWFuLWltYWdl"

    assert image_utils.resize_for_transmission(broken, 1024) == broken


@pytest.mark.parametrize(
    ("width", "height", "expected"),
    [
        (4000, 2000, "16:9"),
        (1920, 1080, "16:9"),
        (1600, 1200, "4:3"),
        (1000, 1000, "1:1"),
        (900, 1200, "3:4"),
        (1080, 1920, "9:16"),
        (0, 500, "1:1"),
    ],
)
def test_closest_aspect_ratio(width, height, expected):
    assert image_utils.closest_aspect_ratio(width, height) == expected


def test_image_dimensions_fallback():
    assert image_utils.image_dimensions("data:image/png;base64,AAAA") == (1024, 1024)


def test_mime_type_and_payload():
    uri = "data:image/webp;base64,QUJD"

    assert image_utils.mime_type_of(uri) == "image/webp"
    assert image_utils.mime_type_of("not-a-uri") == "image/png"
    assert image_utils.base64_payload(uri) == "QUJD"
    assert image_utils.decode_data_uri(uri) == b"ABC"


def test_read_uploads_reports_invalid_files(tmp_path, png_uri):
    good = tmp_path / "plan.png"
    good.write_bytes(image_utils.decode_data_uri(png_uri(10, 10)))
    text = tmp_path / "notes.txt"
    text.write_text("hello", encoding="utf-8")
    huge = tmp_path / "huge.jpg"
    huge.write_bytes(b"\0" * (image_utils.MAX_UPLOAD_BYTES + 1))

    valid, errors = image_utils.read_uploads([good, text, huge])

    assert len(valid) == 1
    assert valid[0].startswith("data:image/png;base64,")
    assert len(errors) == 2
    assert "notes.txt" in errors[0]
    assert "too large" in errors[1]
