"""Gradio UI callback tests."""

from __future__ import annotations

from typing import Optional

import pytest

from config.settings import AppConfig
from modules.pipelines.errors import NoContentGeneratedError
from modules.pipelines.generation import GenerationRequest, GenerationResult
from modules.pipelines.retry import USER_MESSAGES, ErrorCategory
from modules.pipelines.task_types import TaskType
from modules.services.app_state import AppState
from modules.services.credit_service import Account, CreditService, InMemoryAccountStore
from modules.services.history_service import BatchHistory
from modules.services.storage_service import StorageService
from modules.services.workflow import StudioWorkflow
from modules.ui import callbacks
from modules.utils.image_utils import decode_data_uri


class DummyRenderer:
    """Stub render service capturing inputs."""

    def __init__(self) -> None:
        self.requests: list[GenerationRequest] = []
        self.should_fail = False
        self.api_key: Optional[str] = None
        self.outputs: list[str] = []

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key

    def generate_view(self, request: GenerationRequest) -> GenerationResult:
        if self.should_fail:
            raise NoContentGeneratedError()
        self.requests.append(request)
        return GenerationResult(
            image=self.outputs.pop(0) if self.outputs else f"result-{len(self.requests)}",
            prompt="prompt",
            task_type=request.task_type,
            aspect_ratio=request.aspect_ratio,
        )

    def upscale(self, image: str, aspect_ratio: str = "1:1") -> str:
        return f"upscaled-{aspect_ratio}"

    def analyze(self, image: str, context: str = "") -> str:
        if self.should_fail:
            raise RuntimeError("models/x is not found")
        return "Critique"

    def generate_style_images(self, description: str, count: int = 3) -> list[str]:
        return [f"style-{index}" for index in range(count)]


def build_callbacks(tmp_path, renderer: Optional[DummyRenderer] = None, credits: int = 10):
    renderer = renderer or DummyRenderer()
    store = InMemoryAccountStore({"local": Account("local", credits)})
    workflow = StudioWorkflow(renderer, CreditService(store, uid="local"), BatchHistory(), AppState())
    config = AppConfig(output_dir=tmp_path)
    cbs = callbacks.build_callbacks(config, workflow, storage=StorageService(tmp_path))
    return cbs, workflow, renderer


def _upload(tmp_path, png_uri, name="render.png", size=(64, 32)):
    path = tmp_path / name
    path.write_bytes(decode_data_uri(png_uri(*size)))
    return str(path)


def test_on_set_api_key(tmp_path):
    cbs, _, renderer = build_callbacks(tmp_path)

    assert cbs["on_set_api_key"]("").ok is False
    status = cbs["on_set_api_key"](" abc ")

    assert status.ok
    assert renderer.api_key == "abc"


def test_on_select_task_updates_state(tmp_path):
    cbs, workflow, _ = build_callbacks(tmp_path)

    text = cbs["on_select_task"]("masterplan")

    assert workflow.state.active_task is TaskType.MASTERPLAN
    assert "Masterplan" in text


def test_on_generate_success(tmp_path, png_uri):
    cbs, workflow, renderer = build_callbacks(tmp_path)
    images, status = cbs["on_upload_base"]([_upload(tmp_path, png_uri)], [])
    assert status.ok and len(images) == 1

    output, status = cbs["on_generate"](images, "Add trees", "2K", False, False)

    assert output == "result-1"
    assert status.ok
    assert "Credits: 9" in status.text
    assert renderer.requests[0].image_size == "2K"
    assert renderer.requests[0].aspect_ratio == "16:9"
    assert len(workflow.history.list()) == 1


def test_on_generate_failure_returns_user_message(tmp_path, png_uri):
    renderer = DummyRenderer()
    renderer.should_fail = True
    cbs, workflow, _ = build_callbacks(tmp_path, renderer)

    output, status = cbs["on_generate"](["data:image/png;base64,AAAA"], "x", "1K", False, False)

    assert output is None
    assert status.ok is False
    assert status.text == USER_MESSAGES[ErrorCategory.NO_IMAGE]
    assert workflow.history.list() == []


def test_on_generate_reports_insufficient_credits(tmp_path):
    cbs, _, _ = build_callbacks(tmp_path, credits=0)

    _, status = cbs["on_generate"]([], "a tower", "1K", False, False)

    assert status.ok is False
    assert status.text.startswith("Insufficient credits")


def test_on_generate_upscale_mode(tmp_path, png_uri):
    cbs, _, _ = build_callbacks(tmp_path)

    output, status = cbs["on_generate"]([png_uri(90, 160)], "", "1K", False, True)

    assert output == "upscaled-9:16"
    assert "Upscale" in status.text


def test_on_upload_reports_invalid_files(tmp_path, png_uri):
    cbs, _, _ = build_callbacks(tmp_path)
    bad = tmp_path / "notes.txt"
    bad.write_text("x", encoding="utf-8")

    images, status = cbs["on_upload_base"]([_upload(tmp_path, png_uri), str(bad)], [])

    assert len(images) == 1
    assert status.ok is False
    assert "notes.txt" in status.text


def test_reference_uploads_are_capped(tmp_path, png_uri):
    cbs, workflow, _ = build_callbacks(tmp_path)
    paths = [_upload(tmp_path, png_uri, name=f"ref{i}.png") for i in range(4)]

    references, _ = cbs["on_upload_references"](paths)

    assert len(references) == 3
    assert cbs["on_remove_reference"](0) == references[1:]
    assert cbs["on_clear_references"]() == []
    assert workflow.state.reference_images == []


def test_on_generate_style_refs(tmp_path):
    cbs, workflow, _ = build_callbacks(tmp_path)

    references, status = cbs["on_generate_style_refs"]("brick")

    assert status.ok
    assert references == ["style-0", "style-1", "style-2"]
    assert workflow.state.reference_images == references


def test_on_analyze_success_and_failure(tmp_path, png_uri):
    renderer = DummyRenderer()
    cbs, _, _ = build_callbacks(tmp_path, renderer)

    text, status = cbs["on_analyze"]([png_uri()], "render", 0)
    assert text == "Critique" and status.ok

    renderer.should_fail = True
    text, status = cbs["on_analyze"]([png_uri()], "render", 0)
    assert status.ok is False
    assert text == f"Error during analysis: {USER_MESSAGES[ErrorCategory.MODEL_NOT_FOUND]}"


def test_on_apply_preset(tmp_path):
    cbs, _, _ = build_callbacks(tmp_path)

    text = cbs["on_apply_preset"]("Keep trees", "Sunset")

    assert text.startswith("Keep trees Golden")
    assert cbs["on_apply_preset"]("Keep trees", "Unknown") == "Keep trees"


def test_on_download_saves_png(tmp_path, png_uri):
    cbs, _, _ = build_callbacks(tmp_path)

    path, status = cbs["on_download"](png_uri())

    assert status.ok
    assert path.endswith(".png")
    assert cbs["on_download"](None)[1].ok is False


def test_history_feedback_restore_and_clear(tmp_path, png_uri):
    cbs, workflow, renderer = build_callbacks(tmp_path)
    source = png_uri(40, 40)
    rendered = png_uri(40, 40, (0, 128, 0))
    renderer.outputs = [rendered]
    cbs["on_generate"]([source], "Add trees", "1K", False, False)
    result_id = workflow.history.list()[0].results[0].id

    output, selected = cbs["on_history_select"](0)
    assert output == rendered and selected == result_id

    assert cbs["on_feedback"](result_id, "like").ok
    assert workflow.history.find_result(result_id).feedback == "like"
    assert cbs["on_feedback"]("missing-0", "like").ok is False

    images, prompt, status = cbs["on_restore_batch"](result_id)
    assert images == [source] and prompt == "Add trees" and status.ok

    assert cbs["on_clear_history"]().ok
    assert cbs["on_history"]() == []


def test_canvas_annotations_feed_generation(tmp_path, png_uri):
    cbs, _, renderer = build_callbacks(tmp_path)
    base = png_uri(100, 100)

    preview = cbs["on_canvas_load"]([base], 0)
    assert preview.size == (100, 100)
    cbs["on_canvas_tool"]("pencil")
    cbs["on_canvas_point"](10, 50)
    drawn = cbs["on_canvas_point"](90, 50)
    assert drawn.getpixel((50, 50))[:3] == (0xDC, 0x26, 0x26)
    cbs["on_canvas_finish"]()

    cbs["on_generate"]([base], "Fix the marked area", "1K", False, False)

    assert renderer.requests[0].base_image != base
    assert renderer.requests[0].base_image.startswith("data:image/png;base64,")


def test_history_gallery_skips_undecodable_outputs_in_step(tmp_path, png_uri):
    cbs, workflow, renderer = build_callbacks(tmp_path)
    good = png_uri(40, 40, (0, 0, 255))
    renderer.outputs = ["data:image/png;base64,AAAA", good]
    cbs["on_generate"]([png_uri(40, 40), png_uri(40, 40)], "Add trees", "1K", False, False)
    good_id = workflow.history.list()[0].results[1].id

    gallery = cbs["on_history_gallery"]()
    output, selected = cbs["on_history_select"](0)

    assert len(gallery) == 1
    assert gallery[0][1].endswith(good_id)
    assert output == good and selected == good_id
    assert cbs["on_history_select"](1) == (None, "")


def test_canvas_annotations_survive_unrelated_list_changes(tmp_path, png_uri):
    cbs, _, renderer = build_callbacks(tmp_path)
    base = png_uri(100, 100)
    other = png_uri(60, 60, (0, 0, 0))
    cbs["on_canvas_load"]([base], 0)
    cbs["on_canvas_tool"]("pencil")
    cbs["on_canvas_point"](10, 50)
    cbs["on_canvas_point"](90, 50)
    cbs["on_canvas_finish"]()

    preview = cbs["on_canvas_load"]([base, other], 0)
    assert preview.getpixel((50, 50))[:3] == (0xDC, 0x26, 0x26)

    cbs["on_generate"]([base, other], "Fix the marked area", "1K", False, False)

    assert renderer.requests[0].base_image != base
    assert renderer.requests[1].base_image == other


def test_canvas_reloads_when_slot_image_changes(tmp_path, png_uri):
    cbs, _, _ = build_callbacks(tmp_path)
    cbs["on_canvas_load"]([png_uri(100, 100)], 0)
    cbs["on_canvas_tool"]("pencil")
    cbs["on_canvas_point"](10, 50)
    cbs["on_canvas_point"](90, 50)
    cbs["on_canvas_finish"]()

    preview = cbs["on_canvas_load"]([png_uri(100, 100, (0, 0, 0))], 0)

    assert preview.getpixel((50, 50))[:3] == (0, 0, 0)
    assert cbs["on_canvas_undo"]().getpixel((50, 50))[:3] == (0, 0, 0)


def test_canvas_view_follows_zoom_wheel_and_pan(tmp_path, png_uri):
    cbs, _, _ = build_callbacks(tmp_path)
    assert cbs["on_canvas_view"]() == "none"
    cbs["on_canvas_load"]([png_uri(100, 100)], 0)
    assert cbs["on_canvas_view"]() == "translate(0px, 0px) scale(1)"

    assert cbs["on_canvas_zoom"](2) == "translate(0px, 0px) scale(2)"
    scale, transform = cbs["on_canvas_wheel"](-100)
    assert scale == pytest.approx(3.0)
    assert transform == cbs["on_canvas_view"]()

    cbs["on_canvas_tool"]("pan")
    cbs["on_canvas_point"](10, 10)
    panned = cbs["on_canvas_point"](30, 25)
    cbs["on_canvas_finish"]()
    assert cbs["on_canvas_view"]() == "translate(20px, 15px) scale(3)"
    assert panned.getpixel((20, 10))[:3] == (255, 255, 255)

    assert cbs["on_canvas_reset_view"]() == 1.0
    assert cbs["on_canvas_view"]() == "translate(0px, 0px) scale(1)"


def test_canvas_undo_redo_and_shortcuts(tmp_path, png_uri):
    cbs, _, _ = build_callbacks(tmp_path)
    cbs["on_canvas_load"]([png_uri(100, 100)], 0)
    cbs["on_canvas_tool"]("pencil")
    cbs["on_canvas_point"](10, 50)
    cbs["on_canvas_point"](90, 50)
    cbs["on_canvas_finish"]()

    assert cbs["on_canvas_undo"]().getpixel((50, 50))[:3] == (255, 255, 255)
    assert cbs["on_canvas_redo"]().getpixel((50, 50))[:3] == (0xDC, 0x26, 0x26)
    assert cbs["on_canvas_key"]("z", True, False).getpixel((50, 50))[:3] == (255, 255, 255)
    assert cbs["on_canvas_key"]("y", True, False).getpixel((50, 50))[:3] == (0xDC, 0x26, 0x26)
    assert cbs["on_canvas_clear"]().getpixel((50, 50))[:3] == (255, 255, 255)
    assert cbs["on_canvas_zoom"](2.5) == "translate(0px, 0px) scale(2.5)"
    assert cbs["on_canvas_reset_view"]() == 1.0


def test_canvas_without_image(tmp_path):
    cbs, _, _ = build_callbacks(tmp_path)

    assert cbs["on_canvas_load"]([], 0) is None
    assert cbs["on_canvas_point"](1, 1) is None
    assert cbs["on_canvas_undo"]() is None


def test_on_refresh_credits(tmp_path):
    cbs, _, _ = build_callbacks(tmp_path, credits=3)

    assert cbs["on_refresh_credits"]() == "Credits: 3"
