"""Gradio layout composition for the render studio."""

from __future__ import annotations

import binascii
import logging
from typing import Any, List, Optional, Sequence

from PIL import Image, UnidentifiedImageError

try:
    import gradio as gr
except ImportError:  # pragma: no cover
    gr = None  # type: ignore

from config.settings import AppConfig
from modules.canvas.annotation import Tool
from modules.optimization.prompt_presets import PromptPresetRegistry
from modules.pipelines.generation import RenderService
from modules.pipelines.task_types import IMAGE_SIZES, TASK_INFO, TaskType
from modules.services.app_state import AppState
from modules.services.credit_service import CreditService, JsonAccountStore
from modules.services.history_service import BatchHistory
from modules.services.storage_service import StorageService
from modules.services.workflow import StudioWorkflow
from modules.ui.callbacks import Status, build_callbacks
from modules.utils.image_utils import open_data_uri

logger = logging.getLogger(__name__)

TOAST_SECONDS = 6

COPY_RESULT_JS = """
async () => {
  const img = document.querySelector('#result-image img');
  if (!img) { return; }
  try {
    const blob = await (await fetch(img.src)).blob();
    await navigator.clipboard.write([new ClipboardItem({[blob.type]: blob})]);
  } catch (err) {
    console.error('Copy failed', err);
  }
}
"""

HIDDEN_PROXY_CSS = ".shortcut-proxy { display: none !important; }"
CANVAS_VIEW_CSS = (
    "#annotation-canvas { overflow: hidden; }"
    " #annotation-canvas img { transform: var(--canvas-view, none); transform-origin: 0 0; }"
)

# Forward ctrl+Z / ctrl+Y / ctrl+shift+Z and alt+wheel to the hidden canvas proxy buttons.
CANVAS_SHORTCUTS_JS = """
() => {
  window.addEventListener('keydown', (e) => {
    if (!e.ctrlKey) { return; }
    const key = e.key.toLowerCase();
    let target = null;
    if (key === 'z' && !e.shiftKey) { target = 'canvas-key-undo'; }
    if (key === 'y' || (key === 'z' && e.shiftKey)) { target = 'canvas-key-redo'; }
    const button = target && document.getElementById(target);
    if (button) { e.preventDefault(); button.click(); }
  });
  window.addEventListener('wheel', (e) => {
    if (!e.altKey || !e.target.closest('#annotation-canvas')) { return; }
    e.preventDefault();
    window.canvasWheelDelta = e.deltaY;
    const button = document.getElementById('canvas-key-wheel');
    if (button) { button.click(); }
  }, { passive: false });
}
"""

# Publish the editor's pan/zoom transform; CANVAS_VIEW_CSS applies it to the image.
APPLY_VIEW_JS = """
(transform) => {
  const canvas = document.getElementById('annotation-canvas');
  if (canvas) { canvas.style.setProperty('--canvas-view', transform || 'none'); }
  return [transform];
}
"""

READ_WHEEL_JS = "(delta) => [window.canvasWheelDelta || 0]"


def _load_presets(config: AppConfig) -> PromptPresetRegistry:
    registry = PromptPresetRegistry.with_defaults()
    registry.load_from_file(config.presets_path)
    return registry


def _task_choices() -> Sequence[tuple[str, str]]:
    return [(TASK_INFO[task].title, task.value) for task in TaskType]


def _preview(data_uri: Optional[str]) -> Optional[Image.Image]:
    if not data_uri:
        return None
    try:
        return open_data_uri(data_uri)
    except (UnidentifiedImageError, OSError, ValueError, binascii.Error) as exc:
        logger.warning("Could not decode image for preview: %s", exc)
        return None


def _previews(data_uris: Optional[List[str]]) -> List[Image.Image]:
    return [image for image in (_preview(uri) for uri in data_uris or []) if image is not None]


def _notify(status: Status) -> str:
    if not status.ok:
        gr.Warning(status.text, duration=TOAST_SECONDS)
    return status.text


def build_services(config: AppConfig) -> StudioWorkflow:
    """Wire the render service, credits and history for one local user."""
    renderer = RenderService(config)
    credits = CreditService(
        JsonAccountStore(config.accounts_path),
        uid=config.user_id,
        default_credits=config.default_credits,
    )
    return StudioWorkflow(renderer, credits, BatchHistory(config.max_history), AppState())


def build_app(config: AppConfig, workflow: Optional[StudioWorkflow] = None) -> Any:
    """Compose and return the Gradio application."""
    if gr is None:
        raise RuntimeError("Gradio is not installed. Install the project dependencies first.")

    workflow = workflow or build_services(config)
    storage = StorageService(config.output_dir, max_items=config.max_saved_images)
    presets = _load_presets(config)
    callbacks_map = build_callbacks(config, workflow, storage=storage, presets=presets)
    reference_links = config.metadata.get("reference_links") or {}
    initial_link = reference_links.get("exterior") or reference_links.get("interior") or ""
    workflow.state.set_project_link(initial_link)

    with gr.Blocks(title="Archi Render Studio", css=HIDDEN_PROXY_CSS + CANVAS_VIEW_CSS) as demo:
        with gr.Row():
            gr.Markdown("## Archi Render Studio")
            credits_label = gr.Markdown(callbacks_map["on_refresh_credits"]())

        with gr.Accordion("Gemini API key", open=not workflow.renderer.has_api_key):
            gr.Markdown(
                "A Gemini API key with billing enabled is required for image generation. "
                "See https://ai.google.dev/gemini-api/docs/billing"
            )
            with gr.Row():
                api_key = gr.Textbox(label="API key", type="password", scale=4)
                save_key_btn = gr.Button("Save key", scale=1)

        base_images = gr.State([])
        result_uri = gr.State(None)
        selected_result = gr.State("")

        with gr.Row():
            with gr.Column(scale=1):
                task = gr.Radio(
                    label="Task",
                    choices=_task_choices(),
                    value=TaskType.PERSPECTIVE.value,
                )
                task_info = gr.Markdown(callbacks_map["on_select_task"](TaskType.PERSPECTIVE.value))

                uploads = gr.File(
                    label="Base images",
                    file_count="multiple",
                    file_types=["image"],
                    type="filepath",
                )
                base_gallery = gr.Gallery(label="Queued images", columns=4, height=160)
                clear_base_btn = gr.Button("Remove all images", size="sm")

                with gr.Accordion("Reference images (max 3)", open=False):
                    ref_uploads = gr.File(
                        label="Style references",
                        file_count="multiple",
                        file_types=["image"],
                        type="filepath",
                    )
                    ref_gallery = gr.Gallery(label="References", columns=3, height=140)
                    clear_refs_btn = gr.Button("Remove references", size="sm")
                    style_description = gr.Textbox(label="Describe a style", lines=2)
                    style_btn = gr.Button("Generate 3 style references")

                project_link = gr.Textbox(
                    label="Project link (enables web search)",
                    value=initial_link,
                )

                prompt = gr.Textbox(
                    label="Instruction",
                    lines=4,
                    placeholder="Describe the change you want, or leave empty for the task default",
                )
                with gr.Row():
                    preset_select = gr.Dropdown(label="Preset", choices=presets.names(), value=None)
                    preset_btn = gr.Button("Add preset")
                image_size = gr.Radio(label="Resolution", choices=list(IMAGE_SIZES), value="1K")
                with gr.Row():
                    night_mode = gr.Checkbox(label="Night mode", value=False)
                    upscale_mode = gr.Checkbox(label="Upscale only (2 credits/image)", value=False)
                with gr.Row():
                    generate_btn = gr.Button("Generate", variant="primary")
                    analyze_btn = gr.Button("Analyse")

            with gr.Column(scale=1):
                with gr.Tab("Annotate"):
                    canvas_index = gr.Number(label="Image to annotate", value=0, precision=0)
                    canvas = gr.Image(
                        label="Click to add points (or drag the view with pan), then finish the stroke",
                        type="pil",
                        interactive=False,
                        elem_id="annotation-canvas",
                    )
                    with gr.Row():
                        tool = gr.Radio(
                            label="Tool",
                            choices=[tool.value for tool in Tool],
                            value=Tool.MARKER.value,
                        )
                        stroke_width = gr.Slider(label="Stroke width", minimum=1, maximum=20, step=1, value=4)
                    with gr.Row():
                        finish_btn = gr.Button("Finish stroke")
                        undo_btn = gr.Button("Undo")
                        redo_btn = gr.Button("Redo")
                        clear_canvas_btn = gr.Button("Clear annotations")
                    with gr.Row():
                        zoom = gr.Slider(label="Zoom", minimum=0.1, maximum=10, step=0.1, value=1.0)
                        reset_view_btn = gr.Button("Reset view")
                    key_undo_btn = gr.Button("Undo", elem_id="canvas-key-undo", elem_classes=["shortcut-proxy"])
                    key_redo_btn = gr.Button("Redo", elem_id="canvas-key-redo", elem_classes=["shortcut-proxy"])
                    key_wheel_btn = gr.Button("Zoom", elem_id="canvas-key-wheel", elem_classes=["shortcut-proxy"])
                    wheel_delta = gr.Number(value=0, elem_classes=["shortcut-proxy"])
                    canvas_transform = gr.Textbox(value="none", elem_classes=["shortcut-proxy"])

                with gr.Tab("Result"):
                    result_image = gr.Image(label="Result", type="pil", interactive=False, elem_id="result-image")
                    status = gr.Markdown("Ready.")
                    with gr.Row():
                        copy_btn = gr.Button("Copy to clipboard")
                        download_btn = gr.Button("Save PNG")
                    download_file = gr.File(label="Download", interactive=False)
                    analysis = gr.Markdown()

                with gr.Tab("History"):
                    history_gallery = gr.Gallery(label="Recent batches", columns=4, height=320)
                    with gr.Row():
                        like_btn = gr.Button("Like")
                        dislike_btn = gr.Button("Dislike")
                        restore_btn = gr.Button("Restore batch")
                        clear_history_btn = gr.Button("Clear history", variant="stop")

        # -- wrappers -------------------------------------------------------

        def _save_key(value: str) -> str:
            return _notify(callbacks_map["on_set_api_key"](value))

        def _upload_base(paths: Optional[List[str]], current: List[str]):
            images, upload_status = callbacks_map["on_upload_base"](paths, current)
            return images, _previews(images), _notify(upload_status)

        def _clear_base():
            callbacks_map["on_clear_base"]()
            return [], [], None

        def _upload_refs(paths: Optional[List[str]]):
            references, upload_status = callbacks_map["on_upload_references"](paths)
            return _previews(references), _notify(upload_status)

        def _clear_refs():
            return _previews(callbacks_map["on_clear_references"]())

        def _style_refs(description: str):
            references, style_status = callbacks_map["on_generate_style_refs"](description)
            return _previews(references), _notify(style_status), callbacks_map["on_refresh_credits"]()

        def _project_link(link: str) -> str:
            return _notify(callbacks_map["on_set_project_link"](link))

        def _generate(images, instruction, size, night, upscale):
            output, run_status = callbacks_map["on_generate"](images, instruction, size, night, upscale)
            return (
                output,
                _preview(output),
                _notify(run_status),
                callbacks_map["on_history_gallery"](),
                callbacks_map["on_refresh_credits"](),
            )

        def _analyze(images, context, index):
            text, run_status = callbacks_map["on_analyze"](images, context, int(index or 0))
            _notify(run_status)
            return text, callbacks_map["on_refresh_credits"]()

        def _download(image_uri: Optional[str]):
            path, save_status = callbacks_map["on_download"](image_uri)
            return path, _notify(save_status)

        def _select_history(evt: gr.SelectData):
            output, result_id = callbacks_map["on_history_select"](evt.index)
            return output, _preview(output), result_id

        def _feedback(result_id: str, value: str):
            _notify(callbacks_map["on_feedback"](result_id, value))
            return callbacks_map["on_history_gallery"]()

        def _restore(result_id: str):
            images, restored_prompt, restore_status = callbacks_map["on_restore_batch"](result_id)
            return images, _previews(images), restored_prompt, _notify(restore_status)

        def _clear_history():
            _notify(callbacks_map["on_clear_history"]())
            return [], None, ""

        def _canvas_load(images, index):
            return callbacks_map["on_canvas_load"](images, index), callbacks_map["on_canvas_view"]()

        def _canvas_click(evt: gr.SelectData):
            x, y = evt.index
            return callbacks_map["on_canvas_point"](x, y), callbacks_map["on_canvas_view"]()

        def _canvas_reset_view():
            return callbacks_map["on_canvas_reset_view"](), callbacks_map["on_canvas_view"]()

        # -- events ---------------------------------------------------------

        save_key_btn.click(fn=_save_key, inputs=[api_key], outputs=[status])
        task.change(fn=callbacks_map["on_select_task"], inputs=[task], outputs=[task_info])
        uploads.upload(fn=_upload_base, inputs=[uploads, base_images], outputs=[base_images, base_gallery, status])
        clear_base_btn.click(fn=_clear_base, outputs=[base_images, base_gallery, canvas])
        ref_uploads.upload(fn=_upload_refs, inputs=[ref_uploads], outputs=[ref_gallery, status])
        clear_refs_btn.click(fn=_clear_refs, outputs=[ref_gallery])
        style_btn.click(fn=_style_refs, inputs=[style_description], outputs=[ref_gallery, status, credits_label])
        project_link.blur(fn=_project_link, inputs=[project_link], outputs=[status])
        preset_btn.click(fn=callbacks_map["on_apply_preset"], inputs=[prompt, preset_select], outputs=[prompt])

        generate_btn.click(
            fn=_generate,
            inputs=[base_images, prompt, image_size, night_mode, upscale_mode],
            outputs=[result_uri, result_image, status, history_gallery, credits_label],
        )
        analyze_btn.click(
            fn=_analyze,
            inputs=[base_images, prompt, canvas_index],
            outputs=[analysis, credits_label],
        )

        copy_btn.click(fn=None, js=COPY_RESULT_JS)
        download_btn.click(fn=_download, inputs=[result_uri], outputs=[download_file, status])

        history_gallery.select(fn=_select_history, outputs=[result_uri, result_image, selected_result])
        like_btn.click(fn=lambda rid: _feedback(rid, "like"), inputs=[selected_result], outputs=[history_gallery])
        dislike_btn.click(fn=lambda rid: _feedback(rid, "dislike"), inputs=[selected_result], outputs=[history_gallery])
        restore_btn.click(fn=_restore, inputs=[selected_result], outputs=[base_images, base_gallery, prompt, status])
        clear_history_btn.click(fn=_clear_history, outputs=[history_gallery, result_image, selected_result])

        canvas_index.change(fn=_canvas_load, inputs=[base_images, canvas_index], outputs=[canvas, canvas_transform])
        base_images.change(fn=_canvas_load, inputs=[base_images, canvas_index], outputs=[canvas, canvas_transform])
        tool.change(fn=callbacks_map["on_canvas_tool"], inputs=[tool])
        stroke_width.change(fn=callbacks_map["on_canvas_stroke_width"], inputs=[stroke_width])
        canvas.select(fn=_canvas_click, outputs=[canvas, canvas_transform])
        finish_btn.click(fn=callbacks_map["on_canvas_finish"], outputs=[canvas])
        undo_btn.click(fn=callbacks_map["on_canvas_undo"], outputs=[canvas])
        redo_btn.click(fn=callbacks_map["on_canvas_redo"], outputs=[canvas])
        clear_canvas_btn.click(fn=callbacks_map["on_canvas_clear"], outputs=[canvas])
        key_undo_btn.click(fn=lambda: callbacks_map["on_canvas_key"]("z", True, False), outputs=[canvas])
        key_redo_btn.click(fn=lambda: callbacks_map["on_canvas_key"]("y", True, False), outputs=[canvas])
        zoom.release(fn=callbacks_map["on_canvas_zoom"], inputs=[zoom], outputs=[canvas_transform])
        reset_view_btn.click(fn=_canvas_reset_view, outputs=[zoom, canvas_transform])
        key_wheel_btn.click(
            fn=callbacks_map["on_canvas_wheel"],
            inputs=[wheel_delta],
            outputs=[zoom, canvas_transform],
            js=READ_WHEEL_JS,
        )
        canvas_transform.change(fn=None, inputs=[canvas_transform], js=APPLY_VIEW_JS)

        demo.load(fn=None, js=CANVAS_SHORTCUTS_JS)

    return demo
