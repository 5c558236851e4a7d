"""Callback implementations for the Gradio interface."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from PIL import Image

from config.settings import AppConfig
from modules.canvas.annotation import CanvasSession, DisplayRect, PointerEvent, Tool
from modules.canvas.scheduler import ManualFrameScheduler
from modules.canvas.slots import CanvasSlotManager
from modules.optimization.prompt_presets import PromptPresetRegistry, append_preset
from modules.pipelines.retry import to_user_message
from modules.pipelines.task_types import TASK_INFO, parse_task_type
from modules.services.history_service import HistoryBatch, HistoryResult
from modules.services.storage_service import StorageService
from modules.services.workflow import StudioWorkflow
from modules.utils.image_utils import generate_thumbnail, load_images, read_uploads

logger = logging.getLogger(__name__)

READY = "Ready."


@dataclass(slots=True)
class Status:
    """Status line shown under the result; failures are also raised as toasts."""

    text: str
    ok: bool = True


def _failure(action: str, exc: Exception) -> Status:
    logger.error("%s failed: %s", action, exc)
    return Status(to_user_message(exc), ok=False)


def build_callbacks(
    config: AppConfig,
    workflow: StudioWorkflow,
    storage: Optional[StorageService] = None,
    presets: Optional[PromptPresetRegistry] = None,
    canvas_slots: Optional[CanvasSlotManager] = None,
) -> dict[str, Any]:
    """Return a dictionary of Gradio callback functions."""

    registry = presets or PromptPresetRegistry.with_defaults()
    store = storage or StorageService(config.output_dir, max_items=config.max_saved_images)
    scheduler = ManualFrameScheduler()
    annotated: Dict[int, str] = {}
    loaded_sources: Dict[int, str] = {}

    def _new_session() -> CanvasSession:
        return CanvasSession(scheduler=scheduler, max_undo_steps=config.max_undo_steps)

    slots = canvas_slots or CanvasSlotManager(_new_session)

    def _images_to_process(base_images: Sequence[str]) -> List[str]:
        return [annotated.get(index, image) for index, image in enumerate(base_images)]

    def _credits_label() -> str:
        account = workflow.credits.load_account()
        if account.is_admin:
            return "Credits: unlimited (admin)"
        return f"Credits: {account.credits}"

    # -- account and settings -------------------------------------------------

    def on_set_api_key(api_key: str) -> Status:
        key = (api_key or "").strip()
        if not key:
            return Status("Enter a Gemini API key to continue.", ok=False)
        workflow.renderer.set_api_key(key)
        return Status("API key saved for this session.")

    def on_refresh_credits() -> str:
        try:
            return _credits_label()
        except Exception as exc:  # noqa: BLE001
            logger.error("Could not load account: %s", exc)
            return "Credits: unavailable"

    def on_select_task(task_value: str) -> str:
        task_type = parse_task_type(task_value)
        workflow.state.active_task = task_type
        info = TASK_INFO[task_type]
        return f"**{info.title}**: {info.description}"

    def on_set_project_link(link: str) -> Status:
        workflow.state.set_project_link(link)
        if workflow.state.project_link:
            return Status("Project link attached; web search is enabled for generation.")
        return Status("Project link removed.")

    def on_apply_preset(prompt: str, preset_name: str) -> str:
        if not preset_name:
            return prompt or ""
        try:
            preset = registry.get(preset_name)
        except KeyError:
            return prompt or ""
        return append_preset(prompt or "", preset)

    # -- uploads ----------------------------------------------------------------

    def on_upload_base(paths: Optional[Sequence[str]], current: Optional[List[str]]) -> tuple[List[str], Status]:
        images = list(current or [])
        if not paths:
            return images, Status(READY)
        valid, errors = read_uploads(paths)
        images.extend(valid)
        if errors:
            return images, Status("; ".join(errors), ok=False)
        return images, Status(f"{len(images)} image(s) ready.")

    def on_remove_base(current: Optional[List[str]], index: int) -> List[str]:
        images = list(current or [])
        if 0 <= index < len(images):
            del images[index]
            # annotations are keyed by position
            annotated.clear()
            loaded_sources.clear()
            slots.release()
        return images

    def on_clear_base() -> List[str]:
        annotated.clear()
        loaded_sources.clear()
        slots.release()
        return []

    def on_upload_references(paths: Optional[Sequence[str]]) -> tuple[List[str], Status]:
        if not paths:
            return list(workflow.state.reference_images), Status(READY)
        valid, errors = read_uploads(paths)
        references = workflow.state.add_reference_images(valid)
        if errors:
            return list(references), Status("; ".join(errors), ok=False)
        return list(references), Status(f"{len(references)} reference image(s) attached.")

    def on_remove_reference(index: int) -> List[str]:
        return list(workflow.state.remove_reference_image(int(index)))

    def on_clear_references() -> List[str]:
        workflow.state.clear_reference_images()
        return []

    def on_generate_style_refs(description: str) -> tuple[List[str], Status]:
        try:
            references = workflow.run_style_references(description)
        except Exception as exc:  # noqa: BLE001
            return list(workflow.state.reference_images), _failure("Style reference generation", exc)
        return list(references), Status("Style references generated.")

    # -- generation -------------------------------------------------------------

    def on_generate(
        base_images: Optional[List[str]],
        instruction: str,
        image_size: str,
        night_mode: bool,
        upscale_mode: bool,
    ) -> tuple[Optional[str], Status]:
        images = _images_to_process(base_images or [])
        try:
            if upscale_mode:
                batch = workflow.run_upscale(images)
            else:
                batch = workflow.run_generation(images, instruction, image_size, bool(night_mode))
        except Exception as exc:  # noqa: BLE001
            return None, _failure("Generation", exc)

        count = len(batch.results)
        label = "Upscale" if upscale_mode else "Generation"
        return batch.results[0].output_image, Status(f"{label} complete ({count} image(s)). {_credits_label()}")

    def on_analyze(base_images: Optional[List[str]], context: str, active_index: int = 0) -> tuple[str, Status]:
        images = _images_to_process(base_images or [])
        image = images[active_index] if 0 <= active_index < len(images) else None
        try:
            critique = workflow.run_analysis(image, context)
        except Exception as exc:  # noqa: BLE001
            status = _failure("Analysis", exc)
            return f"Error during analysis: {status.text}", status
        return critique, Status("Analysis complete.")

    def on_download(image: Optional[str]) -> tuple[Optional[str], Status]:
        if not image:
            return None, Status("Nothing to download yet.", ok=False)
        try:
            path = store.save_image(image)
        except Exception as exc:  # noqa: BLE001
            return None, _failure("Download", exc)
        return str(path), Status(f"Saved {path.name}.")

    # -- history ----------------------------------------------------------------

    def on_history() -> List[HistoryBatch]:
        return workflow.history.list()

    def _gallery_entries() -> List[tuple[HistoryBatch, HistoryResult, Image.Image]]:
        # undecodable outputs are dropped together with their result
        entries: List[tuple[HistoryBatch, HistoryResult, Image.Image]] = []
        for batch in workflow.history.list():
            outputs = [result.output_image for result in batch.results]
            for result, image in zip(batch.results, load_images(outputs)):
                if image is not None:
                    entries.append((batch, result, image))
        return entries

    def on_history_gallery() -> List[tuple[Image.Image, str]]:
        items: List[tuple[Image.Image, str]] = []
        for batch, result, image in _gallery_entries():
            caption = f"{batch.task_type.value} | {result.id}"
            if result.feedback:
                caption += f" | {result.feedback}"
            items.append((generate_thumbnail(image), caption))
        return items

    def on_history_select(index: int) -> tuple[Optional[str], str]:
        entries = _gallery_entries()
        if 0 <= index < len(entries):
            result = entries[index][1]
            return result.output_image, result.id
        return None, ""

    def on_restore_batch(item_id: str) -> tuple[List[str], str, Status]:
        # result ids are "<batch>-<index>"
        batch_id = (item_id or "").rsplit("-", 1)[0]
        try:
            batch = workflow.history.get(batch_id)
        except KeyError as exc:
            return [], "", _failure("Restore", exc)
        annotated.clear()
        loaded_sources.clear()
        slots.release()
        sources = [result.input_image for result in batch.results if result.input_image]
        return sources, batch.prompt, Status("Batch restored.")

    def on_feedback(result_id: str, feedback: str) -> Status:
        try:
            workflow.history.set_feedback(result_id, feedback or None)
        except (KeyError, ValueError) as exc:
            return _failure("Feedback", exc)
        return Status("Thanks for the feedback.")

    def on_clear_history() -> Status:
        workflow.history.clear()
        return Status("History cleared.")

    # -- annotation canvas ------------------------------------------------------

    def _canvas_preview() -> Optional[Image.Image]:
        session = slots.active
        return session.composite() if session is not None else None

    def on_canvas_load(base_images: Optional[List[str]], index: int) -> Optional[Image.Image]:
        """Mount the editor on one base image, keeping its annotations across unrelated list changes."""
        images = base_images or []
        index = int(index or 0)
        if not 0 <= index < len(images):
            slots.release()
            return None
        session = slots.active
        if (
            session is not None
            and session.has_base
            and slots.active_key == ("base", index)
            and loaded_sources.get(index) == images[index]
        ):
            return _canvas_preview()

        session = slots.activate(("base", index))
        annotated.pop(index, None)

        def _store(data_uri: str) -> None:
            annotated[index] = data_uri

        session.on_update = _store
        if session.load_base(images[index]):
            loaded_sources[index] = images[index]
        else:
            loaded_sources.pop(index, None)
        return _canvas_preview()

    def on_canvas_tool(tool: str) -> None:
        if slots.active is not None:
            slots.active.set_tool(Tool(tool))

    def on_canvas_stroke_width(width: float) -> None:
        if slots.active is not None:
            slots.active.set_stroke_width(width)

    def on_canvas_point(x: float, y: float) -> Optional[Image.Image]:
        """Extend the current polyline or pan gesture with a clicked point, starting one if needed."""
        session = slots.active
        if session is None or not session.has_base:
            return None
        width, height = session.size
        rect = DisplayRect(0, 0, width, height)
        event = PointerEvent(client_x=float(x), client_y=float(y))
        if session.is_drawing or session.is_panning:
            session.pointer_move(event, rect)
            scheduler.run_pending()
        else:
            session.pointer_down(event, rect)
        return _canvas_preview()

    def on_canvas_finish() -> Optional[Image.Image]:
        session = slots.active
        if session is not None:
            session.pointer_up()
        return _canvas_preview()

    def on_canvas_undo() -> Optional[Image.Image]:
        if slots.active is not None:
            slots.active.undo()
        return _canvas_preview()

    def on_canvas_redo() -> Optional[Image.Image]:
        if slots.active is not None:
            slots.active.redo()
        return _canvas_preview()

    def on_canvas_clear() -> Optional[Image.Image]:
        if slots.active is not None:
            slots.active.clear()
        return _canvas_preview()

    def on_canvas_key(key: str, ctrl: bool, shift: bool) -> Optional[Image.Image]:
        slots.handle_key_down(key, ctrl=bool(ctrl), shift=bool(shift))
        return _canvas_preview()

    def on_canvas_view() -> str:
        """CSS transform of the active editor's pan/zoom view."""
        session = slots.active
        if session is None:
            return "none"
        return session.view.css_transform()

    def on_canvas_zoom(scale: float) -> str:
        session = slots.active
        if session is None:
            return "none"
        session.view.set_scale(scale)
        return session.view.css_transform()

    def on_canvas_wheel(delta_y: float) -> tuple[float, str]:
        """Zoom the active editor for an alt+wheel event."""
        session = slots.active
        if session is None:
            return 1.0, "none"
        session.handle_wheel(float(delta_y or 0), alt=True)
        return session.view.scale, session.view.css_transform()

    def on_canvas_reset_view() -> float:
        if slots.active is not None:
            slots.active.reset_view()
        return 1.0

    return {
        "on_set_api_key": on_set_api_key,
        "on_refresh_credits": on_refresh_credits,
        "on_select_task": on_select_task,
        "on_set_project_link": on_set_project_link,
        "on_apply_preset": on_apply_preset,
        "on_upload_base": on_upload_base,
        "on_remove_base": on_remove_base,
        "on_clear_base": on_clear_base,
        "on_upload_references": on_upload_references,
        "on_remove_reference": on_remove_reference,
        "on_clear_references": on_clear_references,
        "on_generate_style_refs": on_generate_style_refs,
        "on_generate": on_generate,
        "on_analyze": on_analyze,
        "on_download": on_download,
        "on_history": on_history,
        "on_history_gallery": on_history_gallery,
        "on_history_select": on_history_select,
        "on_restore_batch": on_restore_batch,
        "on_feedback": on_feedback,
        "on_clear_history": on_clear_history,
        "on_canvas_load": on_canvas_load,
        "on_canvas_tool": on_canvas_tool,
        "on_canvas_stroke_width": on_canvas_stroke_width,
        "on_canvas_point": on_canvas_point,
        "on_canvas_finish": on_canvas_finish,
        "on_canvas_undo": on_canvas_undo,
        "on_canvas_redo": on_canvas_redo,
        "on_canvas_clear": on_canvas_clear,
        "on_canvas_key": on_canvas_key,
        "on_canvas_view": on_canvas_view,
        "on_canvas_zoom": on_canvas_zoom,
        "on_canvas_wheel": on_canvas_wheel,
        "on_canvas_reset_view": on_canvas_reset_view,
    }
