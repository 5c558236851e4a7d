"""Raster annotation session drawn over a base image."""

from __future__ import annotations

import binascii
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, List, Optional, Tuple

from PIL import Image, ImageChops, ImageDraw, UnidentifiedImageError

from modules.canvas.scheduler import FrameScheduler, ManualFrameScheduler
from modules.canvas.view import ViewTransform
from modules.utils.image_utils import image_to_data_uri, open_data_uri

logger = logging.getLogger(__name__)

MAX_UNDO_STEPS = 20
DEFAULT_STROKE_WIDTH = 4
MIDDLE_BUTTON = 1

MARKER_COLOR = (0xEF, 0x44, 0x44)
MARKER_ALPHA = 0.5
PENCIL_COLOR = (0xDC, 0x26, 0x26)

Point = Tuple[float, float]


class Tool(str, Enum):
    PENCIL = "pencil"
    MARKER = "marker"
    ERASER = "eraser"
    PAN = "pan"


DRAW_TOOLS = (Tool.PENCIL, Tool.MARKER, Tool.ERASER)


@dataclass(frozen=True, slots=True)
class PointerEvent:
    """Pointer position in client (page) pixels plus button and modifiers."""

    client_x: float
    client_y: float
    button: int = 0
    alt: bool = False
    ctrl: bool = False


@dataclass(frozen=True, slots=True)
class DisplayRect:
    """Bounding box of the canvas as displayed on screen."""

    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class StrokeStyle:
    color: Tuple[int, int, int]
    alpha: float
    width: float
    erase: bool = False


def stroke_style(tool: Tool, stroke_width: float, image_width: int) -> StrokeStyle:
    """Brush parameters for a draw tool on an image of ``image_width`` pixels."""
    base_unit = max(1.0, image_width / 2000)
    if tool is Tool.ERASER:
        return StrokeStyle(color=(0, 0, 0), alpha=1.0, width=max(10.0, image_width / 50), erase=True)
    if tool is Tool.MARKER:
        return StrokeStyle(color=MARKER_COLOR, alpha=MARKER_ALPHA, width=base_unit * stroke_width * 4)
    if tool is Tool.PENCIL:
        return StrokeStyle(color=PENCIL_COLOR, alpha=1.0, width=base_unit * stroke_width)
    raise ValueError(f"{tool.value} is not a drawing tool")


def to_canvas_point(event: PointerEvent, rect: DisplayRect, native_size: Tuple[int, int]) -> Point:
    """Map a client position onto native image pixels, whatever the display zoom."""
    if rect.width == 0 or rect.height == 0:
        return 0.0, 0.0
    native_width, native_height = native_size
    return (
        (event.client_x - rect.left) * (native_width / rect.width),
        (event.client_y - rect.top) * (native_height / rect.height),
    )


class CanvasSession:
    """Annotation layer, undo/redo history and view state for one base image.

    ``on_update`` receives a PNG data URI of the base image with the
    annotations composited on top after every completed edit.
    """

    def __init__(
        self,
        on_update: Optional[Callable[[str], None]] = None,
        scheduler: Optional[FrameScheduler] = None,
        max_undo_steps: int = MAX_UNDO_STEPS,
        stroke_width: float = DEFAULT_STROKE_WIDTH,
    ) -> None:
        self.on_update = on_update
        self.scheduler = scheduler or ManualFrameScheduler()
        self.view = ViewTransform()
        self.tool = Tool.MARKER
        self.stroke_width = stroke_width

        self._base: Optional[Image.Image] = None
        self._layer: Optional[Image.Image] = None
        self._undo: Deque[Image.Image] = deque(maxlen=max_undo_steps)
        self._redo: List[Image.Image] = []

        self._drawing = False
        self._panning = False
        self._pan_start: Point = (0.0, 0.0)
        self._ctrl_held = False
        self._style: Optional[StrokeStyle] = None
        self._stroke_origin: Optional[Image.Image] = None
        self._stroke_mask: Optional[Image.Image] = None
        self._last_point: Optional[Point] = None
        self._pending_point: Optional[Point] = None
        self._frame_handle: Optional[int] = None

    # -- state -------------------------------------------------------------

    @property
    def size(self) -> Tuple[int, int]:
        return self._base.size if self._base is not None else (0, 0)

    @property
    def has_base(self) -> bool:
        return self._base is not None

    @property
    def is_drawing(self) -> bool:
        return self._drawing

    @property
    def is_panning(self) -> bool:
        return self._panning

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    @property
    def layer(self) -> Optional[Image.Image]:
        return self._layer

    def set_tool(self, tool: Tool | str) -> Tool:
        self.tool = Tool(tool)
        return self.tool

    def set_stroke_width(self, width: float) -> None:
        self.stroke_width = min(max(1.0, float(width)), 20.0)

    # -- base image ----------------------------------------------------------

    def load_base(self, data_uri: str) -> bool:
        """Replace the base image, resetting annotations, history and view."""
        self._cancel_frame()
        self._drawing = False
        self._panning = False
        self._undo.clear()
        self._redo.clear()
        self.view.reset()
        try:
            base = open_data_uri(data_uri).convert("RGBA")
        except (UnidentifiedImageError, OSError, ValueError, binascii.Error) as exc:
            logger.error("Failed to load base image in editor: %s", exc)
            self._base = None
            self._layer = None
            return False
        self._base = base
        self._layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
        if self.on_update is not None:
            self.on_update(data_uri)
        return True

    # -- pointer gestures ----------------------------------------------------

    def _wants_pan(self, event: PointerEvent) -> bool:
        return (
            self.tool is Tool.PAN
            or event.button == MIDDLE_BUTTON
            or event.alt
            or event.ctrl
            or self._ctrl_held
        )

    def pointer_down(self, event: PointerEvent, rect: DisplayRect) -> None:
        if self._wants_pan(event):
            self._panning = True
            self._pan_start = (event.client_x - self.view.offset_x, event.client_y - self.view.offset_y)
            return
        if self.tool not in DRAW_TOOLS or self._layer is None:
            return

        self._push_undo(self._layer.copy())
        self._drawing = True
        self._style = stroke_style(self.tool, self.stroke_width, self.size[0])
        self._stroke_origin = self._layer.copy()
        self._stroke_mask = Image.new("L", self.size, 0)
        self._last_point = to_canvas_point(event, rect, self.size)
        self._pending_point = None

    def pointer_move(self, event: PointerEvent, rect: DisplayRect) -> None:
        if self._panning:
            self.view.move_to(event.client_x - self._pan_start[0], event.client_y - self._pan_start[1])
            return
        if not self._drawing:
            return
        self._pending_point = to_canvas_point(event, rect, self.size)
        if self._frame_handle is None:
            self._frame_handle = self.scheduler.request(self._on_frame)

    def pointer_up(self) -> None:
        self._cancel_frame()
        self._panning = False
        if self._drawing:
            self._drawing = False
            self._stroke_origin = None
            self._stroke_mask = None
            self._style = None
            self._emit_composite()

    def _on_frame(self) -> None:
        self._frame_handle = None
        if not self._drawing or self._pending_point is None:
            return
        self._extend_stroke(self._pending_point)
        self._pending_point = None

    def _cancel_frame(self) -> None:
        if self._frame_handle is not None:
            self.scheduler.cancel(self._frame_handle)
            self._frame_handle = None

    def _extend_stroke(self, point: Point) -> None:
        if self._stroke_mask is None or self._stroke_origin is None or self._style is None:
            raise RuntimeError("No stroke in progress.")
        start = self._last_point or point
        width = max(1, round(self._style.width))
        radius = width / 2
        draw = ImageDraw.Draw(self._stroke_mask)
        draw.line([start, point], fill=255, width=width)
        for x, y in (start, point):
            draw.ellipse((x - radius, y - radius, x + radius, y + radius), fill=255)
        self._last_point = point
        self._layer = self._render_stroke(self._stroke_origin, self._stroke_mask, self._style)

    @staticmethod
    def _render_stroke(origin: Image.Image, mask: Image.Image, style: StrokeStyle) -> Image.Image:
        if style.erase:
            red, green, blue, alpha = origin.split()
            return Image.merge("RGBA", (red, green, blue, ImageChops.subtract(alpha, mask)))
        overlay = Image.new("RGBA", origin.size, (*style.color, 0))
        overlay.putalpha(mask.point(lambda value: round(value * style.alpha)))
        return Image.alpha_composite(origin, overlay)

    # -- wheel and keyboard --------------------------------------------------

    def handle_wheel(self, delta_y: float, alt: bool = False) -> bool:
        """Zoom on alt+wheel; plain wheel events are left to the page."""
        if not alt:
            return False
        self.view.zoom_by_wheel(delta_y)
        return True

    def handle_key_down(self, key: str, ctrl: bool = False, shift: bool = False) -> bool:
        """Apply undo/redo shortcuts, returning True when the key was consumed."""
        if key == "Control":
            self._ctrl_held = True
            return False
        if not ctrl:
            return False
        lowered = key.lower()
        if lowered == "z" and not shift:
            self.undo()
            return True
        if lowered == "y" or (lowered == "z" and shift):
            self.redo()
            return True
        return False

    def handle_key_up(self, key: str) -> None:
        if key == "Control":
            self._ctrl_held = False

    def reset_view(self) -> None:
        self.view.reset()

    # -- history -------------------------------------------------------------

    def _push_undo(self, snapshot: Image.Image) -> None:
        self._undo.append(snapshot)
        self._redo.clear()

    def undo(self) -> bool:
        if not self._undo or self._layer is None:
            return False
        self._redo.append(self._layer.copy())
        self._layer = self._undo.pop()
        self._emit_composite()
        return True

    def redo(self) -> bool:
        if not self._redo or self._layer is None:
            return False
        self._undo.append(self._layer.copy())
        self._layer = self._redo.pop()
        self._emit_composite()
        return True

    def clear(self) -> None:
        """Wipe every annotation as a single undoable step."""
        if self._layer is not None:
            self._push_undo(self._layer.copy())
            self._layer = Image.new("RGBA", self._layer.size, (0, 0, 0, 0))
        self._emit_composite()

    # -- output --------------------------------------------------------------

    def composite(self) -> Optional[Image.Image]:
        if self._base is None or self._layer is None:
            return None
        return Image.alpha_composite(self._base, self._layer)

    def _emit_composite(self) -> None:
        image = self.composite()
        if image is None:
            logger.error("Canvas update skipped: base image not loaded")
            return
        if self.on_update is not None:
            self.on_update(image_to_data_uri(image, "PNG"))

    def dispose(self) -> None:
        """Release images and listeners when the session is unmounted."""
        self._cancel_frame()
        self._undo.clear()
        self._redo.clear()
        self._base = None
        self._layer = None
        self._drawing = False
        self._panning = False
        self.on_update = None
