"""Presentational pan/zoom state for the annotation canvas."""

from __future__ import annotations

from dataclasses import dataclass

MIN_SCALE = 0.1
MAX_SCALE = 10.0
ZOOM_SENSITIVITY = 0.001
ZOOM_SPEED = 5


def clamp_scale(value: float) -> float:
    return min(max(MIN_SCALE, value), MAX_SCALE)


@dataclass(slots=True)
class ViewTransform:
    """Scale and offset applied to the displayed canvas only.

    Drawing coordinates are derived from the displayed rectangle, so this
    state never changes the pixels a stroke lands on.
    """

    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def zoom_by_wheel(self, delta_y: float) -> float:
        delta = -delta_y * ZOOM_SENSITIVITY
        self.scale = clamp_scale(self.scale + self.scale * delta * ZOOM_SPEED)
        return self.scale

    def set_scale(self, value: float) -> float:
        self.scale = clamp_scale(value)
        return self.scale

    def move_to(self, offset_x: float, offset_y: float) -> None:
        self.offset_x = offset_x
        self.offset_y = offset_y

    def reset(self) -> None:
        self.scale = 1.0
        self.offset_x = 0.0
        self.offset_y = 0.0

    def css_transform(self) -> str:
        return f"translate({self.offset_x:g}px, {self.offset_y:g}px) scale({self.scale:g})"
