"""Generation task types and the options attached to them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict


class TaskType(str, Enum):
    """Supported generation modes."""

    PERSPECTIVE = "perspective"
    FACADE = "facade"
    MASTERPLAN = "masterplan"
    MATERIAL = "material"
    TECHNICAL_DETAIL = "technical_detail"


IMAGE_SIZES = ("1K", "2K", "4K")
UPSCALE_IMAGE_SIZE = "2K"


@dataclass(frozen=True, slots=True)
class TaskInfo:
    """Display metadata for a task type."""

    title: str
    description: str


TASK_INFO: Dict[TaskType, TaskInfo] = {
    TaskType.PERSPECTIVE: TaskInfo("3D Perspective", "Turn white massing models into photorealistic images."),
    TaskType.FACADE: TaskInfo("Facade & Elevation", "Apply materials to your 2D elevations."),
    TaskType.MASTERPLAN: TaskInfo("Masterplan", "Illustrate site plans and landscapes."),
    TaskType.MATERIAL: TaskInfo("Materials", "Produce textures and moodboards."),
    TaskType.TECHNICAL_DETAIL: TaskInfo("Technical Detail", "Graphic rendering of sections and details."),
}


def parse_task_type(value: str | TaskType) -> TaskType:
    """Coerce a string into a TaskType, raising ValueError on unknown names."""
    if isinstance(value, TaskType):
        return value
    try:
        return TaskType(value)
    except ValueError as exc:
        raise ValueError(f"Unknown task type '{value}'") from exc
