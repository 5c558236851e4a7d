"""Mutable per-session application state."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

from modules.pipelines.errors import BatchInProgressError
from modules.pipelines.task_types import TaskType

MAX_REFERENCE_IMAGES = 3


@dataclass(slots=True)
class AppState:
    """Active task, reference images and the single-flight generation flag."""

    active_task: TaskType = TaskType.PERSPECTIVE
    reference_images: List[str] = field(default_factory=list)
    project_link: Optional[str] = None
    _busy: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def is_generating(self) -> bool:
        return self._busy.locked()

    @contextmanager
    def begin_batch(self) -> Iterator[None]:
        """Hold the generation flag for the duration of a batch."""
        if not self._busy.acquire(blocking=False):
            raise BatchInProgressError()
        try:
            yield
        finally:
            self._busy.release()

    def add_reference_images(self, images: Sequence[str]) -> List[str]:
        """Append reference images, keeping the first three."""
        self.reference_images = [*self.reference_images, *images][:MAX_REFERENCE_IMAGES]
        return self.reference_images

    def remove_reference_image(self, index: int) -> List[str]:
        if 0 <= index < len(self.reference_images):
            del self.reference_images[index]
        return self.reference_images

    def clear_reference_images(self) -> None:
        self.reference_images = []

    def set_project_link(self, link: Optional[str]) -> None:
        self.project_link = (link or "").strip() or None
