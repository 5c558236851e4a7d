"""In-memory history of generation batches."""

from __future__ import annotations

import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Sequence

from modules.pipelines.task_types import TaskType

FEEDBACK_VALUES = ("like", "dislike")


@dataclass(slots=True)
class HistoryResult:
    """One output image of a batch."""

    id: str
    input_image: Optional[str]
    output_image: str
    feedback: Optional[str] = None


@dataclass(slots=True)
class HistoryBatch:
    """Metadata describing one generation batch."""

    id: str
    task_type: TaskType
    prompt: str
    created_at: float
    results: List[HistoryResult] = field(default_factory=list)
    reference_images: List[str] = field(default_factory=list)


class BatchHistory:
    """Bounded, newest-first list of batches kept for the session only."""

    def __init__(self, max_batches: int = 20) -> None:
        self.max_batches = max_batches
        self._batches: Deque[HistoryBatch] = deque(maxlen=max_batches)
        self._lock = threading.Lock()

    def add(
        self,
        task_type: TaskType,
        prompt: str,
        pairs: Sequence[tuple[Optional[str], str]],
        reference_images: Sequence[str] = (),
        created_at: Optional[float] = None,
    ) -> HistoryBatch:
        """Record a batch from ``(input_image, output_image)`` pairs."""
        batch_id = uuid.uuid4().hex
        batch = HistoryBatch(
            id=batch_id,
            task_type=task_type,
            prompt=prompt,
            created_at=time.time() if created_at is None else created_at,
            results=[
                HistoryResult(id=f"{batch_id}-{index}", input_image=source, output_image=output)
                for index, (source, output) in enumerate(pairs)
            ],
            reference_images=list(reference_images),
        )
        with self._lock:
            self._batches.appendleft(batch)
        return batch

    def list(self, limit: Optional[int] = None) -> List[HistoryBatch]:
        """Return the most recent batches, newest first."""
        with self._lock:
            batches = list(self._batches)
        return batches if limit is None else batches[:limit]

    def get(self, batch_id: str) -> HistoryBatch:
        with self._lock:
            for batch in self._batches:
                if batch.id == batch_id:
                    return batch
        raise KeyError(f"Unknown batch '{batch_id}'")

    def find_result(self, result_id: str) -> HistoryResult:
        with self._lock:
            for batch in self._batches:
                for result in batch.results:
                    if result.id == result_id:
                        return result
        raise KeyError(f"Unknown result '{result_id}'")

    def set_feedback(self, result_id: str, feedback: Optional[str]) -> HistoryResult:
        """Attach like/dislike feedback to a result; ``None`` clears it."""
        if feedback is not None and feedback not in FEEDBACK_VALUES:
            raise ValueError(f"Unsupported feedback '{feedback}'")
        result = self.find_result(result_id)
        result.feedback = feedback
        return result

    def clear(self) -> None:
        with self._lock:
            self._batches.clear()

    def __len__(self) -> int:
        return len(self._batches)
