"""Frame scheduling used to coalesce pointer moves into one draw per frame."""

from __future__ import annotations

import itertools
from typing import Callable, Dict, Protocol

FrameCallback = Callable[[], None]


class FrameScheduler(Protocol):
    def request(self, callback: FrameCallback) -> int:
        ...

    def cancel(self, handle: int) -> None:
        ...


class ManualFrameScheduler:
    """Scheduler whose frames are flushed explicitly by the host."""

    def __init__(self) -> None:
        self._handles = itertools.count(1)
        self._pending: Dict[int, FrameCallback] = {}

    def request(self, callback: FrameCallback) -> int:
        handle = next(self._handles)
        self._pending[handle] = callback
        return handle

    def cancel(self, handle: int) -> None:
        self._pending.pop(handle, None)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def run_pending(self) -> int:
        """Run every queued callback once and return how many ran."""
        callbacks = list(self._pending.values())
        self._pending.clear()
        for callback in callbacks:
            callback()
        return len(callbacks)
