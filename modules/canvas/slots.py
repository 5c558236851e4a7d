"""Ownership of canvas sessions across UI re-mounts."""

from __future__ import annotations

import logging
from typing import Callable, Hashable, Optional

from modules.canvas.annotation import CanvasSession

logger = logging.getLogger(__name__)


class CanvasSlotManager:
    """Keep exactly one live canvas session, keyed by the mounted slot.

    Switching to a different key disposes of the previous session (its
    images, stacks and callback) and creates a fresh one, so shortcuts
    never reach an editor that is no longer displayed.
    """

    def __init__(self, factory: Callable[[], CanvasSession]) -> None:
        self._factory = factory
        self._key: Optional[Hashable] = None
        self._session: Optional[CanvasSession] = None

    @property
    def active_key(self) -> Optional[Hashable]:
        return self._key

    @property
    def active(self) -> Optional[CanvasSession]:
        return self._session

    def activate(self, key: Hashable) -> CanvasSession:
        if self._session is not None and key == self._key:
            return self._session
        self.release()
        self._key = key
        self._session = self._factory()
        logger.debug("Mounted canvas session for slot %r", key)
        return self._session

    def release(self) -> None:
        if self._session is not None:
            self._session.dispose()
            logger.debug("Disposed canvas session for slot %r", self._key)
        self._session = None
        self._key = None

    def handle_key_down(self, key: str, ctrl: bool = False, shift: bool = False) -> bool:
        if self._session is None:
            return False
        return self._session.handle_key_down(key, ctrl=ctrl, shift=shift)

    def handle_key_up(self, key: str) -> None:
        if self._session is not None:
            self._session.handle_key_up(key)
