from __future__ import annotations

import logging
from typing import List, Optional

from whamo.core.models.network import NetworkSnapshot

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50


class HistoryManager:
    """
    Two-stack undo/redo log of NetworkSnapshot values.

    - past: most recent first, capped at `capacity` (oldest dropped)
    - future: filled by undo(), cleared by every new record()

    Snapshots are frozen values, so they are stored as-is.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"History capacity must be > 0, got {capacity}")
        self.capacity = capacity
        self.past: List[NetworkSnapshot] = []
        self.future: List[NetworkSnapshot] = []

    @property
    def can_undo(self) -> bool:
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.future)

    def record(self, snapshot: NetworkSnapshot) -> None:
        self.past.insert(0, snapshot)
        del self.past[self.capacity:]
        self.future.clear()

    def undo(self, current: NetworkSnapshot) -> Optional[NetworkSnapshot]:
        """
        Returns the snapshot to restore, or None if there is nothing to undo.
        `current` is kept on the future stack for redo().
        """
        if not self.past:
            return None
        previous = self.past.pop(0)
        self.future.insert(0, current)
        logger.debug("undo: %d past / %d future", len(self.past), len(self.future))
        return previous

    def redo(self, current: NetworkSnapshot) -> Optional[NetworkSnapshot]:
        if not self.future:
            return None
        following = self.future.pop(0)
        self.past.insert(0, current)
        del self.past[self.capacity:]
        logger.debug("redo: %d past / %d future", len(self.past), len(self.future))
        return following

    def clear(self) -> None:
        self.past.clear()
        self.future.clear()
