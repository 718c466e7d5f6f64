"""Snapshot publisher for the consumer-visible notes slot.

Listeners can be sync or async callables. Each generator owns one
publisher; only the generator's current session publishes into it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from diffdigest.schemas.streaming import NotesSnapshot

logger = logging.getLogger(__name__)

# Type alias for snapshot listener callbacks
SnapshotListener = Callable[[NotesSnapshot], Any]


class NotesPublisher:
    """Broadcasts notes snapshots to registered listeners."""

    def __init__(self) -> None:
        self._listeners: list[SnapshotListener] = []
        self._latest: NotesSnapshot | None = None

    @property
    def latest(self) -> NotesSnapshot | None:
        """The last snapshot published (for late subscribers)."""
        return self._latest

    def add_listener(self, listener: SnapshotListener) -> None:
        """Register a listener to receive snapshots."""
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        """Remove a previously registered listener."""
        self._listeners = [ln for ln in self._listeners if ln is not listener]

    async def publish(self, snapshot: NotesSnapshot) -> None:
        """Deliver a snapshot to every listener.

        Sync listeners are called directly; async listeners are awaited.
        Listener exceptions are logged but never propagate.
        """
        self._latest = snapshot

        for listener in self._listeners:
            try:
                result = listener(snapshot)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("Snapshot listener error for %r", snapshot.item_id)
