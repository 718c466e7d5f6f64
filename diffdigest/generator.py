"""Notes generation controller.

Owns the provider and the consumer-visible publisher. Each generate()
call starts a fresh StreamSession; starting another one, or cancel(),
supersedes the session in flight so only one session ever publishes.
"""

from __future__ import annotations

import logging

from diffdigest.providers.base import NotesProvider
from diffdigest.schemas.config import SectionDetection
from diffdigest.schemas.notes import DiffItem
from diffdigest.schemas.streaming import NotesSnapshot
from diffdigest.streaming.driver import StreamDriver
from diffdigest.streaming.publisher import NotesPublisher
from diffdigest.streaming.session import StreamSession
from diffdigest.streaming.tracker import make_tracker

logger = logging.getLogger(__name__)


class NotesGenerator:
    """Runs notes generation requests against one publisher slot."""

    def __init__(
        self,
        provider: NotesProvider,
        *,
        publisher: NotesPublisher | None = None,
        section_detection: SectionDetection | str = SectionDetection.STRUCTURAL,
    ) -> None:
        self._provider = provider
        self._publisher = publisher or NotesPublisher()
        self._section_detection = SectionDetection(section_detection)
        self._current: StreamSession | None = None

    @property
    def publisher(self) -> NotesPublisher:
        return self._publisher

    @property
    def current_session(self) -> StreamSession | None:
        """The session currently allowed to publish, if any."""
        return self._current

    def cancel(self) -> None:
        """Abandon the in-flight session, if any."""
        session = self._current
        if session is None:
            return
        if not session.terminal:
            logger.info("Superseding notes session for %r", session.item_id)
        session.supersede()
        self._current = None

    async def generate(self, item: DiffItem) -> NotesSnapshot:
        """Stream notes for ``item`` into the publisher.

        Returns:
            The final snapshot. When this request is itself superseded
            before finishing, the snapshot reflects where it stopped and
            nothing further was published.
        """
        self.cancel()

        session = StreamSession(item.id, tracker=make_tracker(self._section_detection))
        self._current = session
        logger.debug(
            "Generating notes for %r via %s", item.id, self._provider.display_name,
        )

        driver = StreamDriver(session, self._publisher)
        snapshot = await driver.run(self._provider.open_stream(item))

        if self._current is session:
            self._current = None
        return snapshot
