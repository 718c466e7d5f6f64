"""Stream driver: pulls byte chunks through a session and publishes snapshots.

One chunk is fully processed (decode, route, accumulate, parse, publish)
before the next one is awaited. The driver checks the session's
superseded flag after every chunk and stops quietly when it is set; the
underlying transport is left to drain on its own.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable

from diffdigest.errors import DiffDigestError, TransportError, TruncatedEncoding
from diffdigest.schemas.streaming import DriverState, NotesSnapshot
from diffdigest.streaming.decoder import ChunkDecoder
from diffdigest.streaming.publisher import NotesPublisher
from diffdigest.streaming.session import StreamSession

logger = logging.getLogger(__name__)


class StreamDriver:
    """Runs one session from request initiation to a terminal state.

    States: AWAITING_FRAGMENT -> PROCESSING_FRAGMENT -> PUBLISHING ->
    AWAITING_FRAGMENT, ending in DONE, FAILED or SUPERSEDED.
    """

    def __init__(self, session: StreamSession, publisher: NotesPublisher) -> None:
        self._session = session
        self._publisher = publisher
        self._decoder = ChunkDecoder()
        self.state = DriverState.AWAITING_FRAGMENT

    @property
    def session(self) -> StreamSession:
        return self._session

    async def run(self, opening: Awaitable[AsyncIterator[bytes]]) -> NotesSnapshot:
        """Open the stream and drive it to completion.

        Args:
            opening: Awaitable returning the provider's byte iterator
                     (typically ``provider.open_stream(item)``). Request
                     errors raised here surface with no partial state.

        Returns:
            The final snapshot (also published unless superseded).
        """
        session = self._session

        try:
            stream = await opening
        except DiffDigestError as e:
            logger.warning("Notes request for %r failed: %s", session.item_id, e)
            return await self._terminate(DriverState.FAILED, session.fail(e))

        try:
            async for chunk in stream:
                if session.superseded:
                    return self._halt()

                self.state = DriverState.PROCESSING_FRAGMENT
                fragment = self._decoder.decode(chunk)
                if fragment:
                    snapshot = session.feed(fragment)
                    if session.superseded:
                        return self._halt()
                    self.state = DriverState.PUBLISHING
                    await self._publisher.publish(snapshot)

                self.state = DriverState.AWAITING_FRAGMENT
        except TransportError as e:
            logger.warning(
                "Notes stream for %r broke after %d chars: %s",
                session.item_id, len(session.raw_accumulated), e,
            )
            return await self._terminate(DriverState.FAILED, session.fail(e))
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        try:
            tail = self._decoder.finish()
        except TruncatedEncoding as e:
            logger.warning("Notes stream for %r: %s", session.item_id, e)
            tail = ""
        if tail and not session.superseded:
            await self._publisher.publish(session.feed(tail))

        return await self._terminate(DriverState.DONE, session.finish())

    async def _terminate(self, state: DriverState, snapshot: NotesSnapshot) -> NotesSnapshot:
        if self._session.superseded:
            return self._halt()
        self.state = state
        await self._publisher.publish(snapshot)
        return snapshot

    def _halt(self) -> NotesSnapshot:
        self.state = DriverState.SUPERSEDED
        logger.info("Notes session for %r superseded; stopped publishing", self._session.item_id)
        return self._session.snapshot()
