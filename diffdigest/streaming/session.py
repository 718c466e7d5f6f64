"""Per-request state of one streamed notes generation."""

from __future__ import annotations

import logging

from diffdigest.errors import DiffDigestError, MalformedFinalObject
from diffdigest.schemas.notes import ReleaseNotes
from diffdigest.schemas.streaming import NotesSnapshot, Section
from diffdigest.streaming.accumulator import FieldAccumulator
from diffdigest.streaming.parser import try_parse_notes
from diffdigest.streaming.tracker import JsonSectionTracker, SectionTracker

logger = logging.getLogger(__name__)


class StreamSession:
    """Mutable state tracking one in-flight generation request.

    Every fragment runs both paths: the incremental tracker/accumulator
    path, which exists only so the consumer sees text early, and the
    whole-object parse, which is the only correctness guarantee. Once the
    whole object parses, the published values are frozen to it.
    """

    def __init__(self, item_id: str = "", tracker: SectionTracker | None = None) -> None:
        self.item_id = item_id
        self.raw_accumulated = ""
        self.developer_value = ""
        self.marketing_value = ""
        self.terminal = False
        self.superseded = False
        self.error: DiffDigestError | None = None

        self._tracker = tracker or JsonSectionTracker()
        self._accumulator = FieldAccumulator()
        self._parsed: ReleaseNotes | None = None

    # ── State ─────────────────────────────────────────────────────

    @property
    def active_section(self) -> Section:
        return self._tracker.active_section

    @property
    def developer_buffer(self) -> str:
        return self._accumulator.developer

    @property
    def marketing_buffer(self) -> str:
        return self._accumulator.marketing

    @property
    def parsed(self) -> ReleaseNotes | None:
        """The authoritative parsed notes, once the object completed."""
        return self._parsed

    @property
    def has_partial(self) -> bool:
        """Whether any text has been received."""
        return bool(self.raw_accumulated)

    def snapshot(self, *, is_complete: bool = False) -> NotesSnapshot:
        """Build the consumer-facing view of the current values."""
        return NotesSnapshot(
            item_id=self.item_id,
            developer=self.developer_value,
            marketing=self.marketing_value,
            is_complete=is_complete,
            error=self.error.to_notes_error() if self.error else None,
        )

    # ── Transitions ───────────────────────────────────────────────

    def supersede(self) -> None:
        """Mark the session as abandoned; the driver stops publishing."""
        self.superseded = True

    def feed(self, fragment: str) -> NotesSnapshot:
        """Process one decoded text fragment and return the new snapshot."""
        if self.terminal:
            raise RuntimeError(f"Session for {self.item_id!r} already terminated")

        self.raw_accumulated += fragment

        for section, text in self._tracker.route(fragment):
            self._accumulator.append(section, text, clean=self._tracker.raw_fragments)

        if self._parsed is None:
            self.developer_value = self._accumulator.developer
            self.marketing_value = self._accumulator.marketing
        elif fragment.strip():
            logger.warning(
                "Received %d more character(s) after notes for %r were complete",
                len(fragment), self.item_id,
            )

        parsed = try_parse_notes(self.raw_accumulated)
        if parsed is not None and parsed != self._parsed:
            if self._parsed is not None:
                logger.warning("Notes for %r re-parsed with different values", self.item_id)
            self._parsed = parsed
            self.developer_value = parsed.developer
            self.marketing_value = parsed.marketing

        return self.snapshot()

    def finish(self) -> NotesSnapshot:
        """Mark the stream as ended normally.

        Without a successful whole-object parse the incrementally built
        values stand as the final result and MalformedFinalObject is
        reported alongside them.
        """
        self.terminal = True
        if self._parsed is None:
            self.error = MalformedFinalObject(
                "Stream ended without a complete notes object; "
                "showing best-effort text"
            )
            logger.warning(
                "Notes for %r did not parse (%d chars received)",
                self.item_id, len(self.raw_accumulated),
            )
        return self.snapshot(is_complete=True)

    def fail(self, error: DiffDigestError) -> NotesSnapshot:
        """Mark the stream as failed, keeping any partial text visible."""
        self.terminal = True
        self.error = error
        return self.snapshot(is_complete=False)
