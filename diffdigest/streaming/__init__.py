"""Incremental reconstruction of the streamed two-field notes object.

Bytes from the provider flow through ChunkDecoder into a StreamSession,
which routes text with a SectionTracker, accumulates it per field, and
retries the whole-object parse after every fragment. StreamDriver runs a
session end to end and publishes each snapshot through a NotesPublisher.
"""

from diffdigest.streaming.accumulator import FieldAccumulator, strip_key_prefix
from diffdigest.streaming.decoder import ChunkDecoder
from diffdigest.streaming.driver import StreamDriver
from diffdigest.streaming.parser import try_parse_notes
from diffdigest.streaming.publisher import NotesPublisher, SnapshotListener
from diffdigest.streaming.session import StreamSession
from diffdigest.streaming.tracker import (
    JsonSectionTracker,
    MarkerSectionTracker,
    SectionTracker,
    make_tracker,
)

__all__ = [
    "ChunkDecoder",
    "FieldAccumulator",
    "JsonSectionTracker",
    "MarkerSectionTracker",
    "NotesPublisher",
    "SectionTracker",
    "SnapshotListener",
    "StreamDriver",
    "StreamSession",
    "make_tracker",
    "strip_key_prefix",
    "try_parse_notes",
]
