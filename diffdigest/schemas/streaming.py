"""Streaming schemas for real-time notes delivery.

Defines the section and driver state enums shared by the streaming core,
and the NotesSnapshot model published to consumers after every fragment.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class Section(StrEnum):
    """Which target field incoming text is routed into."""

    NONE = "none"
    DEVELOPER = "developer"
    MARKETING = "marketing"


# Forward-only ordering of sections within a session
SECTION_ORDER: dict[Section, int] = {
    Section.NONE: 0,
    Section.DEVELOPER: 1,
    Section.MARKETING: 2,
}


class DriverState(StrEnum):
    """Lifecycle states of the stream driver."""

    AWAITING_FRAGMENT = "awaiting_fragment"
    PROCESSING_FRAGMENT = "processing_fragment"
    PUBLISHING = "publishing"
    DONE = "done"
    FAILED = "failed"
    SUPERSEDED = "superseded"


class ErrorKind(StrEnum):
    """Classification of errors surfaced to the consumer."""

    TRANSPORT = "transport"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    INVALID_REQUEST = "invalid_request"
    PROVIDER = "provider"
    MALFORMED_FINAL_OBJECT = "malformed_final_object"
    TRUNCATED_ENCODING = "truncated_encoding"
    SOURCE = "source"


class NotesError(BaseModel):
    """An error condition attached to a published snapshot."""

    kind: ErrorKind = Field(description="Error classification")
    message: str = Field(description="Human-readable description")


class NotesSnapshot(BaseModel):
    """The evolving pair of notes as seen by the consumer."""

    item_id: str = Field(default="", description="Change the notes belong to")
    developer: str = Field(default="", description="Developer note so far")
    marketing: str = Field(default="", description="Marketing note so far")
    is_complete: bool = Field(
        default=False, description="True once the stream ended normally"
    )
    error: NotesError | None = Field(
        default=None, description="Error condition, if any"
    )
