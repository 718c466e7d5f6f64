"""Notes and change-list schemas.

Defines the two-field ReleaseNotes object the language model is asked to
produce, and the DiffItem / DiffPage models served by change sources.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ReleaseNotes(BaseModel):
    """The complete object emitted by the generator.

    Exactly two string-valued keys. Used by the whole-object parser to
    validate the accumulated stream.
    """

    model_config = ConfigDict(extra="forbid")

    developer: str = Field(strict=True, description="Technical note for developers")
    marketing: str = Field(strict=True, description="User-facing note")


class DiffItem(BaseModel):
    """A single merged change offered for note generation."""

    id: str = Field(description="Unique change identifier (PR number or short sha)")
    description: str = Field(description="Change title")
    diff: str = Field(default="", description="Raw unified diff sent to the generator")
    url: str = Field(default="", description="Web link to the change, if known")


class DiffPage(BaseModel):
    """One page of merged changes.

    Serialized with camelCase aliases (``nextPage``, ``currentPage``,
    ``perPage``) for HTTP clients.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    diffs: list[DiffItem] = Field(default_factory=list, description="Changes on this page")
    next_page: int | None = Field(default=None, description="Next page number, if any")
    current_page: int = Field(default=1, ge=1, description="This page's number")
    per_page: int = Field(default=10, ge=1, description="Page size")
