"""Diff Digest schema definitions.

All Pydantic v2 models used by the streaming core, providers, and sources.
"""

from diffdigest.schemas.config import (
    AppConfig,
    GeneratorConfig,
    SectionDetection,
    ServerConfig,
    SourceConfig,
    StreamConfig,
)
from diffdigest.schemas.notes import DiffItem, DiffPage, ReleaseNotes
from diffdigest.schemas.streaming import (
    DriverState,
    ErrorKind,
    NotesError,
    NotesSnapshot,
    Section,
)

__all__ = [
    "AppConfig",
    "DiffItem",
    "DiffPage",
    "DriverState",
    "ErrorKind",
    "GeneratorConfig",
    "NotesError",
    "NotesSnapshot",
    "ReleaseNotes",
    "Section",
    "SectionDetection",
    "ServerConfig",
    "SourceConfig",
    "StreamConfig",
]
