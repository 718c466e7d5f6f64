"""Abstract base class for notes generation providers.

A provider turns a DiffItem into a byte stream carrying one JSON object
with ``developer`` and ``marketing`` string fields. The streaming core
only talks to providers through this interface; providers are built
explicitly and passed in, never shared through module state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from diffdigest.schemas.notes import DiffItem


class NotesProvider(ABC):
    """Interface for anything that can stream release notes for a change."""

    @property
    def display_name(self) -> str:
        """Human-friendly provider name for CLI output."""
        return type(self).__name__

    @abstractmethod
    async def open_stream(self, item: DiffItem) -> AsyncIterator[bytes]:
        """Start a generation request and return its byte stream.

        Two-phase contract: awaiting this method performs the request and
        raises before any bytes flow; iterating the result yields raw
        chunks as the model produces them.

        Args:
            item: The change to write notes for.

        Returns:
            Async iterator of raw UTF-8 byte chunks.

        Raises:
            AuthenticationError, RateLimitError, InvalidRequestError,
            ProviderRequestError: The request was rejected.
            TransportError: The provider could not be reached. Also raised
                from iteration when the stream breaks mid-generation.
        """

    async def aclose(self) -> None:
        """Release any resources held by the provider."""

    async def __aenter__(self) -> NotesProvider:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
