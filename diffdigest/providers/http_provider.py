"""HTTP client for a running Diff Digest server.

Posts the change to ``/api/generate-notes`` and hands back the raw
chunked response body. Useful when the model credentials live on the
server rather than on the machine showing the notes.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator

import httpx

from diffdigest.errors import TransportError, classify_status
from diffdigest.providers.base import NotesProvider
from diffdigest.schemas.notes import DiffItem

logger = logging.getLogger(__name__)

_GENERATE_PATH = "/api/generate-notes"


def _error_fields(body: bytes) -> tuple[str | None, str]:
    """Pull ``error`` / ``details`` out of a JSON error body."""
    text = body.decode("utf-8", errors="replace")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None, text[:200]
    if not isinstance(data, dict):
        return None, text[:200]
    return data.get("error") or data.get("details"), str(data.get("details", ""))


class HttpNotesProvider(NotesProvider):
    """Streams notes from a Diff Digest server over HTTP.

    The httpx client can be passed in (and is then owned by the caller) or
    created here with the given timeout and closed by aclose().
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 120.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def display_name(self) -> str:
        return f"Diff Digest server ({self._base_url})"

    async def open_stream(self, item: DiffItem) -> AsyncIterator[bytes]:
        url = f"{self._base_url}{_GENERATE_PATH}"
        request = self._client.build_request(
            "POST", url, json={"diff": item.diff, "description": item.description},
        )

        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(f"Could not reach {url}: {e}") from e

        if response.status_code != 200:
            body = await response.aread()
            await response.aclose()
            message, details = _error_fields(body)
            logger.debug("Notes server returned %d for %r", response.status_code, item.id)
            raise classify_status(response.status_code, details=details, message=message)

        return self._iter_bytes(response)

    async def _iter_bytes(self, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            raise TransportError(f"Notes stream interrupted: {e}") from e
        finally:
            await response.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
