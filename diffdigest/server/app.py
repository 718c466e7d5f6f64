"""FastAPI server exposing change listing and streamed notes generation.

The provider and the change source are constructed by the caller and
passed in, so the app carries no process-wide client state.

Requires the 'server' optional dependency group:
    pip install diffdigest[server]
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from diffdigest.errors import DiffDigestError, ProviderRequestError, SourceError
from diffdigest.providers.base import NotesProvider
from diffdigest.schemas.notes import DiffItem
from diffdigest.sources.base import DiffSource

logger = logging.getLogger(__name__)


class GenerateNotesRequest(BaseModel):
    """Body of POST /api/generate-notes."""

    diff: str = Field(default="", description="Raw diff of the change")
    description: str = Field(default="", description="Change title")


def create_app(provider: NotesProvider, source: DiffSource | None = None) -> Any:
    """Create and configure the FastAPI application.

    FastAPI is imported inside this function so the package can be used
    without the server extra installed.
    """
    try:
        from fastapi import FastAPI, Query
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse, StreamingResponse
    except ImportError as exc:
        raise ImportError(
            "The notes server requires extra dependencies. "
            "Install with: pip install diffdigest[server]"
        ) from exc

    from diffdigest import __version__

    app = FastAPI(
        title="Diff Digest",
        description="Streamed dual-tone release notes for merged changes",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _error(status_code: int, error: str, details: str = "") -> JSONResponse:
        body = {"error": error}
        if details:
            body["details"] = details
        return JSONResponse(body, status_code=status_code)

    # ── Notes ────────────────────────────────────────────────────

    @app.post("/api/generate-notes")
    async def generate_notes(request: GenerateNotesRequest) -> Any:
        """Stream the raw notes object text as the model produces it."""
        if not request.diff or not request.description:
            return _error(400, "Missing required fields: diff and description")

        item = DiffItem(id="request", description=request.description, diff=request.diff)
        try:
            stream = await provider.open_stream(item)
        except ProviderRequestError as e:
            logger.error("Notes provider error (%d): %s", e.status_code, e)
            return _error(e.status_code, str(e), e.details or str(e))
        except DiffDigestError as e:
            logger.error("Notes provider unreachable: %s", e)
            return _error(502, "Failed to generate release notes.", str(e))

        return StreamingResponse(
            stream,
            media_type="text/plain; charset=utf-8",
            headers={"Cache-Control": "no-cache"},
        )

    # ── Changes ──────────────────────────────────────────────────

    @app.get("/api/sample-diffs")
    async def sample_diffs(
        page: int = Query(1, ge=1),
        per_page: int = Query(10, ge=1, le=100),
    ) -> Any:
        """List one page of merged changes."""
        if source is None:
            return _error(404, "No change source configured")
        try:
            result = source.fetch_page(page, per_page)
        except SourceError as e:
            logger.exception("Failed to list changes")
            return _error(500, "Failed to list changes", str(e))
        return result.model_dump(by_alias=True)

    return app
