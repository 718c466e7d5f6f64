"""LiteLLM adapter implementing the NotesProvider interface.

Routes the notes request to any LLM provider via LiteLLM's unified API,
asks for a JSON object response, and re-encodes the streamed text deltas
as UTF-8 bytes. Transient initiation failures are retried with
exponential backoff; rejected requests are classified and raised
immediately.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from typing import Any

import litellm

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from diffdigest.errors import (
    AuthenticationError,
    InvalidRequestError,
    RateLimitError,
    TransportError,
    classify_status,
)
from diffdigest.prompts import render_prompt
from diffdigest.providers.base import NotesProvider
from diffdigest.schemas.config import GeneratorConfig
from diffdigest.schemas.notes import DiffItem

logger = logging.getLogger(__name__)

_BASE_BACKOFF = 1.0  # seconds

# Failures worth another attempt before any bytes have been received
_TRANSIENT_ERRORS = (
    TimeoutError,
    litellm.Timeout,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
    litellm.APIConnectionError,
)

# Rejections with a status not handled individually, e.g. 403, 404, 422
_REJECTED_ERRORS = (
    litellm.NotFoundError,
    litellm.PermissionDeniedError,
    litellm.UnprocessableEntityError,
    litellm.APIError,
)

# Failures while iterating an open stream
_STREAM_ERRORS = (
    TimeoutError,
    ConnectionError,
    litellm.Timeout,
    litellm.APIError,
    litellm.APIConnectionError,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
)


def _short_error_reason(error: Exception) -> str:
    """Extract a short, user-friendly reason from a LiteLLM error."""
    error_str = str(error).lower()
    if "rate" in error_str or "429" in error_str:
        return "rate limit"
    if "overloaded" in error_str or "529" in error_str:
        return "overloaded"
    if "timeout" in error_str or isinstance(error, TimeoutError):
        return "timeout"
    if "503" in error_str or "unavailable" in error_str:
        return "service unavailable"
    if "500" in error_str or "internal" in error_str:
        return "server error"
    if "connection" in error_str:
        return "connection error"
    return str(error)[:80]


class LiteLLMNotesProvider(NotesProvider):
    """Streams release notes from any model LiteLLM can route to."""

    def __init__(self, config: GeneratorConfig) -> None:
        self._config = config
        # Resolve API key from environment
        self._api_key = os.environ.get(config.api_key_env, "")

    @property
    def display_name(self) -> str:
        return self._config.display_name

    @property
    def model_id(self) -> str:
        """LiteLLM model identifier used for routing."""
        return self._config.model

    @property
    def config(self) -> GeneratorConfig:
        return self._config

    def build_messages(self, item: DiffItem) -> list[dict[str, str]]:
        """Build the system + user messages for one change."""
        return [
            {"role": "system", "content": render_prompt("release_notes")},
            {
                "role": "user",
                "content": render_prompt(
                    "change_request", description=item.description, diff=item.diff,
                ),
            },
        ]

    async def open_stream(self, item: DiffItem) -> AsyncIterator[bytes]:
        if not item.diff or not item.description:
            raise InvalidRequestError(
                "Missing required fields: diff and description", status_code=400,
            )

        kwargs = self._build_completion_kwargs(self.build_messages(item))
        response = await self._call_streaming_with_retry(kwargs)
        return self._iter_bytes(response)

    def _build_completion_kwargs(self, messages: list[dict[str, str]]) -> dict[str, Any]:
        """Build the kwargs dict for litellm.acompletion."""
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "messages": messages,
            "timeout": float(self._config.timeout),
            "stream": True,
        }

        if self._api_key:
            kwargs["api_key"] = self._api_key

        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base

        if self._config.json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        return kwargs

    async def _call_streaming_with_retry(self, kwargs: dict[str, Any]) -> Any:
        """Call litellm.acompletion with stream=True, retrying transient failures.

        Raises:
            AuthenticationError: Bad or missing API key (not retried).
            RateLimitError: Provider rate limit (not retried).
            InvalidRequestError: Provider rejected the request (not retried).
            ProviderRequestError: Any other rejection (not retried), or retries
                exhausted on a server-side error.
            TransportError: Retries exhausted on timeouts or connection errors.
        """
        max_retries = self._config.max_retries
        last_error: Exception | None = None

        for attempt in range(max_retries):
            try:
                return await litellm.acompletion(**kwargs)
            except litellm.AuthenticationError as e:
                raise AuthenticationError(
                    f"Authentication failed for {self._config.model}. "
                    f"Check that {self._config.api_key_env} is set correctly.",
                    status_code=401, details=str(e),
                ) from e
            except litellm.RateLimitError as e:
                raise RateLimitError(
                    f"Rate limit exceeded for {self._config.model}. "
                    f"Please try again later.",
                    status_code=429, details=str(e),
                ) from e
            except litellm.BadRequestError as e:
                raise InvalidRequestError(
                    f"Bad request to {self._config.model}: {e}",
                    status_code=400, details=str(e),
                ) from e
            except _TRANSIENT_ERRORS as e:
                last_error = e
            except _REJECTED_ERRORS as e:
                status_code = getattr(e, "status_code", None) or 500
                raise classify_status(
                    status_code,
                    details=str(e),
                    message=f"Request to {self._config.model} rejected "
                            f"({status_code}): {_short_error_reason(e)}",
                ) from e

            if attempt < max_retries - 1:
                backoff = _BASE_BACKOFF * (2**attempt)
                logger.warning(
                    "Streaming retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1, max_retries, self._config.display_name,
                    _short_error_reason(last_error), backoff,
                )
                await asyncio.sleep(backoff)

        if isinstance(
            last_error, (litellm.ServiceUnavailableError, litellm.InternalServerError),
        ):
            raise classify_status(
                getattr(last_error, "status_code", 500),
                details=str(last_error),
                message=f"Streaming call to {self._config.model} failed after "
                        f"{max_retries} attempts ({_short_error_reason(last_error)})",
            ) from last_error
        raise TransportError(
            f"Could not reach {self._config.model} after {max_retries} attempts: "
            f"{_short_error_reason(last_error)}"
        ) from last_error

    async def _iter_bytes(self, response: Any) -> AsyncIterator[bytes]:
        """Re-encode streamed text deltas as UTF-8 byte chunks."""
        try:
            async for chunk in response:
                delta = ""
                if chunk.choices and chunk.choices[0].delta:
                    delta = chunk.choices[0].delta.content or ""
                if delta:
                    yield delta.encode("utf-8")
        except _STREAM_ERRORS as e:
            raise TransportError(
                f"Stream from {self._config.display_name} interrupted: "
                f"{_short_error_reason(e)}"
            ) from e
