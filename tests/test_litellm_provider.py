"""Tests for diffdigest.providers.litellm_provider — LiteLLM adapter."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import litellm
import pytest

from diffdigest.errors import (
    AuthenticationError,
    InvalidRequestError,
    ProviderRequestError,
    RateLimitError,
    TransportError,
)
from diffdigest.generator import NotesGenerator
from diffdigest.providers.litellm_provider import LiteLLMNotesProvider
from diffdigest.schemas.config import GeneratorConfig
from diffdigest.schemas.notes import DiffItem
from diffdigest.schemas.streaming import ErrorKind

# Shorthand for the mock targets
_ACOMP = "diffdigest.providers.litellm_provider.litellm.acompletion"
_SLEEP = "diffdigest.providers.litellm_provider.asyncio.sleep"


# ── Helpers ───────────────────────────────────────────────────


def _make_config(**overrides) -> GeneratorConfig:
    """Create a GeneratorConfig with sensible defaults."""
    defaults = {
        "provider": "openai",
        "model": "gpt-4.1-mini",
        "display_name": "GPT-4.1 Mini",
        "api_key_env": "TEST_NOTES_KEY",
        "timeout": 30,
        "max_retries": 3,
    }
    defaults.update(overrides)
    return GeneratorConfig(**defaults)


def _item(**overrides) -> DiffItem:
    data = {"id": "7", "description": "Add dark mode", "diff": "+theme = 'dark'\n"}
    data.update(overrides)
    return DiffItem(**data)


def _delta(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class _FakeStream:
    """Async iterator over streamed deltas, optionally failing at the end."""

    def __init__(self, contents, error: Exception | None = None):
        self._contents = list(contents)
        self._error = error

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._contents:
            return _delta(self._contents.pop(0))
        if self._error is not None:
            raise self._error
        raise StopAsyncIteration


async def _collect(stream) -> bytes:
    out = b""
    async for chunk in stream:
        out += chunk
    return out


# ── Request construction ─────────────────────────────────────


class TestBuildRequest:
    def test_messages_include_prompt_and_change(self):
        provider = LiteLLMNotesProvider(_make_config())
        messages = provider.build_messages(_item())
        assert messages[0]["role"] == "system"
        assert "developer" in messages[0]["content"]
        assert "marketing" in messages[0]["content"]
        assert messages[1]["role"] == "user"
        assert messages[1]["content"].startswith("PR Title: Add dark mode")
        assert "Diff:\n+theme = 'dark'" in messages[1]["content"]

    def test_completion_kwargs(self, monkeypatch):
        monkeypatch.setenv("TEST_NOTES_KEY", "sk-test")
        provider = LiteLLMNotesProvider(_make_config(api_base="http://localhost:4000"))
        kwargs = provider._build_completion_kwargs([{"role": "user", "content": "x"}])
        assert kwargs["model"] == "gpt-4.1-mini"
        assert kwargs["stream"] is True
        assert kwargs["timeout"] == 30.0
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["api_base"] == "http://localhost:4000"
        assert kwargs["response_format"] == {"type": "json_object"}

    def test_json_mode_off(self, monkeypatch):
        monkeypatch.delenv("TEST_NOTES_KEY", raising=False)
        provider = LiteLLMNotesProvider(_make_config(json_mode=False))
        kwargs = provider._build_completion_kwargs([])
        assert "response_format" not in kwargs
        assert "api_key" not in kwargs
        assert "api_base" not in kwargs

    def test_display_name(self):
        provider = LiteLLMNotesProvider(_make_config())
        assert provider.display_name == "GPT-4.1 Mini"
        assert provider.model_id == "gpt-4.1-mini"


# ── Streaming ─────────────────────────────────────────────────


class TestOpenStream:
    @pytest.mark.asyncio
    async def test_deltas_encoded_as_utf8(self):
        provider = LiteLLMNotesProvider(_make_config())
        fake = _FakeStream(['{"developer": "caf', "é", None, '"}'])
        with patch(_ACOMP, new_callable=AsyncMock, return_value=fake) as mock:
            stream = await provider.open_stream(_item())
            data = await _collect(stream)
        assert data.decode("utf-8") == '{"developer": "café"}'
        assert mock.call_args.kwargs["stream"] is True

    @pytest.mark.asyncio
    async def test_missing_fields_rejected(self):
        provider = LiteLLMNotesProvider(_make_config())
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            with pytest.raises(InvalidRequestError) as exc_info:
                await provider.open_stream(_item(diff=""))
        assert exc_info.value.status_code == 400
        assert str(exc_info.value) == "Missing required fields: diff and description"
        mock.assert_not_called()

    @pytest.mark.asyncio
    async def test_midstream_failure_is_transport_error(self):
        provider = LiteLLMNotesProvider(_make_config())
        fake = _FakeStream(['{"developer": "Partial fi'], error=ConnectionError("reset"))
        with patch(_ACOMP, new_callable=AsyncMock, return_value=fake):
            stream = await provider.open_stream(_item())
            chunks = []
            with pytest.raises(TransportError, match="interrupted"):
                async for chunk in stream:
                    chunks.append(chunk)
        assert chunks == [b'{"developer": "Partial fi']


# ── Retry and classification ─────────────────────────────────


class TestRetry:
    @pytest.mark.asyncio
    async def test_transient_error_retried(self):
        provider = LiteLLMNotesProvider(_make_config())
        fake = _FakeStream(["{}"])
        with (
            patch(_ACOMP, new_callable=AsyncMock, side_effect=[TimeoutError("slow"), fake]) as mock,
            patch(_SLEEP, new_callable=AsyncMock) as sleep,
        ):
            await provider.open_stream(_item())
        assert mock.call_count == 2
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_exhausted_timeouts_raise_transport_error(self):
        provider = LiteLLMNotesProvider(_make_config(max_retries=3))
        with (
            patch(_ACOMP, new_callable=AsyncMock, side_effect=TimeoutError("slow")) as mock,
            patch(_SLEEP, new_callable=AsyncMock) as sleep,
        ):
            with pytest.raises(TransportError, match="after 3 attempts"):
                await provider.open_stream(_item())
        assert mock.call_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausted_server_errors_raise_provider_error(self):
        provider = LiteLLMNotesProvider(_make_config(max_retries=2))
        error = litellm.ServiceUnavailableError(
            message="overloaded", llm_provider="openai", model="gpt-4.1-mini",
        )
        with (
            patch(_ACOMP, new_callable=AsyncMock, side_effect=error),
            patch(_SLEEP, new_callable=AsyncMock),
        ):
            with pytest.raises(ProviderRequestError) as exc_info:
                await provider.open_stream(_item())
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_authentication_not_retried(self):
        provider = LiteLLMNotesProvider(_make_config())
        error = litellm.AuthenticationError(
            message="invalid key", llm_provider="openai", model="gpt-4.1-mini",
        )
        with (
            patch(_ACOMP, new_callable=AsyncMock, side_effect=error) as mock,
            patch(_SLEEP, new_callable=AsyncMock) as sleep,
        ):
            with pytest.raises(AuthenticationError) as exc_info:
                await provider.open_stream(_item())
        assert exc_info.value.status_code == 401
        assert "TEST_NOTES_KEY" in str(exc_info.value)
        assert mock.call_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limit_not_retried(self):
        provider = LiteLLMNotesProvider(_make_config())
        error = litellm.RateLimitError(
            message="too many", llm_provider="openai", model="gpt-4.1-mini",
        )
        with (
            patch(_ACOMP, new_callable=AsyncMock, side_effect=error) as mock,
            patch(_SLEEP, new_callable=AsyncMock),
        ):
            with pytest.raises(RateLimitError) as exc_info:
                await provider.open_stream(_item())
        assert exc_info.value.status_code == 429
        assert mock.call_count == 1

    @pytest.mark.asyncio
    async def test_bad_request_not_retried(self):
        provider = LiteLLMNotesProvider(_make_config())
        error = litellm.BadRequestError(
            message="context too long", model="gpt-4.1-mini", llm_provider="openai",
        )
        with (
            patch(_ACOMP, new_callable=AsyncMock, side_effect=error) as mock,
            patch(_SLEEP, new_callable=AsyncMock),
        ):
            with pytest.raises(InvalidRequestError):
                await provider.open_stream(_item())
        assert mock.call_count == 1

    @pytest.mark.asyncio
    async def test_not_found_keeps_provider_status(self):
        provider = LiteLLMNotesProvider(_make_config(model="openai/gpt-nope"))
        error = litellm.NotFoundError(
            message="model gpt-nope does not exist", model="gpt-nope", llm_provider="openai",
        )
        with (
            patch(_ACOMP, new_callable=AsyncMock, side_effect=error) as mock,
            patch(_SLEEP, new_callable=AsyncMock) as sleep,
        ):
            with pytest.raises(ProviderRequestError) as exc_info:
                await provider.open_stream(_item())
        assert type(exc_info.value) is ProviderRequestError
        assert exc_info.value.status_code == 404
        assert "openai/gpt-nope" in str(exc_info.value)
        assert "does not exist" in exc_info.value.details
        assert exc_info.value.__cause__ is error
        assert mock.call_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_generic_api_error_classified(self):
        provider = LiteLLMNotesProvider(_make_config())
        error = litellm.APIError(
            status_code=403, message="forbidden", llm_provider="openai", model="gpt-4.1-mini",
        )
        with (
            patch(_ACOMP, new_callable=AsyncMock, side_effect=error) as mock,
            patch(_SLEEP, new_callable=AsyncMock),
        ):
            with pytest.raises(ProviderRequestError) as exc_info:
                await provider.open_stream(_item())
        assert exc_info.value.status_code == 403
        assert mock.call_count == 1

    @pytest.mark.asyncio
    async def test_authentication_error_chains_cause(self):
        provider = LiteLLMNotesProvider(_make_config())
        error = litellm.AuthenticationError(
            message="invalid key", llm_provider="openai", model="gpt-4.1-mini",
        )
        with patch(_ACOMP, new_callable=AsyncMock, side_effect=error):
            with pytest.raises(AuthenticationError) as exc_info:
                await provider.open_stream(_item())
        assert exc_info.value.__cause__ is error


# ── Generator integration ────────────────────────────────────


class TestGeneratorWithLiteLLM:
    @pytest.mark.asyncio
    async def test_unmapped_rejection_publishes_failed(self):
        provider = LiteLLMNotesProvider(_make_config(model="openai/gpt-nope"))
        generator = NotesGenerator(provider)
        seen = []
        generator.publisher.add_listener(seen.append)
        error = litellm.NotFoundError(
            message="model gpt-nope does not exist", model="gpt-nope", llm_provider="openai",
        )

        with (
            patch(_ACOMP, new_callable=AsyncMock, side_effect=error),
            patch(_SLEEP, new_callable=AsyncMock),
        ):
            final = await generator.generate(_item())

        assert final.error.kind is ErrorKind.PROVIDER
        assert not final.is_complete
        assert final.developer == ""
        assert final.marketing == ""
        assert seen == [final]
