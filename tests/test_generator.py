"""Tests for NotesGenerator and NotesPublisher."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from diffdigest.errors import RateLimitError
from diffdigest.generator import NotesGenerator
from diffdigest.providers.base import NotesProvider
from diffdigest.schemas.config import SectionDetection
from diffdigest.schemas.notes import DiffItem
from diffdigest.schemas.streaming import ErrorKind, NotesSnapshot
from diffdigest.streaming.publisher import NotesPublisher
from diffdigest.streaming.tracker import MarkerSectionTracker


def _item(item_id: str = "1") -> DiffItem:
    return DiffItem(id=item_id, description="Add cache", diff="+cache = {}\n")


class ScriptedProvider(NotesProvider):
    """Replays fixed byte chunks per item id, optionally pausing on a gate."""

    def __init__(self, scripts: dict[str, list[bytes]], gates: dict[str, asyncio.Event] | None = None):
        self._scripts = scripts
        self._gates = gates or {}
        self.opened: list[str] = []

    async def open_stream(self, item):
        self.opened.append(item.id)
        return self._iter(item.id)

    async def _iter(self, item_id):
        chunks = self._scripts[item_id]
        gate = self._gates.get(item_id)
        for i, chunk in enumerate(chunks):
            if gate is not None and i == 1:
                await gate.wait()
            yield chunk


# ── Publisher ────────────────────────────────────────────────────


class TestNotesPublisher:
    @pytest.mark.asyncio
    async def test_sync_and_async_listeners(self):
        publisher = NotesPublisher()
        seen_sync, seen_async = [], []

        async def _async_listener(snapshot):
            seen_async.append(snapshot)

        publisher.add_listener(seen_sync.append)
        publisher.add_listener(_async_listener)
        snapshot = NotesSnapshot(item_id="1", developer="d")
        await publisher.publish(snapshot)

        assert seen_sync == [snapshot]
        assert seen_async == [snapshot]
        assert publisher.latest == snapshot

    @pytest.mark.asyncio
    async def test_listener_error_does_not_propagate(self, caplog):
        publisher = NotesPublisher()
        seen = []

        def _broken(snapshot):
            raise RuntimeError("boom")

        publisher.add_listener(_broken)
        publisher.add_listener(seen.append)
        with caplog.at_level("ERROR"):
            await publisher.publish(NotesSnapshot(item_id="1"))
        assert len(seen) == 1
        assert "listener error" in caplog.text

    @pytest.mark.asyncio
    async def test_remove_listener(self):
        publisher = NotesPublisher()
        listener = AsyncMock()
        publisher.add_listener(listener)
        publisher.remove_listener(listener)
        await publisher.publish(NotesSnapshot())
        listener.assert_not_called()


# ── Generator ────────────────────────────────────────────────────


class TestNotesGenerator:
    @pytest.mark.asyncio
    async def test_generate_publishes_final(self):
        provider = ScriptedProvider({"1": [b'{"developer": "d", ', b'"marketing": "m"}']})
        generator = NotesGenerator(provider)
        seen = []
        generator.publisher.add_listener(seen.append)

        final = await generator.generate(_item("1"))

        assert final.developer == "d"
        assert final.marketing == "m"
        assert final.is_complete
        assert seen[-1] == final
        assert generator.current_session is None

    @pytest.mark.asyncio
    async def test_request_error_surfaces(self):
        provider = ScriptedProvider({})
        provider.open_stream = AsyncMock(side_effect=RateLimitError("slow down", status_code=429))
        generator = NotesGenerator(provider)

        final = await generator.generate(_item("1"))

        assert final.error.kind is ErrorKind.RATE_LIMIT
        assert final.developer == ""
        assert not final.is_complete

    @pytest.mark.asyncio
    async def test_section_detection_mode_used(self):
        gate = asyncio.Event()
        provider = ScriptedProvider(
            {"1": [b'{"developer": "d"', b', "marketing": "m"}']}, {"1": gate},
        )
        generator = NotesGenerator(provider, section_detection=SectionDetection.MARKER)
        task = asyncio.create_task(generator.generate(_item("1")))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert isinstance(generator.current_session._tracker, MarkerSectionTracker)
        gate.set()
        await task

    @pytest.mark.asyncio
    async def test_second_request_supersedes_first(self):
        gate = asyncio.Event()
        provider = ScriptedProvider(
            {
                "old": [b'{"developer": "old', b' text", "marketing": "old"}'],
                "new": [b'{"developer": "new", "marketing": "new"}'],
            },
            {"old": gate},
        )
        generator = NotesGenerator(provider)
        seen: list[NotesSnapshot] = []
        generator.publisher.add_listener(seen.append)

        first = asyncio.create_task(generator.generate(_item("old")))
        # Let the first session publish its first fragment and block
        while not seen:
            await asyncio.sleep(0)
        old_session = generator.current_session

        second = await generator.generate(_item("new"))
        gate.set()
        first_result = await first

        assert old_session.superseded
        assert second.developer == "new"
        assert second.is_complete
        # Nothing from "old" was published after "new" started
        new_start = next(i for i, s in enumerate(seen) if s.item_id == "new")
        assert all(s.item_id == "new" for s in seen[new_start:])
        assert not first_result.is_complete
        assert generator.publisher.latest.item_id == "new"

    @pytest.mark.asyncio
    async def test_cancel_supersedes_current(self):
        gate = asyncio.Event()
        provider = ScriptedProvider(
            {"1": [b'{"developer": "a', b'", "marketing": "b"}']}, {"1": gate},
        )
        generator = NotesGenerator(provider)
        seen = []
        generator.publisher.add_listener(seen.append)

        task = asyncio.create_task(generator.generate(_item("1")))
        while not seen:
            await asyncio.sleep(0)
        generator.cancel()
        gate.set()
        await task

        assert generator.current_session is None
        assert len(seen) == 1

    def test_cancel_without_session(self):
        generator = NotesGenerator(ScriptedProvider({}))
        generator.cancel()
        assert generator.current_session is None
