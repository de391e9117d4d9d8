"""Tests for engine wiring."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from rose.app import build
from rose.config import RoseConfig
from rose.generation import GUEST_FALLBACK
from rose.storage import Role


@pytest.fixture
def config(tmp_path: Path) -> RoseConfig:
    return RoseConfig(
        api_key="test-key",
        db_path=tmp_path / "rose.db",
        log_dir=tmp_path / "logs",
        privileged_keys=["owner-1"],
        menu_structure={"categories": {"Snacks": {"items": ["Cookies"]}}},
    )


@pytest.mark.asyncio
async def test_build_wires_components(config: RoseConfig) -> None:
    text_generator = AsyncMock()
    text_generator.complete.return_value = "Hello there!"
    rose = build(config, text_generator=text_generator)
    try:
        reply = await rose.engine.handle_message("owner-1", "Alice", "Office", "s1", "Hi")
        assert reply.text == "Hello there!"

        entry = await rose.store.find_identity("owner-1")
        assert entry.role is Role.PRIVILEGED

        menu = await rose.engine.handle_message("owner-1", "Alice", "Office", "s1", "snacks")
        assert menu.text == "Sure! We have Cookies available."

        assert (config.log_dir / "events.jsonl").exists()
    finally:
        rose.close()


@pytest.mark.asyncio
async def test_build_without_api_key_uses_fallback(config: RoseConfig) -> None:
    config.api_key = ""
    rose = build(config)
    try:
        reply = await rose.engine.handle_message("visitor-1", "Bob", "Lobby", "s1", "Hi")
        assert reply.text == GUEST_FALLBACK
    finally:
        rose.close()


@pytest.mark.asyncio
async def test_start_and_sweep(config: RoseConfig) -> None:
    rose = build(config, text_generator=AsyncMock())
    try:
        rose.start()
        assert rose.identity_cache._prune_task is not None
        assert await rose.sweep_history() == 0
        assert await rose.sweep_messages() == 0
    finally:
        rose.close()


@pytest.mark.asyncio
async def test_messages_reach_owners(config: RoseConfig) -> None:
    text_generator = AsyncMock()
    text_generator.complete.return_value = "Welcome back!"
    rose = build(config, text_generator=text_generator)
    try:
        await rose.engine.handle_arrival("owner-1", "Alice", "Office")

        assert await rose.engine.leave_message("visitor-1", "Bob", "Back at three") == 1
        [message] = await rose.engine.messages.pending("owner-1")
        assert message.content == "Back at three"
    finally:
        rose.close()
