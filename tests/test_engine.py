"""Tests for ChatEngine orchestration."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from rose.engine import ARRIVAL_HISTORY_TEXT, BLOCKED_REPLY, ChatEngine
from rose.errors import StorageError
from rose.generation import GUEST_FALLBACK, PRIVILEGED_FALLBACK, GenerationConfig, ResponseGenerator
from rose.history import ConversationHistory
from rose.identity import IdentityResolver
from rose.menu import MenuNavigator
from rose.menu.navigator import FINAL_ITEM_MESSAGE
from rose.messages import MessageQueue
from rose.postprocess import ChatAction
from rose.storage import IdentityEntry, Role, SQLiteStore


@pytest.fixture
def store(tmp_path: Path) -> SQLiteStore:
    store = SQLiteStore(tmp_path / "engine.db")
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def text_generator() -> AsyncMock:
    generator = AsyncMock()
    generator.complete.return_value = "Here you go! [ACTION:type=give,item=Coffee]"
    return generator


@pytest.fixture
def engine(store: SQLiteStore, text_generator: AsyncMock) -> ChatEngine:
    history = ConversationHistory(store)
    return ChatEngine(
        IdentityResolver(store, privileged_keys=["owner-1"]),
        history,
        MenuNavigator(),
        ResponseGenerator(text_generator, history, GenerationConfig(api_key="test-key")),
    )


async def block(store: SQLiteStore, key: str) -> None:
    await store.create_identity(IdentityEntry(key=key, display_name="Troll", role=Role.BLOCKED))


class TestHandleMessage:
    @pytest.mark.asyncio
    async def test_generated_reply_with_action(self, engine: ChatEngine, store: SQLiteStore):
        reply = await engine.handle_message("visitor-1", "Bob", "Lobby", "s1", "Could I get a coffee?")

        assert reply.text == "Here you go!"
        assert reply.actions == [ChatAction(type="give", target="Coffee")]
        assert reply.should_notify_owners is False

        [record] = await store.list_exchanges("visitor-1", "s1", 10)
        assert record.message == "Could I get a coffee?"
        assert record.reply == "Here you go! [ACTION:type=give,item=Coffee]"
        assert record.role_label == "guest"

    @pytest.mark.asyncio
    async def test_first_contact_creates_identity(self, engine: ChatEngine, store: SQLiteStore):
        await engine.handle_message("owner-1", "Alice", "Office", "s1", "Morning!")

        entry = await store.find_identity("owner-1")
        assert entry.role is Role.PRIVILEGED

    @pytest.mark.asyncio
    async def test_blocked_never_generates(
        self, engine: ChatEngine, store: SQLiteStore, text_generator: AsyncMock
    ):
        await block(store, "troll-1")

        reply = await engine.handle_message("troll-1", "Troll", "Lobby", "s1", "Hi")

        assert reply.text == BLOCKED_REPLY
        assert reply.actions is None
        text_generator.complete.assert_not_called()
        assert await store.list_exchanges("troll-1", "s1", 10) == []

    @pytest.mark.asyncio
    async def test_blocked_cannot_use_menu(self, engine: ChatEngine, store: SQLiteStore):
        await block(store, "troll-1")

        reply = await engine.handle_message("troll-1", "Troll", "Lobby", "s1", "beverages")

        assert reply.text == BLOCKED_REPLY
        assert not engine.navigator.has_context("s1")

    @pytest.mark.asyncio
    async def test_menu_short_circuits_generation(
        self, engine: ChatEngine, store: SQLiteStore, text_generator: AsyncMock
    ):
        first = await engine.handle_message("visitor-1", "Bob", "Lobby", "s1", "What beverages do you have?")
        await engine.handle_message("visitor-1", "Bob", "Lobby", "s1", "coffee")
        final = await engine.handle_message("visitor-1", "Bob", "Lobby", "s1", "a latte please")

        assert first.text.startswith("Sure! We have Coffee")
        assert final.text == FINAL_ITEM_MESSAGE
        assert final.actions == [ChatAction(type="give", target="Latte")]
        text_generator.complete.assert_not_called()
        assert len(await store.list_exchanges("visitor-1", "s1", 10)) == 3

    @pytest.mark.asyncio
    async def test_unmatched_menu_reply_falls_through(
        self, engine: ChatEngine, text_generator: AsyncMock
    ):
        await engine.handle_message("visitor-1", "Bob", "Lobby", "s1", "beverages")

        reply = await engine.handle_message("visitor-1", "Bob", "Lobby", "s1", "what time is it?")

        assert reply.text == "Here you go!"
        text_generator.complete.assert_called_once()
        assert engine.navigator.has_context("s1")

    @pytest.mark.asyncio
    async def test_cancel_words_outside_menu_reach_generation(
        self, engine: ChatEngine, text_generator: AsyncMock
    ):
        await engine.handle_message("visitor-1", "Bob", "Lobby", "s1", "I'll be back soon")
        text_generator.complete.assert_called_once()

    @pytest.mark.asyncio
    async def test_generation_failure_uses_fallback(
        self, engine: ChatEngine, text_generator: AsyncMock
    ):
        text_generator.complete.side_effect = RuntimeError("boom")

        reply = await engine.handle_message("owner-1", "Alice", "Office", "s1", "Hi")

        assert reply.text == PRIVILEGED_FALLBACK
        assert reply.actions is None

    @pytest.mark.asyncio
    async def test_history_failure_still_replies(self, store: SQLiteStore, text_generator: AsyncMock):
        history_store = AsyncMock()
        history_store.list_exchanges.return_value = []
        history_store.append_exchange.side_effect = StorageError("readonly")
        history = ConversationHistory(history_store)
        engine = ChatEngine(
            IdentityResolver(store),
            history,
            MenuNavigator(),
            ResponseGenerator(text_generator, history, GenerationConfig(api_key="k")),
        )

        reply = await engine.handle_message("visitor-1", "Bob", "Lobby", "s1", "Hi")

        assert reply.text == "Here you go!"

    @pytest.mark.asyncio
    async def test_unreadable_identity_row_still_replies(
        self, engine: ChatEngine, store: SQLiteStore
    ):
        conn = store._get_connection()
        conn.execute(
            "INSERT INTO identities (key, display_name, role, created_at, last_seen) "
            "VALUES ('k', 'Bob', 'owner', "
            "'2026-01-01T00:00:00+00:00', '2026-01-01T00:00:00+00:00')"
        )
        conn.commit()

        reply = await engine.handle_message("k", "Bob", "Lobby", "s1", "Hello")

        assert reply.text == "Here you go!"

    @pytest.mark.asyncio
    async def test_resolver_crash_uses_default_identity(self, engine: ChatEngine):
        engine.identities.resolve = AsyncMock(side_effect=RuntimeError("boom"))

        reply = await engine.handle_message("owner-1", "Alice", "Office", "s1", "Hi")
        arrival = await engine.handle_arrival("owner-1", "Alice", "Office")

        assert reply.text == "Here you go!"
        assert arrival.role_label == "privileged"

    @pytest.mark.asyncio
    async def test_unexpected_error_uses_role_fallback(self, engine: ChatEngine):
        engine.navigator = MagicMock()
        engine.navigator.has_context.side_effect = RuntimeError("boom")

        reply = await engine.handle_message("visitor-1", "Bob", "Lobby", "s1", "Hi")

        assert reply.text == GUEST_FALLBACK

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key,message", [("", "Hi"), ("visitor-1", "")])
    async def test_requires_key_and_message(self, engine: ChatEngine, key: str, message: str):
        with pytest.raises(ValueError):
            await engine.handle_message(key, "Bob", "Lobby", "s1", message)

    @pytest.mark.asyncio
    async def test_events_are_logged(self, engine: ChatEngine):
        engine.event_log = MagicMock()

        await engine.handle_message("visitor-1", "Bob", "Lobby", "s1", "snacks?")

        engine.event_log.log_menu.assert_called_once()
        args, kwargs = engine.event_log.log_message.call_args
        assert args[:5] == ("visitor-1", "s1", "guest", "menu", len("snacks?"))
        assert kwargs["duration_ms"] >= 0


class TestHandleArrival:
    @pytest.mark.asyncio
    async def test_guest_arrival_notifies_owners(
        self, engine: ChatEngine, store: SQLiteStore, text_generator: AsyncMock
    ):
        text_generator.complete.return_value = "*waves* Welcome! [ACTION:type=wave]"

        arrival = await engine.handle_arrival("visitor-1", "Bob", "Reception")

        assert arrival.greeting == "*waves* Welcome!"
        assert arrival.role_label == "guest"
        assert arrival.should_notify_owners is True
        assert arrival.session_id

        turns = text_generator.complete.call_args.args[1]
        assert turns[-1]["content"] == "Hello! I just arrived at Reception."

        [record] = await store.list_exchanges("visitor-1", arrival.session_id, 10)
        assert record.message == ARRIVAL_HISTORY_TEXT
        assert record.reply == "*waves* Welcome! [ACTION:type=wave]"

    @pytest.mark.asyncio
    async def test_privileged_arrival_does_not_notify(self, engine: ChatEngine):
        arrival = await engine.handle_arrival("owner-1", "Alice", "Office")

        assert arrival.role_label == "privileged"
        assert arrival.should_notify_owners is False

    @pytest.mark.asyncio
    async def test_blocked_arrival_is_silent(
        self, engine: ChatEngine, store: SQLiteStore, text_generator: AsyncMock
    ):
        await block(store, "troll-1")

        arrival = await engine.handle_arrival("troll-1", "Troll", "Lobby")

        assert arrival.greeting == ""
        assert arrival.role_label == "blocked"
        assert arrival.should_notify_owners is False
        text_generator.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_each_arrival_opens_new_session(self, engine: ChatEngine):
        first = await engine.handle_arrival("visitor-1", "Bob", "Lobby")
        second = await engine.handle_arrival("visitor-1", "Bob", "Lobby")

        assert first.session_id != second.session_id

    @pytest.mark.asyncio
    async def test_requires_key(self, engine: ChatEngine):
        with pytest.raises(ValueError):
            await engine.handle_arrival("", "Bob", "Lobby")


class TestLeaveMessage:
    @pytest.fixture
    def queue(self, store: SQLiteStore, engine: ChatEngine) -> MessageQueue:
        engine.messages = MessageQueue(store)
        return engine.messages

    @pytest.mark.asyncio
    async def test_queues_for_every_stored_owner(
        self, engine: ChatEngine, store: SQLiteStore, queue: MessageQueue
    ):
        await store.create_identity(IdentityEntry(key="owner-2", display_name="Dana", role=Role.PRIVILEGED))
        await engine.handle_message("owner-1", "Alice", "Office", "s1", "Hi")

        count = await engine.leave_message("visitor-1", "Bob", "Please call me back")

        assert count == 2
        [message] = await queue.pending("owner-1")
        assert message.from_name == "Bob"
        assert message.content == "Please call me back"
        assert len(await queue.pending("owner-2")) == 1

    @pytest.mark.asyncio
    async def test_owner_does_not_message_themselves(
        self, engine: ChatEngine, queue: MessageQueue
    ):
        assert await engine.leave_message("owner-1", "Alice", "Note to self") == 0
        assert await queue.pending("owner-1") == []

    @pytest.mark.asyncio
    async def test_blocked_cannot_leave_messages(
        self, engine: ChatEngine, store: SQLiteStore, queue: MessageQueue
    ):
        await engine.handle_message("owner-1", "Alice", "Office", "s1", "Hi")
        await block(store, "troll-1")

        assert await engine.leave_message("troll-1", "Troll", "Hello") == 0
        assert await queue.pending("owner-1") == []

    @pytest.mark.asyncio
    async def test_without_queue(self, engine: ChatEngine):
        assert await engine.leave_message("visitor-1", "Bob", "Hello") == 0

    @pytest.mark.asyncio
    async def test_requires_content(self, engine: ChatEngine):
        with pytest.raises(ValueError):
            await engine.leave_message("visitor-1", "Bob", "")
