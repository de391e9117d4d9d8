"""Chat engine: the entry point for every inbound message."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass

from .generation import ResponseGenerator, fallback_reply
from .history import ConversationHistory
from .identity import IdentityResolver
from .logging import JSONLLogger
from .menu import MenuNavigator, NavigationKind, NavigationResult
from .messages import MessageQueue
from .postprocess import ChatAction, ResponseProcessor, parse_actions
from .storage import IdentityEntry, Role

logger = logging.getLogger(__name__)

BLOCKED_REPLY = "*looks away politely* I'm afraid I'm quite busy at the moment."
ARRIVAL_MESSAGE = "Hello! I just arrived at {location}."
ARRIVAL_HISTORY_TEXT = "Arrival greeting"


@dataclass
class ChatReply:
    """What the in-world agent should say and do."""

    text: str
    actions: list[ChatAction] | None = None
    suggested_animation: str = ""
    should_notify_owners: bool = False


@dataclass
class ArrivalReply:
    """Greeting for a speaker who just arrived."""

    greeting: str
    role_label: str
    should_notify_owners: bool
    session_id: str


class ChatEngine:
    """Coordinates identity, menu, generation, post-processing and history.

    Nothing in here aborts a chat turn: every sub-step has a degraded
    outcome, and the worst the speaker sees is an in-character fallback.
    """

    def __init__(
        self,
        identities: IdentityResolver,
        history: ConversationHistory,
        navigator: MenuNavigator,
        generator: ResponseGenerator,
        processor: ResponseProcessor | None = None,
        event_log: JSONLLogger | None = None,
        messages: MessageQueue | None = None,
    ) -> None:
        self.identities = identities
        self.history = history
        self.navigator = navigator
        self.generator = generator
        self.processor = processor or ResponseProcessor()
        self.event_log = event_log
        self.messages = messages

    async def handle_message(
        self,
        identity_key: str,
        display_name: str,
        location: str,
        session_id: str,
        message: str,
        transcript: str | None = None,
    ) -> ChatReply:
        """Answer one chat message.

        Args:
            identity_key: The speaker's stable key.
            display_name: The speaker's current name.
            location: Where the speaker is (informational).
            session_id: Conversation session the message belongs to.
            message: The message text.
            transcript: Optional recent dialogue block for transcript mode.

        Returns:
            The reply text with any actions and a suggested animation.

        Raises:
            ValueError: If the identity key or message is missing.
        """
        if not identity_key or not message:
            raise ValueError("identity_key and message are required")

        start = time.perf_counter()
        entry = await self._resolve(identity_key, display_name)

        if entry.role is Role.BLOCKED:
            logger.warning("Blocked identity %s attempted to chat", identity_key)
            self._log_message(entry, session_id, "blocked", message, start)
            return ChatReply(text=BLOCKED_REPLY)

        try:
            reply = await self._menu_reply(entry, display_name, session_id, message)
            route = "menu"
            if reply is None:
                reply = await self._generated_reply(
                    entry, display_name, session_id, message, transcript
                )
                route = "generation"
        except Exception:
            logger.exception("Error processing chat message from %s", identity_key)
            reply = ChatReply(text=fallback_reply(entry.role))
            route = "fallback"

        self._log_message(entry, session_id, route, message, start)
        return reply

    async def handle_arrival(
        self, identity_key: str, display_name: str, location: str
    ) -> ArrivalReply:
        """Greet a speaker who just arrived and open a new session.

        Raises:
            ValueError: If the identity key is missing.
        """
        if not identity_key:
            raise ValueError("identity_key is required")

        session_id = str(uuid.uuid4())
        entry = await self._resolve(identity_key, display_name)

        if entry.role is Role.BLOCKED:
            logger.warning("Blocked identity %s attempted arrival", identity_key)
            return ArrivalReply(
                greeting="",
                role_label=Role.BLOCKED.value,
                should_notify_owners=False,
                session_id=session_id,
            )

        raw = await self.generator.generate(
            ARRIVAL_MESSAGE.format(location=location),
            identity_key,
            display_name,
            entry.role,
            entry.personality_notes,
            entry.favorite_drink,
            session_id,
        )
        await self.history.append(
            identity_key,
            display_name,
            entry.role.value,
            ARRIVAL_HISTORY_TEXT,
            raw,
            session_id,
        )
        greeting, _ = parse_actions(raw)

        return ArrivalReply(
            greeting=greeting,
            role_label=entry.role.value,
            should_notify_owners=entry.role is Role.GUEST,
            session_id=session_id,
        )

    async def leave_message(self, identity_key: str, display_name: str, content: str) -> int:
        """Leave a message for every owner.

        Owners are the stored identities with the privileged role. Blocked
        speakers cannot leave messages.

        Returns:
            Number of owners the message was queued for.

        Raises:
            ValueError: If the identity key or content is missing.
        """
        if not identity_key or not content:
            raise ValueError("identity_key and content are required")

        if self.messages is None:
            logger.warning("No message queue configured, dropping message from %s", identity_key)
            return 0

        entry = await self._resolve(identity_key, display_name)
        if entry.role is Role.BLOCKED:
            logger.warning("Blocked identity %s attempted to leave a message", identity_key)
            return 0

        owners = [key for key in await self.identities.privileged_keys() if key != identity_key]
        queued = await self.messages.queue_for_owners(
            identity_key, display_name, content, owners
        )
        if self.event_log:
            self.event_log.log("message_queued", identity_key=identity_key, recipients=queued)
        return queued

    async def _resolve(self, identity_key: str, display_name: str) -> IdentityEntry:
        try:
            return await self.identities.resolve(identity_key, display_name)
        except Exception:
            logger.exception("Identity resolution failed for %s", identity_key)
            return IdentityEntry(
                key=identity_key,
                display_name=display_name,
                role=self.identities.default_role(identity_key),
            )

    async def _menu_reply(
        self,
        entry: IdentityEntry,
        display_name: str,
        session_id: str,
        message: str,
    ) -> ChatReply | None:
        """Answer from the menu if the message is menu-directed."""
        if not (
            self.navigator.has_context(session_id)
            or self.navigator.mentions_category(message)
        ):
            return None

        result = self.navigator.navigate(message, session_id)
        if not result.is_definitive:
            return None

        if self.event_log:
            self.event_log.log_menu(
                session_id,
                result.kind.value,
                category=result.category_name,
                item=result.selected_item,
            )

        await self.history.append(
            entry.key, display_name, entry.role.value, message, result.message, session_id
        )
        return ChatReply(
            text=result.message,
            actions=_menu_actions(result),
            suggested_animation=self.processor.process(result.message, entry.role).animation,
        )

    async def _generated_reply(
        self,
        entry: IdentityEntry,
        display_name: str,
        session_id: str,
        message: str,
        transcript: str | None,
    ) -> ChatReply:
        raw = await self.generator.generate(
            message,
            entry.key,
            display_name,
            entry.role,
            entry.personality_notes,
            entry.favorite_drink,
            session_id,
            transcript,
        )
        processed = self.processor.process(raw, entry.role)

        # Stored with tags so later prompts show the model its own format.
        await self.history.append(
            entry.key, display_name, entry.role.value, message, raw, session_id
        )

        return ChatReply(
            text=processed.text,
            actions=processed.actions,
            suggested_animation=processed.animation,
        )

    def _log_message(
        self,
        entry: IdentityEntry,
        session_id: str,
        route: str,
        message: str,
        start: float,
    ) -> None:
        if self.event_log:
            self.event_log.log_message(
                entry.key,
                session_id,
                entry.role.value,
                route,
                len(message),
                duration_ms=(time.perf_counter() - start) * 1000,
            )


def _menu_actions(result: NavigationResult) -> list[ChatAction] | None:
    if result.kind is NavigationKind.FINAL_ITEM and result.selected_item:
        return [ChatAction(type="give", target=result.selected_item)]
    return None
