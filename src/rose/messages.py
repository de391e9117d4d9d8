"""Messages left for owners while they are away."""

import logging
from datetime import timedelta

from .errors import StorageError
from .storage import OwnerMessage, Store
from .storage.models import utcnow

logger = logging.getLogger(__name__)


class MessageQueue:
    """Queues visitor messages for owners and hands them over on request.

    Storage failures are logged: writes report None or False, reads come
    back empty.
    """

    def __init__(self, store: Store) -> None:
        self.store = store

    async def queue(
        self, from_key: str, from_name: str, to_key: str, content: str
    ) -> OwnerMessage | None:
        """Queue a message for one recipient.

        Returns:
            The stored message, or None if storage failed.

        Raises:
            ValueError: If the sender, recipient or content is missing.
        """
        if not from_key or not to_key or not content:
            raise ValueError("from_key, to_key and content are required")

        message = OwnerMessage(
            from_key=from_key, from_name=from_name, to_key=to_key, content=content
        )
        try:
            stored = await self.store.enqueue_message(message)
        except StorageError as e:
            logger.error("Error queuing message from %s to %s: %s", from_key, to_key, e)
            return None

        logger.info("Message queued from %s to %s", from_name, to_key)
        return stored

    async def queue_for_owners(
        self, from_key: str, from_name: str, content: str, owner_keys: list[str]
    ) -> int:
        """Queue the same message for every owner.

        Returns:
            Number of messages stored.
        """
        queued = 0
        for owner_key in owner_keys:
            if await self.queue(from_key, from_name, owner_key, content) is not None:
                queued += 1
        return queued

    async def pending(self, to_key: str) -> list[OwnerMessage]:
        """Undelivered messages for a recipient, oldest first."""
        try:
            return await self.store.list_pending_messages(to_key)
        except StorageError as e:
            logger.error("Error retrieving pending messages for %s: %s", to_key, e)
            return []

    async def mark_delivered(self, message_id: str) -> bool:
        """Mark a message as collected.

        Returns:
            True if the message exists and was updated.
        """
        try:
            ok = await self.store.mark_message_delivered(message_id, utcnow())
        except StorageError as e:
            logger.error("Error marking message %s as delivered: %s", message_id, e)
            return False
        if ok:
            logger.info("Message %s marked as delivered", message_id)
        return ok

    async def cleanup_older_than(self, days: int = 30) -> int:
        """Delete messages delivered more than `days` ago.

        Returns:
            Number of messages deleted.
        """
        cutoff = utcnow() - timedelta(days=days)
        try:
            count = await self.store.delete_delivered_messages_before(cutoff)
        except StorageError as e:
            logger.error("Error cleaning up old messages: %s", e)
            return 0
        if count:
            logger.info("Cleaned up %d old delivered messages", count)
        return count
