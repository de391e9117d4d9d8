"""Bounded access to conversation history."""

import logging
from datetime import timedelta

from .errors import StorageError
from .storage import ExchangeRecord, Store
from .storage.models import utcnow

logger = logging.getLogger(__name__)


class ConversationHistory:
    """Reads and appends exchange records scoped to (identity, session).

    Storage failures never propagate: reads come back empty and writes report
    False.
    """

    def __init__(self, store: Store, limit: int = 10) -> None:
        """Initialize with a store and the default window size.

        Args:
            store: Storage collaborator holding the exchange records.
            limit: Default number of exchanges returned by recent().
        """
        self.store = store
        self.limit = limit

    async def recent(
        self, identity_key: str, session_id: str, limit: int | None = None
    ) -> list[ExchangeRecord]:
        """Get the most recent exchanges for a session, oldest first.

        Args:
            identity_key: The speaker's key.
            session_id: The conversation session.
            limit: Window size, the configured default if None.

        Returns:
            Up to `limit` records, empty on storage failure.
        """
        window = self.limit if limit is None else limit
        if window <= 0:
            return []

        try:
            return await self.store.list_exchanges(identity_key, session_id, window)
        except StorageError as e:
            logger.error(
                "Error retrieving conversation history for %s: %s", identity_key, e
            )
            return []

    async def append(
        self,
        identity_key: str,
        display_name: str,
        role_label: str,
        message: str,
        reply: str,
        session_id: str,
    ) -> bool:
        """Record a completed exchange, timestamped now.

        Returns:
            True if the record was stored.
        """
        record = ExchangeRecord(
            identity_key=identity_key,
            display_name=display_name,
            role_label=role_label,
            message=message,
            reply=reply,
            session_id=session_id,
        )
        try:
            await self.store.append_exchange(record)
        except StorageError as e:
            logger.error("Error saving conversation for %s: %s", identity_key, e)
            return False
        return True

    async def cleanup_older_than(self, days: int = 30) -> int:
        """Delete exchanges older than the retention window.

        Not part of the request path; meant for a scheduled sweep.

        Returns:
            Number of records deleted.
        """
        cutoff = utcnow() - timedelta(days=days)
        try:
            count = await self.store.delete_exchanges_before(cutoff)
        except StorageError as e:
            logger.error("Error cleaning up old conversations: %s", e)
            return 0
        if count:
            logger.info("Cleaned up %d old conversation records", count)
        return count
