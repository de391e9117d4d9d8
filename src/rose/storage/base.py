"""Storage interface consumed by the engine."""

from datetime import datetime
from typing import Protocol

from .models import ExchangeRecord, IdentityEntry, OwnerMessage, Role


class Store(Protocol):
    """Transactional key/record store for identities, exchanges and owner messages.

    Every method raises StorageError when the backend fails.
    """

    async def find_identity(self, key: str) -> IdentityEntry | None: ...

    async def create_identity(self, entry: IdentityEntry) -> None: ...

    async def update_identity(self, entry: IdentityEntry) -> bool: ...

    async def delete_identity(self, key: str) -> bool: ...

    async def list_identities(self, role: Role | None = None) -> list[IdentityEntry]: ...

    async def list_exchanges(
        self, identity_key: str, session_id: str, limit: int
    ) -> list[ExchangeRecord]: ...

    async def append_exchange(self, record: ExchangeRecord) -> ExchangeRecord: ...

    async def delete_exchanges_before(self, cutoff: datetime) -> int: ...

    async def enqueue_message(self, message: OwnerMessage) -> OwnerMessage: ...

    async def list_pending_messages(self, to_key: str) -> list[OwnerMessage]: ...

    async def mark_message_delivered(self, message_id: str, delivered_at: datetime) -> bool: ...

    async def delete_delivered_messages_before(self, cutoff: datetime) -> int: ...
