"""Identity resolution for incoming chat traffic."""

import asyncio
import logging
from dataclasses import replace

from ..errors import StorageError
from ..storage import IdentityEntry, Role, Store
from ..storage.models import utcnow
from .cache import IdentityCache

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Resolves speakers to their role and profile.

    Sits between chat traffic and the storage collaborator. Resolution never
    fails: storage problems are logged and an in-memory default entry is
    returned so the conversation can continue.
    """

    def __init__(
        self,
        store: Store,
        cache: IdentityCache | None = None,
        privileged_keys: list[str] | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            store: Storage collaborator for identity entries.
            cache: Identity cache, a fresh 5 minute cache if None.
            privileged_keys: Keys that get the privileged role on first contact.
        """
        self.store = store
        self.cache = cache or IdentityCache()
        self.allowlist = set(privileged_keys or [])
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        return self._locks[key]

    def _release_lock(self, key: str) -> None:
        remaining = self._lock_users.get(key, 1) - 1
        if remaining > 0:
            self._lock_users[key] = remaining
        else:
            self._lock_users.pop(key, None)
            self._locks.pop(key, None)

    def default_role(self, key: str) -> Role:
        """Role given to a key seen for the first time."""
        return Role.PRIVILEGED if key in self.allowlist else Role.GUEST

    async def resolve(self, key: str, display_name: str) -> IdentityEntry:
        """Resolve a speaker, creating an entry on first contact.

        A cached entry is returned without touching storage. On a miss the
        stored entry gets its last-seen time bumped and the cache entry is
        dropped rather than refreshed, so the next read comes from storage.

        Args:
            key: The speaker's stable identifier.
            display_name: Name to record for a new entry.

        Returns:
            The speaker's identity entry.
        """
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        lock = self._get_lock(key)
        try:
            async with lock:
                return await self._resolve_uncached(key, display_name)
        finally:
            self._release_lock(key)

    async def _resolve_uncached(self, key: str, display_name: str) -> IdentityEntry:
        try:
            entry = await self.store.find_identity(key)
        except StorageError as e:
            logger.error("Identity lookup failed for %s: %s", key, e)
            return IdentityEntry(key=key, display_name=display_name, role=self.default_role(key))

        if entry is not None:
            entry.last_seen = utcnow()
            try:
                await self.store.update_identity(entry)
            except StorageError as e:
                logger.error("Failed to record last-seen for %s: %s", key, e)
            self.cache.invalidate(key)
            return entry

        entry = IdentityEntry(key=key, display_name=display_name, role=self.default_role(key))
        try:
            await self.store.create_identity(entry)
        except StorageError as e:
            logger.error("Error creating identity entry for %s: %s", key, e)
        else:
            logger.info(
                "Created new identity entry for %s (%s) as %s",
                display_name,
                key,
                entry.role.value,
            )
        return entry

    async def lookup(self, key: str) -> IdentityEntry | None:
        """Read an identity, serving from and populating the cache.

        Returns:
            The entry, or None if unknown or storage failed.
        """
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            entry = await self.store.find_identity(key)
        except StorageError as e:
            logger.error("Error retrieving identity entry for %s: %s", key, e)
            return None

        if entry is not None:
            self.cache.put(entry)
        return entry

    async def update(self, entry: IdentityEntry) -> bool:
        """Overwrite an existing entry's name, role, notes and drink.

        Returns:
            True on success, False if the key is unknown or storage failed.
        """
        updated = replace(entry, last_seen=utcnow())
        try:
            ok = await self.store.update_identity(updated)
        except StorageError as e:
            logger.error("Error updating identity entry %s: %s", entry.key, e)
            ok = False
        self.cache.invalidate(entry.key)
        if ok:
            logger.info("Updated identity entry for %s", entry.key)
        return ok

    async def create(self, entry: IdentityEntry) -> bool:
        """Create an entry outside the chat path (admin)."""
        try:
            await self.store.create_identity(entry)
        except StorageError as e:
            logger.error("Error creating identity entry %s: %s", entry.key, e)
            return False
        finally:
            self.cache.invalidate(entry.key)
        return True

    async def delete(self, key: str) -> bool:
        """Delete an entry outside the chat path (admin)."""
        try:
            return await self.store.delete_identity(key)
        except StorageError as e:
            logger.error("Error deleting identity entry %s: %s", key, e)
            return False
        finally:
            self.cache.invalidate(key)

    def invalidate(self, key: str) -> None:
        """Drop the cached entry for a key."""
        self.cache.invalidate(key)

    async def privileged_keys(self) -> list[str]:
        """Keys of every stored identity with the privileged role."""
        try:
            entries = await self.store.list_identities(Role.PRIVILEGED)
        except StorageError as e:
            logger.error("Error retrieving privileged keys: %s", e)
            return []
        return [entry.key for entry in entries]
