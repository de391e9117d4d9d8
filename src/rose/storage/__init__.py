"""Persistent storage for identities and exchanges."""

from .base import Store
from .models import ExchangeRecord, IdentityEntry, OwnerMessage, Role
from .sqlite import SQLiteStore

__all__ = [
    "ExchangeRecord",
    "IdentityEntry",
    "OwnerMessage",
    "Role",
    "SQLiteStore",
    "Store",
]
