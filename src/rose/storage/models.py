"""Data models for persisted records."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Role(Enum):
    """Access tier of a speaker."""

    PRIVILEGED = "privileged"
    GUEST = "guest"
    BLOCKED = "blocked"


@dataclass
class IdentityEntry:
    """A known speaker.

    Attributes:
        key: Stable in-world identifier, unique per speaker.
        display_name: Name shown in chat, may change over time.
        role: Access tier.
        personality_notes: Free-text notes the owners keep about the speaker.
        favorite_drink: Preference note, e.g. a favourite drink.
        created_at: When the entry was first created.
        last_seen: Last contact that reached storage.
    """

    key: str
    display_name: str
    role: Role = Role.GUEST
    personality_notes: str | None = None
    favorite_drink: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    last_seen: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class ExchangeRecord:
    """One completed message/reply exchange.

    role_label is a snapshot taken at write time and is not used for access
    control.
    """

    identity_key: str
    display_name: str
    role_label: str
    message: str
    reply: str
    session_id: str
    timestamp: datetime = field(default_factory=utcnow)
    id: int | None = None


@dataclass
class OwnerMessage:
    """A message left for an owner, held until they collect it.

    Attributes:
        id: Unique message id.
        from_key: Sender's identity key.
        from_name: Sender's display name at the time of sending.
        to_key: Recipient owner's identity key.
        content: Message text.
        delivered: Whether the owner has collected it.
        created_at: When it was queued.
        delivered_at: When it was marked delivered.
    """

    from_key: str
    from_name: str
    to_key: str
    content: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    delivered: bool = False
    created_at: datetime = field(default_factory=utcnow)
    delivered_at: datetime | None = None
