"""Speaker identity resolution and caching."""

from .cache import IdentityCache
from .resolver import IdentityResolver

__all__ = ["IdentityCache", "IdentityResolver"]
