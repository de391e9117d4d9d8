"""Session-scoped menu navigation.

Each session walks the catalog one message at a time. A message is matched
by case-insensitive substring: a category or option label must appear inside
the message. The first match in catalog order wins.
"""

import asyncio
import logging
import threading

from .catalog import default_catalog
from .models import (
    MenuCatalog,
    MenuContext,
    MenuNode,
    NavigationKind,
    NavigationResult,
    offered_options,
)

logger = logging.getLogger(__name__)

CANCEL_KEYWORDS = ("back", "cancel", "nevermind")

CANCELLED_MESSAGE = "No problem! Let me know if you need anything else."
FINAL_ITEM_MESSAGE = "*smiles* Coming right up!"
NO_OPTIONS_MESSAGE = "I'm sorry, there are no options available in this category."


def format_offer(options: list[str]) -> str:
    """Build the sentence listing what a category offers."""
    if not options:
        return NO_OPTIONS_MESSAGE
    if len(options) == 1:
        return f"Sure! We have {options[0]} available."
    if len(options) == 2:
        return f"Sure! We have {options[0]} and {options[1]} available."
    return f"Sure! We have {', '.join(options[:-1])} and {options[-1]} available."


class MenuContextStore:
    """Live menu contexts keyed by session, bounded in size.

    Expired contexts are dropped when read, by cleanup_expired(), and by the
    optional background sweep. When full, adding a new session evicts the
    context that was touched least recently.
    """

    def __init__(self, max_contexts: int = 10_000, cleanup_interval: float = 60) -> None:
        self.max_contexts = max_contexts
        self.cleanup_interval = cleanup_interval
        self._contexts: dict[str, MenuContext] = {}
        self._lock = threading.Lock()
        self._cleanup_task: asyncio.Task | None = None

    def get(self, session_id: str) -> MenuContext | None:
        """Get a live context, removing it if expired."""
        with self._lock:
            context = self._contexts.get(session_id)
            if context is None:
                return None
            if context.is_expired():
                self._contexts.pop(session_id, None)
                return None
            return context

    def put(self, session_id: str, context: MenuContext) -> None:
        """Store a context, evicting the stalest one if at capacity."""
        with self._lock:
            if session_id not in self._contexts and len(self._contexts) >= self.max_contexts:
                oldest = min(self._contexts, key=lambda s: self._contexts[s].last_interaction)
                self._contexts.pop(oldest, None)
                logger.debug("Evicted menu context for session %s", oldest)
            self._contexts[session_id] = context

    def clear(self, session_id: str) -> None:
        """Remove a session's context."""
        with self._lock:
            self._contexts.pop(session_id, None)

    def cleanup_expired(self) -> int:
        """Remove expired contexts. Returns count of removed contexts."""
        with self._lock:
            stale = [s for s, context in self._contexts.items() if context.is_expired()]
            for session_id in stale:
                self._contexts.pop(session_id, None)
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)

    async def _cleanup_loop(self) -> None:
        """Background task for periodic cleanup."""
        while True:
            try:
                await asyncio.sleep(self.cleanup_interval)
                removed = self.cleanup_expired()
                if removed:
                    logger.debug("Swept %d expired menu contexts", removed)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Menu context sweep failed")

    def start_cleanup_task(self) -> None:
        """Start the background cleanup task."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    def stop_cleanup_task(self) -> None:
        """Stop the background cleanup task."""
        if self._cleanup_task and not self._cleanup_task.done():
            self._cleanup_task.cancel()


class MenuNavigator:
    """State machine walking the menu catalog per session."""

    def __init__(
        self,
        catalog: MenuCatalog | None = None,
        contexts: MenuContextStore | None = None,
        timeout_seconds: float = 300,
    ) -> None:
        """Initialize the navigator.

        Args:
            catalog: Menu tree, the built-in catalog if None.
            contexts: Store for per-session state.
            timeout_seconds: Inactivity before a session's context expires.
        """
        self.catalog = catalog or default_catalog()
        self.contexts = contexts or MenuContextStore()
        self.timeout_seconds = timeout_seconds

    def has_context(self, session_id: str) -> bool:
        """Check if a session is currently inside a menu."""
        return self.contexts.get(session_id) is not None

    def mentions_category(self, message: str) -> bool:
        """Check if a message names a root category."""
        return self._find_root(message.lower().strip()) is not None

    def all_items(self) -> list[str]:
        """Every orderable item in the catalog."""
        return self.catalog.all_items()

    def navigate(self, message: str, session_id: str) -> NavigationResult:
        """Advance a session's menu state with one message.

        Args:
            message: The inbound chat message.
            session_id: The session whose state is advanced.

        Returns:
            The navigation outcome. NO_MATCH leaves state untouched.
        """
        text = message.lower().strip()

        if any(keyword in text for keyword in CANCEL_KEYWORDS):
            self.contexts.clear(session_id)
            return NavigationResult(kind=NavigationKind.CANCELLED, message=CANCELLED_MESSAGE)

        context = self.contexts.get(session_id)
        if context is None:
            root = self._find_root(text)
            if root is None:
                return NavigationResult(kind=NavigationKind.NO_MATCH)
            return self._enter(root, session_id)

        selected = next((opt for opt in context.options if opt.lower() in text), None)
        if selected is None:
            return NavigationResult(
                kind=NavigationKind.NO_MATCH, options=list(context.options)
            )

        path = f"{context.path}.{selected}"
        if self.catalog.find(path) is not None:
            return self._enter(path, session_id)

        self.contexts.clear(session_id)
        return NavigationResult(
            kind=NavigationKind.FINAL_ITEM,
            selected_item=selected,
            message=FINAL_ITEM_MESSAGE,
        )

    def _find_root(self, text: str) -> str | None:
        for name in self.catalog.categories:
            if name.lower() in text:
                return name
        return None

    def _enter(self, path: str, session_id: str) -> NavigationResult:
        node: MenuNode | None = self.catalog.find(path)
        options = offered_options(node) if node is not None else []

        self.contexts.put(
            session_id,
            MenuContext(path=path, options=options, timeout_seconds=self.timeout_seconds),
        )

        return NavigationResult(
            kind=NavigationKind.SHOW_OPTIONS,
            options=list(options),
            category_name=node.name if node is not None else path.rsplit(".", 1)[-1],
            message=format_offer(options),
        )
