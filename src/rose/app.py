"""Wiring: build a ready-to-use engine from configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from groq import AsyncGroq

from .config import RoseConfig
from .engine import ChatEngine
from .generation import GenerationConfig, GroqTextGenerator, ResponseGenerator, TextGenerator
from .history import ConversationHistory
from .identity import IdentityCache, IdentityResolver
from .logging import JSONLLogger
from .menu import MenuContextStore, MenuNavigator, load_catalog
from .messages import MessageQueue
from .postprocess import ResponseProcessor
from .storage import SQLiteStore

logger = logging.getLogger(__name__)


@dataclass
class Rose:
    """An engine together with the resources it owns."""

    engine: ChatEngine
    store: SQLiteStore
    menu_contexts: MenuContextStore
    identity_cache: IdentityCache
    config: RoseConfig

    def start(self) -> None:
        """Start background maintenance. Requires a running event loop."""
        self.menu_contexts.start_cleanup_task()
        self.identity_cache.start_prune_task()

    async def sweep_history(self) -> int:
        """Apply the exchange retention window."""
        return await self.engine.history.cleanup_older_than(self.config.retention_days)

    async def sweep_messages(self) -> int:
        """Delete owner messages delivered before the retention window."""
        if self.engine.messages is None:
            return 0
        return await self.engine.messages.cleanup_older_than(self.config.retention_days)

    def close(self) -> None:
        """Stop background tasks and close storage."""
        self.menu_contexts.stop_cleanup_task()
        self.identity_cache.stop_prune_task()
        self.store.close()


def build(
    config: RoseConfig,
    text_generator: TextGenerator | None = None,
    event_log: JSONLLogger | None = None,
) -> Rose:
    """Build an engine and its collaborators from configuration.

    Args:
        config: Loaded configuration.
        text_generator: Model client, a Groq client built from config if None.
        event_log: JSONL event log, one in config.log_dir if None.

    Returns:
        The assembled Rose instance. Call start() once inside the event loop.
    """
    assert config.db_path is not None
    store = SQLiteStore(config.db_path)
    store.init_db()

    if text_generator is None and config.api_key:
        text_generator = GroqTextGenerator(
            AsyncGroq(api_key=config.api_key, timeout=config.request_timeout)
        )
    if event_log is None:
        event_log = JSONLLogger(log_dir=config.log_dir)

    history = ConversationHistory(store, limit=config.history_limit)
    identity_cache = IdentityCache(
        ttl_seconds=config.identity_cache_ttl,
        prune_interval=config.identity_prune_interval,
    )
    identities = IdentityResolver(
        store,
        cache=identity_cache,
        privileged_keys=config.privileged_keys,
    )
    contexts = MenuContextStore(
        max_contexts=config.max_menu_contexts,
        cleanup_interval=config.menu_cleanup_interval,
    )
    navigator = MenuNavigator(
        load_catalog(config.menu_structure),
        contexts=contexts,
        timeout_seconds=config.menu_timeout,
    )
    generator = ResponseGenerator(
        text_generator,
        history,
        GenerationConfig(
            api_key=config.api_key,
            model=config.model,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            timeout=config.request_timeout,
            history_limit=config.history_limit,
        ),
        menu_items=navigator.all_items(),
        event_log=event_log,
    )

    if not config.api_key:
        logger.warning("GROQ_API_KEY not configured. Replies will use fallback text.")

    engine = ChatEngine(
        identities,
        history,
        navigator,
        generator,
        processor=ResponseProcessor(config.endearments),
        event_log=event_log,
        messages=MessageQueue(store),
    )
    return Rose(
        engine=engine,
        store=store,
        menu_contexts=contexts,
        identity_cache=identity_cache,
        config=config,
    )
