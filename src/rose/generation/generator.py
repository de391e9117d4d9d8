"""Reply generation with graceful degradation."""

import asyncio
import logging
from dataclasses import dataclass

from ..errors import GenerationError
from ..history import ConversationHistory
from ..logging import JSONLLogger
from ..storage import ExchangeRecord, Role
from .llm_client import TextGenerator
from .prompts import (
    TRANSCRIPT_INSTRUCTION,
    build_system_prompt,
    fallback_reply,
    has_transcript,
)

logger = logging.getLogger(__name__)


@dataclass
class GenerationConfig:
    """Settings for the text-generation call."""

    api_key: str = ""
    model: str = "llama-3.1-70b-versatile"
    max_tokens: int = 150
    temperature: float = 0.7
    timeout: float = 20.0
    history_limit: int = 10


def build_turns(history: list[ExchangeRecord], message: str) -> list[dict[str, str]]:
    """Convert stored exchanges into user/assistant turns plus the new message."""
    turns: list[dict[str, str]] = []
    for record in history:
        turns.append({"role": "user", "content": record.message})
        turns.append({"role": "assistant", "content": record.reply})
    turns.append({"role": "user", "content": message})
    return turns


class ResponseGenerator:
    """Builds prompts, calls the model, and falls back on any failure."""

    def __init__(
        self,
        generator: TextGenerator | None,
        history: ConversationHistory,
        config: GenerationConfig | None = None,
        menu_items: list[str] | None = None,
        event_log: JSONLLogger | None = None,
    ) -> None:
        self.generator = generator
        self.history = history
        self.config = config or GenerationConfig()
        self.menu_items = menu_items
        self.event_log = event_log

    async def generate(
        self,
        message: str,
        identity_key: str,
        display_name: str,
        role: Role,
        personality_notes: str | None = None,
        favorite_drink: str | None = None,
        session_id: str | None = None,
        transcript: str | None = None,
    ) -> str:
        """Produce Rose's reply to a message.

        Never raises: a missing API key, a failed or timed-out call, or an
        empty reply all resolve to the role's fallback text.

        Args:
            message: The speaker's message.
            identity_key: The speaker's key, used for the history lookup.
            display_name: Name Rose addresses.
            role: The speaker's resolved role.
            personality_notes: Owner notes about the speaker.
            favorite_drink: The speaker's preference note.
            session_id: Conversation session for the history window.
            transcript: Caller-supplied dialogue; used instead of stored
                history when it carries the transcript marker.

        Returns:
            The raw reply text, action tags included.
        """
        if not self.config.api_key or self.generator is None:
            logger.warning("No API key configured, using fallback response")
            return self._fallback(role, session_id, "missing_api_key")

        try:
            use_transcript = has_transcript(transcript)
            system_prompt = build_system_prompt(
                role,
                display_name,
                personality_notes,
                favorite_drink,
                transcript=use_transcript,
                menu_items=self.menu_items,
            )

            if use_transcript:
                turns = [{"role": "user", "content": f"{transcript}{TRANSCRIPT_INSTRUCTION}"}]
            else:
                history = (
                    await self.history.recent(
                        identity_key, session_id, self.config.history_limit
                    )
                    if session_id
                    else []
                )
                turns = build_turns(history, message)

            reply = await asyncio.wait_for(
                self.generator.complete(
                    system_prompt,
                    turns,
                    model=self.config.model,
                    max_tokens=self.config.max_tokens,
                    temperature=self.config.temperature,
                ),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Text generation timed out after %.1fs", self.config.timeout)
            return self._fallback(role, session_id, "timeout")
        except GenerationError as e:
            logger.error("Text generation error: %s - %s", e.status_code, e.body)
            return self._fallback(role, session_id, f"status_{e.status_code}")
        except Exception as e:
            logger.error("Error calling text generation: %s", e)
            return self._fallback(role, session_id, type(e).__name__)

        if not reply or not reply.strip():
            logger.warning("Empty or invalid response from text generation")
            return self._fallback(role, session_id, "empty_reply")

        if self.event_log:
            self.event_log.log_generation(
                session_id=session_id,
                model=self.config.model,
                turns=len(turns),
                transcript_mode=use_transcript,
            )
        return reply

    def _fallback(self, role: Role, session_id: str | None, reason: str) -> str:
        if self.event_log:
            self.event_log.log_fallback(reason, session_id=session_id, role=role.value)
        return fallback_reply(role)
