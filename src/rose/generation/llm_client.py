"""Text-generation clients.

The engine talks to the model through the TextGenerator Protocol, so tests
and alternative providers can stand in for Groq.
"""

from typing import Any, Protocol

from groq import APIConnectionError, APIStatusError, AsyncGroq, GroqError

from ..errors import GenerationError


class TextGenerator(Protocol):
    """Anything that can turn a prompt and turns into reply text."""

    async def complete(
        self,
        system_prompt: str,
        turns: list[dict[str, str]],
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Return the reply text, raising GenerationError on failure."""
        ...


class GroqTextGenerator:
    """TextGenerator implementation that wraps AsyncGroq.

    Example:
        from groq import AsyncGroq
        from rose.generation import GroqTextGenerator

        generator = GroqTextGenerator(AsyncGroq(api_key="...", timeout=20))
        text = await generator.complete(
            "You are Rose...",
            [{"role": "user", "content": "Hi!"}],
            model="llama-3.1-70b-versatile",
            max_tokens=150,
            temperature=0.7,
        )
    """

    def __init__(self, client: AsyncGroq) -> None:
        """Initialize the Groq wrapper.

        Args:
            client: The AsyncGroq client instance to wrap.
        """
        self._client = client

    async def complete(
        self,
        system_prompt: str,
        turns: list[dict[str, str]],
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Run a chat completion and return the text response.

        Args:
            system_prompt: System prompt setting Rose's persona.
            turns: Alternating user/assistant messages, last one from the user.
            model: The model to use.
            max_tokens: Maximum output length.
            temperature: Sampling temperature.

        Returns:
            The reply text.

        Raises:
            GenerationError: If the API call fails or returns no text.
        """
        messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
        messages.extend(turns)

        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except APIStatusError as e:
            raise GenerationError(e.status_code, e.message) from e
        except APIConnectionError as e:
            raise GenerationError(None, str(e)) from e
        except GroqError as e:
            raise GenerationError(None, str(e)) from e

        if not response.choices:
            raise GenerationError(None, "response had no choices")

        content = response.choices[0].message.content
        if not content or not content.strip():
            raise GenerationError(None, "response had no content")
        return content
