"""Text-generation provider client.

The extractor only depends on the ``CompletionClient`` protocol so tests can
substitute an in-process fake.
"""

from typing import Optional, Protocol

import structlog
from openai import AsyncOpenAI, OpenAIError

from auramail.config import Settings
from auramail.exceptions import AIExtractionError, ConfigurationError

logger = structlog.get_logger()


class CompletionClient(Protocol):
    """Anything that turns a system and a user prompt into response text."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int,
        temperature: float,
        json_mode: bool = True,
    ) -> str: ...


class OpenAICompletionClient:
    """Chat completion client for OpenAI-compatible APIs."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """Initialize the client.

        Args:
            settings: Application settings. If None, uses default settings.

        Raises:
            ConfigurationError: If no API key is configured.
        """
        from auramail.config import get_settings

        self.settings = settings or get_settings()
        if not self.settings.openai_api_key:
            raise ConfigurationError("AURAMAIL_OPENAI_API_KEY is not set")

        self.model = self.settings.openai_model
        self._client = AsyncOpenAI(
            api_key=self.settings.openai_api_key,
            base_url=self.settings.openai_base_url,
            timeout=self.settings.openai_timeout,
            max_retries=self.settings.openai_max_retries,
        )
        logger.info("openai_client_initialized", model=self.model)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int,
        temperature: float,
        json_mode: bool = True,
    ) -> str:
        """Run one chat completion and return the message text.

        Raises:
            AIExtractionError: If the provider call fails or returns no choices.
        """
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
                **kwargs,
            )
        except OpenAIError as e:
            raise AIExtractionError(f"Completion request failed: {e}") from e

        if not completion.choices:
            raise AIExtractionError("Completion returned no choices")
        return (completion.choices[0].message.content or "").strip()

    async def close(self) -> None:
        await self._client.close()


def build_completion_client(settings: Settings) -> Optional[OpenAICompletionClient]:
    """Return a provider client, or None when no API key is configured."""
    if not settings.openai_api_key:
        logger.warning("openai_api_key_missing", detail="AI extraction will use fallbacks")
        return None
    return OpenAICompletionClient(settings)
