"""Text generation client used for vendor outreach and negotiation replies.

The rest of the system only relies on `generate(prompt) -> str`; callers are
responsible for interpreting the text and for falling back when it fails.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from openai import AsyncAzureOpenAI, OpenAIError

from agents.config import Settings
from services.exceptions import ExternalGenerationError

logger = logging.getLogger(__name__)


class TextGenerator(ABC):
    """Contract for natural-language generation backends."""

    @abstractmethod
    async def generate(self, prompt: str, system: Optional[str] = None) -> str:
        ...

    async def close(self) -> None:
        return None


class AzureOpenAITextGenerator(TextGenerator):
    """Chat-completions backed generator using Azure OpenAI."""

    def __init__(
        self,
        endpoint: Optional[str],
        api_key: Optional[str],
        deployment_name: str,
        api_version: str,
        temperature: float = 0.7,
    ):
        self.deployment_name = deployment_name
        self.temperature = temperature
        self._client: Optional[AsyncAzureOpenAI] = None

        if endpoint and api_key:
            self._client = AsyncAzureOpenAI(
                api_key=api_key,
                api_version=api_version,
                azure_endpoint=endpoint,
            )
            logger.info(f"✓ Chat client initialized: {deployment_name}")
        else:
            logger.warning("Azure OpenAI is not configured - generated text will use fallbacks")

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def generate(self, prompt: str, system: Optional[str] = None) -> str:
        if self._client is None:
            raise ExternalGenerationError("Azure OpenAI is not configured")

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self._client.chat.completions.create(
                model=self.deployment_name,
                messages=messages,
                temperature=self.temperature,
            )
        except OpenAIError as e:
            raise ExternalGenerationError(f"Generation request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise ExternalGenerationError("Generation returned no text")
        return content.strip()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()


def build_text_generator(settings: Settings) -> TextGenerator:
    return AzureOpenAITextGenerator(
        endpoint=settings.azure_openai_endpoint,
        api_key=settings.azure_openai_api_key,
        deployment_name=settings.azure_openai_deployment_name,
        api_version=settings.azure_openai_api_version,
        temperature=settings.generation_temperature,
    )
