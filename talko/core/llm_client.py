"""Thin async wrapper over the OpenAI SDK.

This module provides:
- AIClient: chat completions, text-to-speech, transcription, image generation
- get_ai_client: cached FastAPI dependency (override in tests)
- parse_json_response: JSON parsing that tolerates markdown code fences

Vendor errors surface as ExternalServiceError. There is no retry.
"""

import json
from functools import lru_cache

import openai
import structlog
from openai import AsyncOpenAI

from talko.core.config import get_settings
from talko.core.exceptions import ExternalServiceError

logger = structlog.get_logger(__name__)


def _strip_json_fences(content: str) -> str:
    """Remove markdown code fences wrapping JSON output."""
    content = content.strip()
    if content.startswith("```"):
        first_newline = content.find("\n")
        if first_newline != -1:
            content = content[first_newline + 1 :]
        if content.endswith("```"):
            content = content[:-3].rstrip()
    return content


def parse_json_response(content: str) -> dict | list:
    """Parse JSON from model output, stripping fences first."""
    return json.loads(_strip_json_fences(content))


class AIClient:
    """Feature-level calls against the vendor API."""

    def __init__(self, client: AsyncOpenAI):
        self._client = client
        self.settings = get_settings()

    async def chat(
        self,
        messages: list[dict],
        model: str | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str:
        """Return the first completion's text (empty string when absent)."""
        kwargs = {"model": model or self.settings.chat_model, "messages": messages}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.OpenAIError as exc:
            logger.error("llm_chat_failed", model=kwargs["model"], error=str(exc), error_type=type(exc).__name__)
            raise ExternalServiceError(f"Chat completion failed: {exc}") from exc

        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    async def complete(self, system: str, user: str, max_tokens: int | None = None, json_mode: bool = False) -> str:
        """Single system + user turn against the text model."""
        return await self.chat(
            [{"role": "system", "content": system}, {"role": "user", "content": user}],
            model=self.settings.text_model,
            max_tokens=max_tokens,
            json_mode=json_mode,
        )

    async def speech(self, text: str, voice: str | None = None) -> bytes:
        """Synthesize ``text`` and return the encoded MP3 bytes."""
        try:
            response = await self._client.audio.speech.create(
                model=self.settings.tts_model,
                voice=voice or self.settings.tts_voice,
                input=text,
            )
        except openai.OpenAIError as exc:
            logger.error("llm_speech_failed", error=str(exc), error_type=type(exc).__name__)
            raise ExternalServiceError(f"Speech generation failed: {exc}") from exc
        return response.content

    async def transcribe(self, filename: str, data: bytes) -> str:
        """Transcribe audio bytes. ``filename`` carries the format hint."""
        try:
            response = await self._client.audio.transcriptions.create(
                model=self.settings.stt_model,
                file=(filename, data),
            )
        except openai.OpenAIError as exc:
            logger.error("llm_transcribe_failed", filename=filename, error=str(exc), error_type=type(exc).__name__)
            raise ExternalServiceError(f"Failed to transcribe audio: {exc}") from exc
        return response.text

    async def generate_image(self, prompt: str, size: str = "1024x1024") -> str:
        """Generate one image and return its temporary vendor URL."""
        try:
            response = await self._client.images.generate(
                model=self.settings.image_model,
                prompt=prompt,
                n=1,
                size=size,
            )
        except openai.OpenAIError as exc:
            logger.error("llm_image_failed", error=str(exc), error_type=type(exc).__name__)
            raise ExternalServiceError(f"Image generation failed: {exc}") from exc

        url = response.data[0].url if response.data else None
        if not url:
            raise ExternalServiceError("No image URL returned from vendor")
        return url


@lru_cache
def get_ai_client() -> AIClient:
    """Create a cached AIClient bound to OPENAI_API_KEY."""
    settings = get_settings()
    return AIClient(AsyncOpenAI(api_key=settings.openai_api_key))
