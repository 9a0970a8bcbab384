"""
OpenAI chat-completions transport.

The SDK's own retries are disabled; the gateway owns pacing and retry.
SDK exceptions are mapped onto the discovery error taxonomy here.
"""

import json
from typing import Any

import openai
from openai import AsyncOpenAI

from app.config import settings
from app.features.event_discovery.domain.errors import (
    ConfigurationMissing,
    DiscoveryError,
    ParseFailed,
    RateLimited,
    ServerError,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class OpenAICompletionTransport:
    def __init__(self, client: AsyncOpenAI | None = None):
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not settings.OPENAI_API_KEY:
                raise ConfigurationMissing(["OPENAI_API_KEY"])
            self._client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.OPENAI_TIMEOUT_SECONDS,
                max_retries=0,
            )
        return self._client

    async def complete(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Issue one chat completion and return the decoded JSON object.

        With tools in the payload the first tool call's arguments are
        returned, otherwise the message content is parsed as JSON.
        """
        try:
            response = await self.client.chat.completions.create(**payload)
        except openai.RateLimitError as e:
            raise RateLimited(f"OpenAI rate limit: {e}") from e
        except openai.APITimeoutError as e:
            raise ServerError(f"OpenAI timeout: {e}") from e
        except openai.APIConnectionError as e:
            raise ServerError(f"OpenAI connection error: {e}") from e
        except openai.InternalServerError as e:
            raise ServerError(f"OpenAI server error: {e}") from e
        except openai.APIStatusError as e:
            logger.error("OpenAI request rejected", status_code=e.status_code, error=str(e))
            raise DiscoveryError(f"OpenAI request rejected: {e}", recoverable=False) from e

        if not response.choices:
            raise ParseFailed("Empty response from OpenAI API")

        message = response.choices[0].message
        if message.tool_calls:
            raw = message.tool_calls[0].function.arguments
        else:
            raw = message.content or ""

        logger.debug(
            "OpenAI call successful",
            model=payload.get("model"),
            response_length=len(raw),
            usage_tokens=response.usage.total_tokens if response.usage else 0,
        )

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ParseFailed(f"Completion was not valid JSON: {e}") from e

        if not isinstance(parsed, dict):
            raise ParseFailed("Completion JSON was not an object")
        return parsed

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
