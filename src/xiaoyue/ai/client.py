"""AI client abstraction with an Anthropic API backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import anthropic
import httpx

from xiaoyue.config import AnthropicConfig
from xiaoyue.errors import CompletionUnavailable
from xiaoyue.log import get_logger

logger = get_logger(__name__)


@dataclass
class AIResponse:
    """Unified response from any AI backend."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    raw: Any = None  # Backend-specific raw response


class AIClient(ABC):
    """Abstract base class for AI backends."""

    @abstractmethod
    async def chat(
        self,
        system: str,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> AIResponse:
        """Send a conversation to the model and return its text reply.

        ``messages`` is a list of ``{"role": "user"|"assistant", "content": str}``.
        Raises CompletionUnavailable on transport failure, timeout or a
        response that cannot be read.
        """
        ...

    async def close(self) -> None:
        return None


class AnthropicClient(AIClient):
    """Anthropic API backend using the official SDK."""

    def __init__(self, config: AnthropicConfig, http_client: httpx.AsyncClient | None = None):
        self._client = anthropic.AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.base_url,
            max_retries=config.max_retries,
            timeout=config.timeout,
            http_client=http_client,
        )

    async def chat(
        self,
        system: str,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> AIResponse:
        logger.debug("api_request", model=model, message_count=len(messages))
        try:
            response = await self._client.messages.create(
                model=model,
                max_tokens=max_tokens,
                system=system,
                messages=messages,
                temperature=temperature,
            )
        except anthropic.APITimeoutError as e:
            logger.error("api_timeout", model=model)
            raise CompletionUnavailable("Language model request timed out") from e
        except anthropic.APIError as e:
            logger.error("api_error", model=model, error=type(e).__name__)
            raise CompletionUnavailable(f"Language model request failed: {type(e).__name__}") from e

        content = getattr(response, "content", None)
        if not isinstance(content, list):
            raise CompletionUnavailable("Language model returned a malformed response")

        text = "".join(
            block.text for block in content if getattr(block, "type", None) == "text"
        ).strip()
        logger.debug(
            "api_response",
            model=model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )
        return AIResponse(
            text=text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            raw=response,
        )

    async def close(self) -> None:
        await self._client.close()
