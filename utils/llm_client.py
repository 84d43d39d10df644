"""
LLM Client using LiteLLM for multi-provider support.

Supports: OpenAI, Anthropic, Cohere, and 100+ other providers.
Switch providers by changing the model string.

Examples:
    - "gpt-4o-mini" (OpenAI)
    - "claude-3-5-haiku-20241022" (Anthropic)
    - "ollama/llama3" (local)
"""

from dataclasses import dataclass
from typing import List, Dict, Any

import litellm

from core import get_logger

logger = get_logger(__name__)

# Configure LiteLLM
litellm.set_verbose = False  # Set True for debugging


@dataclass
class LLMResponse:
    """Response from an LLM call, including content and token usage."""
    content: str
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class LLMClient:
    """
    Unified LLM client supporting multiple providers via LiteLLM.

    Usage:
        client = LLMClient()
        response = await client.chat("gpt-4o-mini", messages=[...], max_tokens=512)
    """

    def __init__(self):
        # LiteLLM picks up API keys from the environment
        # (OPENAI_API_KEY, ANTHROPIC_API_KEY, ...)
        logger.info("LLM client initialized")

    async def chat_with_usage(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        max_tokens: int = 1024,
        temperature: float = 0.3,
        **kwargs: Any,
    ) -> LLMResponse:
        """
        Generate a chat completion and return content + usage metadata.

        Args:
            model: Model identifier
            messages: Role-tagged message dicts
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature
            **kwargs: Additional parameters

        Returns:
            LLMResponse with generated text
        """
        logger.debug(
            "LLM request",
            model=model,
            message_count=len(messages),
            max_tokens=max_tokens,
        )

        try:
            response = await litellm.acompletion(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except Exception as e:
            logger.error("LLM request failed", model=model, error=str(e))
            raise

        content = response.choices[0].message.content or ""
        usage = response.usage

        logger.debug(
            "LLM response",
            model=model,
            total_tokens=usage.total_tokens if usage else None,
            response_length=len(content),
            finish_reason=response.choices[0].finish_reason,
        )

        return LLMResponse(
            content=content,
            model=model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            total_tokens=usage.total_tokens if usage else 0,
        )

    async def chat(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        max_tokens: int = 1024,
        **kwargs: Any,
    ) -> str:
        """Generate a chat completion and return only the text."""
        response = await self.chat_with_usage(model, messages, max_tokens=max_tokens, **kwargs)
        return response.content
