"""
Generation Gateway - the single door to the text generator.

Every summarization call goes through generate(), which enforces a soft
rate limit (one shared "last call" timestamp, not a queue), builds the
role-tagged messages and cleans the model output.
"""

import asyncio
import re
import time
from typing import Callable, List, Optional

from config.settings import Settings
from core import get_logger, GenerationError
from memory.chat_log import ChatLog
from prompts import as_system_prompt, fill_prompt
from utils.llm_client import LLMClient

logger = get_logger(__name__)

MIN_DELAY_SECONDS = 0.5
MAX_KEYWORDS = 5

_REASONING_RE = re.compile(
    r"<(think|thinking|reasoning)>.*?</\1>",
    re.DOTALL | re.IGNORECASE,
)


def strip_reasoning(text: str) -> str:
    """Remove tagged chain-of-thought segments and surrounding whitespace."""
    return _REASONING_RE.sub("", text or "").strip()


class GenerationGateway:
    """Serializes calls to the external generator behind a soft rate limit."""

    def __init__(
        self,
        llm: LLMClient,
        chat_log: ChatLog,
        settings: Settings,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], "asyncio.Future"] = asyncio.sleep,
    ):
        self.llm = llm
        self.chat_log = chat_log
        self.settings = settings
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None

    @property
    def required_delay(self) -> float:
        """Seconds required between two calls."""
        return max(MIN_DELAY_SECONDS, 60.0 / self.settings.RATE_LIMIT)

    async def wait_for_rate_limit(self) -> None:
        if self._last_call is not None:
            delay = self.required_delay - (self._clock() - self._last_call)
            if delay > 0:
                logger.debug("Rate limit wait", delay=round(delay, 3))
                await self._sleep(delay)
        self._last_call = self._clock()

    async def generate(self, content: str, system_prompt: str = "") -> str:
        """
        Generate text for content under a system instruction.

        Args:
            content: Text sent as the user message
            system_prompt: Instructions sent as the system message (optional)

        Returns:
            Cleaned generated text (may be empty)

        Raises:
            GenerationError: No model configured, no active chat, or the call failed
        """
        model = self.settings.MODEL_SUMMARY
        if not model:
            raise GenerationError("no summarization model configured")
        if not self.chat_log.is_active:
            raise GenerationError("no active conversation")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": content})

        await self.wait_for_rate_limit()

        try:
            raw = await self.llm.chat(
                model=model,
                messages=messages,
                max_tokens=self.settings.MAX_SUMMARY_TOKENS,
            )
        except Exception as e:
            raise GenerationError("generator call failed", details=str(e)) from e

        result = strip_reasoning(raw)
        logger.debug("Generated text", model=model, preview=result[:100])
        return result

    async def generate_keywords(self, content: str) -> List[str]:
        """Ask the generator for up to five comma-separated keywords."""
        result = await self.generate(content, as_system_prompt(self.settings.KEYWORDS_PROMPT))
        keywords = [k.strip() for k in result.split(",")]
        return [k for k in keywords if k][:MAX_KEYWORDS]

    async def generate_retrieval_query(self, history: str) -> str:
        """Ask the generator for a short search query describing the recent history."""
        prompt = fill_prompt(self.settings.RETRIEVAL_QUERY_PROMPT, history)
        return await self.generate(prompt)
