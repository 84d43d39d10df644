"""
Token counting with tiktoken.

The encoder is resolved lazily so importing this module never touches the
network; unknown model names fall back to cl100k_base.
"""

import inspect
from functools import lru_cache

import tiktoken


@lru_cache(maxsize=8)
def _encoder_for(model: str) -> tiktoken.Encoding:
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding("cl100k_base")


class TokenCounter:
    """Callable that returns the token count of a piece of text."""

    def __init__(self, model: str = "gpt-4o-mini"):
        self.model = model

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(_encoder_for(self.model).encode(text))

    __call__ = count


async def count_tokens(counter, text: str) -> int:
    """Call a sync or async counting function and return an int."""
    result = counter(text)
    if inspect.isawaitable(result):
        result = await result
    return int(result)
