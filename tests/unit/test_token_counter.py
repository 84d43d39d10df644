"""
Tests for token counting helpers.
"""

from utils.token_counter import TokenCounter, count_tokens


async def test_count_tokens_sync_counter():
    assert await count_tokens(lambda text: len(text.split()), "three little words") == 3


async def test_count_tokens_async_counter():
    async def counter(text):
        return 7.0

    assert await count_tokens(counter, "anything") == 7


def test_empty_text_is_zero():
    assert TokenCounter("gpt-4o-mini").count("") == 0
