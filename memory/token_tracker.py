"""
Token Accounting Engine.

Computes original vs. effective token totals across the chat. "Effective"
counts a message as its summary when one exists and replace-with-summary is
on. The potential figures show what replacement would save without turning
it on.
"""

import math
from typing import List

from config.settings import Settings
from core import get_logger
from memory.chat_log import ChatLog
from schemas import TokenBreakdownItem, TokenSavings
from utils.token_counter import count_tokens

logger = get_logger(__name__)

# Rough size of a summary relative to its message, used for estimates only
ESTIMATED_SUMMARY_RATIO = 0.25


def _on_off(flag: bool) -> str:
    return "ON" if flag else "OFF"


def percent(part: int, whole: int) -> int:
    """round(100 * part / whole) with halves rounded up; 0 when whole is 0."""
    if whole == 0:
        return 0
    return math.floor(100 * part / whole + 0.5)


class TokenAccountant:
    """Token figures for one chat."""

    def __init__(self, chat_log: ChatLog, settings: Settings, counter):
        self.chat_log = chat_log
        self.settings = settings
        self.counter = counter

    async def breakdown(self) -> List[TokenBreakdownItem]:
        """Per-message token counts for every visible message."""
        items: List[TokenBreakdownItem] = []
        for i, message in enumerate(self.chat_log):
            if message.is_system:
                continue
            summary = message.meta.summary
            items.append(TokenBreakdownItem(
                index=i,
                name=message.name,
                is_user=message.is_user,
                tokens=await count_tokens(self.counter, message.text),
                has_summary=bool(summary),
                summary_tokens=await count_tokens(self.counter, summary) if summary else 0,
            ))
        return items

    async def total_savings(self) -> TokenSavings:
        items = await self.breakdown()
        replace = self.settings.REPLACE_WITH_SUMMARY

        original = 0
        current = 0
        summarized = 0
        for item in items:
            original += item.tokens
            if item.has_summary and replace:
                current += item.summary_tokens
                summarized += 1
            else:
                current += item.tokens

        saved = original - current
        potential = sum(item.savings for item in items)

        return TokenSavings(
            original=original,
            current=current,
            saved=saved,
            saved_percent=percent(saved, original),
            summarized_count=summarized,
            potential_saved=potential,
            potential_percent=percent(potential, original),
            total_summaries=sum(1 for item in items if item.has_summary),
        )

    async def estimate_savings(self, index: int) -> TokenBreakdownItem:
        """Estimate what summarizing one message would save."""
        self.chat_log.check_index(index)
        message = self.chat_log[index]
        tokens = await count_tokens(self.counter, message.text)
        return TokenBreakdownItem(
            index=index,
            name=message.name,
            is_user=message.is_user,
            tokens=tokens,
            has_summary=True,
            summary_tokens=math.ceil(tokens * ESTIMATED_SUMMARY_RATIO),
        )

    def threshold_tokens(self) -> int:
        return self.settings.MODEL_CONTEXT_LIMIT * self.settings.TOKEN_THRESHOLD_PCT // 100

    def over_threshold(self, savings: TokenSavings) -> bool:
        """Whether the effective total passes the configured share of the context window."""
        return savings.current > self.threshold_tokens()

    # ==================== Display ====================

    def format_saved(self, savings: TokenSavings) -> str:
        if self.settings.REPLACE_WITH_SUMMARY:
            return f"{savings.saved:,} tokens ({savings.saved_percent}%)"
        if savings.total_summaries > 0:
            return f"{savings.potential_saved:,} tokens potential ({savings.potential_percent}%)"
        return "0 tokens (0%)"

    def format_status(self, savings: TokenSavings) -> str:
        return "\n".join([
            "Token Reducer Status",
            "---------------------",
            f"Summarized Messages: {savings.total_summaries}",
            f"Original Tokens: {savings.original:,}",
            f"With Summaries: {savings.current:,}",
            f"Tokens Saved: {self.format_saved(savings)}",
            f"Chapters: {len(self.chat_log.metadata.get('timeline') or [])}",
            "---------------------",
            f"Auto-summarize: {_on_off(self.settings.AUTO_SUMMARIZE)}",
            f"Replace with summary: {_on_off(self.settings.REPLACE_WITH_SUMMARY)}",
        ])
