"""
Chunking Engine.

Greedily packs ordered text units into token-bounded groups, summarizes each
group, then re-summarizes the joined group summaries until a single summary
remains. Re-summarization runs at most ``max_passes`` times; on the last
pass the combined text is cut down to the budget first, so the loop always
terminates. Cutting drops the newest group summaries, which loses detail;
callers with very long scenes should prefer smaller scenes over relying on it.
"""

from typing import Awaitable, Callable, List

from core import get_logger
from utils.token_counter import count_tokens

logger = get_logger(__name__)

UNIT_SEPARATOR = "\n\n"
SUMMARY_SEPARATOR = "\n\n---\n\n"

SummarizeFn = Callable[[str], Awaitable[str]]


async def pack_units(units: List[str], token_budget: int, counter) -> List[List[str]]:
    """
    Split units into consecutive groups whose token total stays within budget.

    A unit that alone exceeds the budget is placed in a group by itself;
    units are never split.
    """
    groups: List[List[str]] = []
    current: List[str] = []
    current_tokens = 0

    for unit in units:
        unit_tokens = await count_tokens(counter, unit)
        if current and current_tokens + unit_tokens > token_budget:
            groups.append(current)
            current = []
            current_tokens = 0
        current.append(unit)
        current_tokens += unit_tokens

    if current:
        groups.append(current)
    return groups


async def _fit_to_budget(summaries: List[str], token_budget: int, counter) -> List[str]:
    """Drop trailing summaries until the joined text fits the budget (keeps at least one)."""
    kept = list(summaries)
    while len(kept) > 1:
        joined = SUMMARY_SEPARATOR.join(kept)
        if await count_tokens(counter, joined) <= token_budget:
            break
        kept.pop()
    return kept


async def summarize_large(
    units: List[str],
    token_budget: int,
    summarize_fn: SummarizeFn,
    counter,
    max_passes: int = 3,
) -> str:
    """
    Summarize an oversized ordered list of text units.

    Args:
        units: Ordered text units (e.g. "{author}: {body}" lines)
        token_budget: Maximum tokens per group sent to summarize_fn
        summarize_fn: Async function producing a summary for a text
        counter: Sync or async token counting function
        max_passes: Maximum re-summarization passes over group summaries

    Returns:
        Final summary, or "" when no group produced output
    """
    groups = await pack_units(units, token_budget, counter)
    logger.info("Chunked content", unit_count=len(units), group_count=len(groups))

    summaries: List[str] = []
    for i, group in enumerate(groups, start=1):
        logger.debug("Summarizing chunk", chunk=i, total=len(groups))
        summary = await summarize_fn(UNIT_SEPARATOR.join(group))
        if summary:
            summaries.append(summary)

    passes = 0
    while len(summaries) > 1:
        passes += 1
        if passes >= max_passes:
            fitted = await _fit_to_budget(summaries, token_budget, counter)
            if len(fitted) < len(summaries):
                logger.warning(
                    "Chunk summaries truncated to fit budget",
                    dropped=len(summaries) - len(fitted),
                )
            return await summarize_fn(SUMMARY_SEPARATOR.join(fitted))

        # Regroup the summaries so each combining call also respects the budget
        regrouped = await pack_units(summaries, token_budget, counter)
        logger.debug("Combining chunk summaries", pass_number=passes, group_count=len(regrouped))
        next_summaries: List[str] = []
        for group in regrouped:
            combined = await summarize_fn(SUMMARY_SEPARATOR.join(group))
            if combined:
                next_summaries.append(combined)
        summaries = next_summaries

    return summaries[0] if summaries else ""
