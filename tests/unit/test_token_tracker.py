"""
Tests for the TokenAccountant.
"""

import pytest

from memory.token_tracker import TokenAccountant, percent


class TestPercent:

    @pytest.mark.parametrize("part,whole,expected", [
        (0, 0, 0),
        (5, 0, 0),
        (1, 3, 33),
        (1, 2, 50),
        (1, 8, 13),
        (2, 3, 67),
        (-1, 8, -12),
        (-1, 40, -2),
    ])
    def test_rounding(self, part, whole, expected):
        assert percent(part, whole) == expected


class TestTotals:

    async def test_no_summaries(self, session):
        savings = await session.accountant.total_savings()

        assert savings.original == 80
        assert savings.current == 80
        assert savings.saved == 0
        assert savings.saved_percent == 0

    async def test_empty_chat(self, make_session):
        session = make_session(messages=[])

        savings = await session.accountant.total_savings()

        assert savings.original == 0
        assert savings.saved_percent == 0
        assert savings.potential_percent == 0

    async def test_replacement_counts_summaries(self, make_session):
        session = make_session(REPLACE_WITH_SUMMARY=True)
        session.chat_log[0].meta.summary = "two words"
        session.chat_log[1].meta.summary = "three more words"

        savings = await session.accountant.total_savings()

        assert savings.current == 80 - 8 - 8 + 2 + 3
        assert savings.current == savings.original - savings.saved
        assert savings.saved_percent == percent(11, 80)
        assert savings.summarized_count == 2

    async def test_potential_when_replacement_off(self, session):
        session.chat_log[0].meta.summary = "two words"

        savings = await session.accountant.total_savings()

        assert savings.current == savings.original
        assert savings.potential_saved == 6
        assert savings.total_summaries == 1
        assert session.accountant.format_saved(savings) == "6 tokens potential (8%)"

    async def test_hidden_messages_not_counted(self, session):
        session.chat_log[0].is_system = True

        savings = await session.accountant.total_savings()

        assert savings.original == 72

    async def test_breakdown(self, session):
        session.chat_log[3].meta.summary = "short"

        items = await session.accountant.breakdown()

        assert len(items) == 10
        assert items[3].has_summary and items[3].summary_tokens == 1
        assert items[3].savings == 7
        assert items[0].name == "User" and items[0].is_user

    async def test_accepts_async_counter(self, session):
        async def counter(text: str) -> int:
            return len(text)

        accountant = TokenAccountant(session.chat_log, session.settings, counter)

        savings = await accountant.total_savings()

        assert savings.original == sum(len(m.text) for m in session.chat_log)


class TestThresholdAndDisplay:

    async def test_estimate_savings(self, session):
        item = await session.accountant.estimate_savings(0)

        assert item.tokens == 8
        assert item.summary_tokens == 2
        assert item.savings == 6

    async def test_over_threshold(self, make_session):
        session = make_session(MODEL_CONTEXT_LIMIT=1000, TOKEN_THRESHOLD_PCT=7)
        accountant = session.accountant

        assert accountant.threshold_tokens() == 70
        assert accountant.over_threshold(await accountant.total_savings())

    async def test_format_status(self, make_session):
        session = make_session(REPLACE_WITH_SUMMARY=True, AUTO_SUMMARIZE=True)
        session.chat_log[0].meta.summary = "two words"

        status = session.accountant.format_status(await session.accountant.total_savings())

        assert "Summarized Messages: 1" in status
        assert "Original Tokens: 80" in status
        assert "With Summaries: 74" in status
        assert "Tokens Saved: 6 tokens (8%)" in status
        assert "Auto-summarize: ON" in status
        assert "Replace with summary: ON" in status

    async def test_format_saved_without_summaries(self, session):
        savings = await session.accountant.total_savings()

        assert session.accountant.format_saved(savings) == "0 tokens (0%)"
