"""
Tests for the lifecycle EventRouter state machine.
"""

import pytest
from unittest.mock import AsyncMock

from agents.event_router import TIMELINE_INJECT_KEY, RouterState, build_timeline_injection
from memory.memory_store import RETRIEVAL_INJECT_KEY


class TestSwipe:

    async def test_swipe_then_render_resummarizes(self, make_session, mock_llm):
        session = make_session(ENABLE_MESSAGE_SUMMARY=True)
        router = session.router

        router.message_swiped(3)
        assert router.state == RouterState.AWAITING_SWIPE_RESUMMARIZE
        assert router.pending_index == 3

        savings = await router.character_message_rendered(3)

        assert router.state == RouterState.IDLE
        assert session.summarizer.is_message_summarized(3)
        assert mock_llm.chat.await_count == 1
        assert savings.total_summaries == 1

    async def test_swipe_ignored_when_disabled(self, make_session, mock_llm):
        session = make_session(ENABLE_MESSAGE_SUMMARY=True, AUTO_SUMMARIZE_ON_SWIPE=False)
        router = session.router

        router.message_swiped(3)
        await router.character_message_rendered(3)

        mock_llm.chat.assert_not_awaited()
        assert router.state == RouterState.AWAITING_CONTINUE_RESUMMARIZE
        assert router.pending_index == 3

    async def test_swipe_on_other_message_falls_through(self, make_session, mock_llm):
        session = make_session(ENABLE_MESSAGE_SUMMARY=True)
        router = session.router

        router.message_swiped(3)
        await router.character_message_rendered(5)

        mock_llm.chat.assert_not_awaited()
        assert router.pending_index == 5


class TestContinue:

    async def test_second_render_of_summarized_message_resummarizes(self, make_session, mock_llm):
        session = make_session(ENABLE_MESSAGE_SUMMARY=True, AUTO_SUMMARIZE_ON_CONTINUE=True)
        router = session.router
        await session.summarizer.summarize_message(5)
        mock_llm.chat.reset_mock()

        await router.character_message_rendered(5)
        mock_llm.chat.assert_not_awaited()
        assert router.state == RouterState.AWAITING_CONTINUE_RESUMMARIZE

        mock_llm.chat.return_value = "Continued summary."
        await router.character_message_rendered(5)

        assert mock_llm.chat.await_count == 1
        assert session.summarizer.get_message_summary(5) == "Continued summary."
        assert router.pending_index == 5

    async def test_unsummarized_message_is_not_resummarized(self, make_session, mock_llm):
        session = make_session(ENABLE_MESSAGE_SUMMARY=True, AUTO_SUMMARIZE_ON_CONTINUE=True)

        await session.router.character_message_rendered(5)
        await session.router.character_message_rendered(5)

        mock_llm.chat.assert_not_awaited()


class TestRendered:

    async def test_auto_summarize_older_character_messages(self, make_session):
        session = make_session(ENABLE_MESSAGE_SUMMARY=True, AUTO_SUMMARIZE=True, SUMMARY_DELAY_MESSAGES=5)

        await session.router.character_message_rendered(9)

        summarized = [i for i in range(10) if session.summarizer.is_message_summarized(i)]
        assert summarized == [1, 3]

    async def test_auto_summarize_includes_user_when_enabled(self, make_session):
        session = make_session(
            ENABLE_MESSAGE_SUMMARY=True,
            AUTO_SUMMARIZE=True,
            AUTO_SUMMARIZE_USER=True,
            SUMMARY_DELAY_MESSAGES=5,
        )

        await session.router.character_message_rendered(9)

        summarized = [i for i in range(10) if session.summarizer.is_message_summarized(i)]
        assert summarized == [0, 1, 2, 3]

    async def test_auto_summarize_needs_message_summary_enabled(self, make_session, mock_llm):
        session = make_session(AUTO_SUMMARIZE=True)

        await session.router.character_message_rendered(9)

        mock_llm.chat.assert_not_awaited()

    async def test_auto_scene_at_interval(self, make_session):
        session = make_session(ENABLE_SCENE_MODE=True, AUTO_SCENE_INTERVAL=5, ENABLE_INJECTION=True)

        await session.router.character_message_rendered(3)
        assert session.timeline.count == 0

        await session.router.character_message_rendered(4)

        chapter = session.timeline.get_chapter(1)
        assert (chapter.start_message_index, chapter.end_message_index) == (0, 4)
        assert TIMELINE_INJECT_KEY in session.chat_log.injections

    async def test_auto_scene_counts_from_last_scene_end(self, make_session):
        session = make_session(ENABLE_SCENE_MODE=True, AUTO_SCENE_INTERVAL=5)
        await session.summarizer.summarize_scene(0, 4)

        await session.router.character_message_rendered(8)
        assert session.timeline.count == 1

        await session.router.character_message_rendered(9)
        assert session.timeline.get_chapter(2).start_message_index == 5

    async def test_threshold_summarizes_oldest_first(self, make_session, mock_llm):
        # 10 messages of 8 words; threshold is 5% of 1000 = 50 tokens
        session = make_session(
            ENABLE_THRESHOLD=True,
            REPLACE_WITH_SUMMARY=True,
            MODEL_CONTEXT_LIMIT=1000,
            TOKEN_THRESHOLD_PCT=5,
        )
        mock_llm.chat.return_value = "Short."

        savings = await session.router.character_message_rendered(9)

        summarized = [i for i in range(10) if session.summarizer.is_message_summarized(i)]
        assert summarized == [0, 1, 2, 3, 4]
        assert savings.current <= 50

    async def test_threshold_gives_up_when_generation_fails(self, make_session, mock_llm):
        session = make_session(
            ENABLE_THRESHOLD=True,
            REPLACE_WITH_SUMMARY=True,
            MODEL_CONTEXT_LIMIT=1000,
            TOKEN_THRESHOLD_PCT=5,
        )
        mock_llm.chat.side_effect = RuntimeError("down")

        savings = await session.router.character_message_rendered(9)

        assert savings.current == 80
        assert mock_llm.chat.await_count == 1

    async def test_returns_token_savings(self, session):
        savings = await session.router.character_message_rendered(9)

        assert savings.original == 80
        assert savings.saved == 0

    async def test_handler_never_raises(self, session):
        session.timeline.find_last_scene_end = None  # any call now fails
        session.settings.ENABLE_SCENE_MODE = True
        session.settings.AUTO_SCENE_INTERVAL = 5

        assert await session.router.character_message_rendered(9) is None


class TestOtherEvents:

    async def test_edit_resummarizes_summarized_message(self, make_session, mock_llm):
        session = make_session(ENABLE_MESSAGE_SUMMARY=True, AUTO_SUMMARIZE_ON_EDIT=True)
        await session.summarizer.summarize_message(2)
        mock_llm.chat.return_value = "After edit."

        await session.router.message_edited(2)
        await session.router.message_edited(3)

        assert session.summarizer.get_message_summary(2) == "After edit."
        assert not session.summarizer.is_message_summarized(3)

    async def test_edit_swallows_errors(self, make_session):
        session = make_session(ENABLE_MESSAGE_SUMMARY=True, AUTO_SUMMARIZE_ON_EDIT=True)
        session.chat_log[2].meta.summary = "old"
        session.summarizer.summarize_message = AsyncMock(side_effect=RuntimeError("boom"))

        await session.router.message_edited(2)

    async def test_chat_changed_reloads_state(self, make_session):
        metadata = {"timeline": [
            {"summary": "They met.", "start_message_index": 0, "end_message_index": 4},
        ]}
        session = make_session(metadata=metadata, ENABLE_INJECTION=True)
        session.chat_log[4].meta.scene_end = True
        session.chat_log[4].meta.scene_summary = "They met."
        session.router.message_swiped(2)

        savings = await session.router.chat_changed()

        assert session.router.state == RouterState.IDLE
        assert session.timeline.count == 1
        assert len(session.memory_store.entries) == 1
        injection = session.chat_log.injections[TIMELINE_INJECT_KEY]
        assert "Chapter 1 (Messages 0-4): They met." in injection["text"]
        assert savings.original == 80

    async def test_injection_cleared_when_disabled(self, make_session):
        metadata = {"timeline": [
            {"summary": "They met.", "start_message_index": 0, "end_message_index": 4},
        ]}
        session = make_session(metadata=metadata, ENABLE_INJECTION=True)
        await session.router.chat_changed()

        session.settings.ENABLE_INJECTION = False
        session.router.refresh_timeline_injection()

        assert TIMELINE_INJECT_KEY not in session.chat_log.injections

    async def test_generation_started_injects_memories(self, make_session):
        session = make_session(ENABLE_SMART_RETRIEVAL=True, RETRIEVAL_ON_SEND=True)
        session.memory_store.add_custom("User said message number eight matters")

        await session.router.generation_started()

        injection = session.chat_log.injections[RETRIEVAL_INJECT_KEY]
        assert injection["text"] == "[Memory: User said message number eight matters]"

    async def test_generation_started_disabled(self, session):
        session.memory_store.add_custom("User said message number eight matters")

        await session.router.generation_started()

        assert RETRIEVAL_INJECT_KEY not in session.chat_log.injections


class TestTimelineInjection:

    def test_empty_sections_dropped(self):
        template = "[Timeline]\n{{timeline}}\n\n[Recent]\n{{timelineResponses}}"

        result = build_timeline_injection(template, "Chapter 1 (Messages 0-4): Met.")

        assert result == "[Timeline]\nChapter 1 (Messages 0-4): Met."

    def test_no_timeline_no_prompt(self):
        assert build_timeline_injection("[Timeline]\n{{timeline}}", "") == ""
