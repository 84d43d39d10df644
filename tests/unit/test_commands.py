"""
Tests for the text command surface.
"""

import json

import pytest

from api.commands import HELP_TEXT, CommandRouter
from config.presets import PresetStore

ARC_REPLY = json.dumps([
    {"title": "Arrival", "summary": "They meet at the gate.", "chapterEnd": 6, "justification": "The scene moves indoors."},
])


@pytest.fixture
def router(session, tmp_path):
    return CommandRouter(session, PresetStore(str(tmp_path / "presets.json")))


class TestDispatch:

    async def test_help(self, router):
        assert await router.dispatch("help") == HELP_TEXT
        assert await router.dispatch("") == HELP_TEXT

    async def test_unknown_command(self, router):
        assert (await router.dispatch("explode")).startswith("Error: unknown command")

    async def test_prefixed_form(self, router, session):
        output = await router.dispatch("/tr-summarize 3")

        assert output == "Message 3 summary:\nA short summary."
        assert session.summarizer.is_message_summarized(3)

    @pytest.mark.parametrize("line", ["summarize", "summarize abc", "summarize 99", "summarize -1"])
    async def test_bad_message_id(self, router, line):
        assert (await router.dispatch(line)).startswith("Error:")

    async def test_generation_failure(self, router, mock_llm):
        mock_llm.chat.side_effect = RuntimeError("down")

        assert await router.dispatch("summarize 3") == "Error: failed to summarize message 3"

    async def test_unexpected_exception_becomes_text(self, router, session):
        session.accountant.total_savings = None

        assert (await router.dispatch("status")).startswith("Error:")


class TestSceneCommands:

    async def test_scene_end(self, router, session):
        output = await router.dispatch("scene-end 4")

        assert output.startswith("Scene summarized (messages 0-4):")
        assert session.timeline.count == 1

    async def test_autofill(self, make_session, build_messages):
        session = make_session(messages=build_messages(45))
        router = CommandRouter(session)

        assert await router.dispatch("autofill 20") == "Auto-fill complete: Created 2 chapters."

    async def test_autofill_interval_too_small(self, router):
        output = await router.dispatch("autofill 3")

        assert output.startswith("Error: Invalid input: interval")

    async def test_timeline(self, router):
        assert await router.dispatch("timeline") == "No chapters in the timeline yet."

        await router.dispatch("scene-end 4")

        assert (await router.dispatch("timeline")).startswith("Chapter 1 (Messages 0-4):")

    async def test_chapter_edit_and_remove(self, router, session):
        await router.dispatch("scene-end 4")
        await router.dispatch("scene-end 9")

        assert await router.dispatch("chapter-edit 2 The storm broke.") == "Chapter 2 updated"
        assert session.timeline.get_chapter(2).summary == "The storm broke."
        assert await router.dispatch("chapter-edit 5 nope") == "Error: chapter 5 not found"
        assert (await router.dispatch("chapter-edit 2")).startswith("Error:")

        assert await router.dispatch("chapter-remove 1") == "Chapter 1 removed (messages 0-4)"
        assert session.timeline.count == 1
        assert await router.dispatch("chapter-remove 3") == "Error: chapter 3 not found"

    async def test_overlapping_scene_error(self, router):
        await router.dispatch("scene-end 4")
        session = router.session
        session.chat_log[4].meta.scene_end = False  # the chapter is still there

        output = await router.dispatch("scene-end 6")

        assert output.startswith("Error: Invalid message range")

    async def test_analyze_lists_arcs(self, router, mock_llm):
        mock_llm.chat.return_value = ARC_REPLY

        output = await router.dispatch("analyze")

        assert output.startswith("Found 1 potential arcs:\n1. Arrival (ends at message 6)")
        assert "   They meet at the gate." in output
        assert "   Analysis: The scene moves indoors." in output

    async def test_analyze_nothing_found(self, router, mock_llm):
        mock_llm.chat.return_value = "[]"

        assert await router.dispatch("/tr-analyze") == "No story arcs detected."

    async def test_analyze_create(self, router, session, mock_llm):
        mock_llm.chat.return_value = ARC_REPLY
        await router.dispatch("analyze")
        mock_llm.chat.return_value = "They met at the gate."

        output = await router.dispatch("analyze create 1")

        assert output == "Chapter created: Arrival (messages 0-6):\nThey met at the gate."
        assert session.timeline.get_chapter(1).end_message_index == 6

    @pytest.mark.parametrize("line", ["analyze create 1", "analyze create x", "analyze rename"])
    async def test_analyze_create_errors(self, router, line):
        assert (await router.dispatch(line)).startswith("Error: Invalid input")

    async def test_analyze_create_out_of_range(self, router, mock_llm):
        mock_llm.chat.return_value = ARC_REPLY
        await router.dispatch("analyze")

        assert (await router.dispatch("analyze create 2")).startswith("Error: Invalid input: arc number")

    async def test_analyze_too_few_messages(self, router):
        await router.dispatch("scene-end 6")

        assert (await router.dispatch("analyze")).startswith("Error: Invalid input: messages")


class TestSummaryCommands:

    async def test_summarize_all_and_clear(self, router, session):
        assert await router.dispatch("summarize-all") == "Summarized 10 messages"

        assert await router.dispatch("clear-summaries") == "Cleared summaries from 10 messages"
        assert not any(session.summarizer.is_message_summarized(i) for i in range(10))

    async def test_status(self, router):
        output = await router.dispatch("status")

        assert output.startswith("Token Reducer Status")
        assert "Original Tokens: 80" in output


class TestMemoryCommands:

    async def test_retrieve(self, router, session):
        session.memory_store.add_custom("The dragon attacked the village at dawn")

        output = await router.dispatch("retrieve dragon attacked village")

        assert output == "Retrieved 1 memories:\n1. [custom] The dragon attacked the village at dawn"

    async def test_retrieve_preview_truncated(self, router, session):
        session.memory_store.add_custom("dragon " + "x" * 200)

        output = await router.dispatch("retrieve dragon")

        assert output.splitlines()[1].endswith("...")
        assert len(output.splitlines()[1]) == len("1. [custom] ") + 103

    async def test_retrieve_nothing(self, router):
        assert await router.dispatch("retrieve unicorn") == "No relevant memories found."

    async def test_export_import(self, router, session, make_session):
        await router.dispatch("summarize 1")
        exported = await router.dispatch("export-memories")
        assert json.loads(exported)["memories"][0]["source_message_index"] == 1

        other = CommandRouter(make_session())

        assert await other.dispatch(f"import-memories {exported}") == "Imported 1 memories"
        assert (await other.dispatch("import-memories {bad")).startswith("Error:")


class TestPresetCommands:

    async def test_save_list_load(self, router, session):
        assert await router.dispatch("preset list") == "No presets saved."

        session.settings.AUTO_SUMMARIZE = True
        assert await router.dispatch("preset save fast") == "Preset 'fast' saved"
        session.settings.AUTO_SUMMARIZE = False

        assert (await router.dispatch("preset list")).startswith("- fast (")
        assert await router.dispatch("preset load fast") == "Preset 'fast' loaded"
        assert session.settings.AUTO_SUMMARIZE is True
        assert session.summarizer.settings is session.settings
        assert session.router.settings is session.settings

    async def test_load_keeps_tokenizer_and_store_dir(self, router, session):
        before = (session.settings.TOKENIZER_MODEL, session.settings.MEMORY_STORE_DIR)
        preset = json.dumps({
            "name": "old",
            "settings": {"TOKENIZER_MODEL": "gpt-4", "MEMORY_STORE_DIR": "/elsewhere", "KEEP_RECENT_COUNT": 2},
        })
        await router.dispatch(f"preset import {preset}")

        assert await router.dispatch("preset load old") == "Preset 'old' loaded"
        assert session.settings.KEEP_RECENT_COUNT == 2
        assert (session.settings.TOKENIZER_MODEL, session.settings.MEMORY_STORE_DIR) == before

    async def test_export_import_delete(self, router):
        await router.dispatch("preset save p")
        exported = await router.dispatch("preset export p")

        assert await router.dispatch(f"preset import {exported}") == "Preset 'p (imported)' imported"
        assert await router.dispatch("preset delete p") == "Preset 'p' deleted"
        assert (await router.dispatch("preset load p")).startswith("Error:")

    async def test_bad_action(self, router):
        assert (await router.dispatch("preset rename p")).startswith("Error:")
        assert (await router.dispatch("preset save")).startswith("Error:")

    async def test_no_preset_store(self, session):
        router = CommandRouter(session)

        assert (await router.dispatch("preset list")).startswith("Error: Invalid configuration")
