"""
Tests for the host chat log and message schemas.
"""

import json
from datetime import datetime

import pytest
import pytz

from core import RangeError, StorageError
from memory.chat_log import ChatLog, JsonChatLog
from schemas import ChatMessage, SummaryMetadata


class TestChatMessage:

    def test_accepts_host_field_names(self):
        message = ChatMessage.model_validate({"name": "Aria", "mes": "Hello", "is_user": False})

        assert message.text == "Hello"
        assert message.as_line() == "Aria: Hello"
        assert not message.meta.has_any

    def test_naive_timestamps_become_utc(self):
        meta = SummaryMetadata(summary="s", summarized_at=datetime(2026, 2, 5, 14, 30))

        assert meta.summarized_at.tzinfo is not None
        assert meta.summarized_at.utcoffset().total_seconds() == 0

    def test_aware_timestamps_converted(self):
        toronto = pytz.timezone("America/Toronto")
        meta = SummaryMetadata(summarized_at=toronto.localize(datetime(2026, 2, 5, 9, 30)))

        assert meta.summarized_at.hour == 14

    def test_clear_scene_keeps_message_summary_time(self):
        meta = SummaryMetadata(
            summary="s",
            summarized_at=datetime(2026, 1, 1),
            scene_end=True,
            scene_summary="scene",
            scene_start=0,
        )

        meta.clear_scene()

        assert meta.summarized_at is not None
        assert not meta.scene_end and meta.scene_start is None


class TestChatLog:

    def test_check_index(self, chat_log):
        chat_log.check_index(0)
        with pytest.raises(RangeError):
            chat_log.check_index(10)

    async def test_hide_and_unhide(self, chat_log):
        await chat_log.hide_range(2, 4)
        assert [m.is_system for m in chat_log.messages[1:6]] == [False, True, True, True, False]

        await chat_log.unhide_range(3, 3)
        assert not chat_log[3].is_system

    def test_injections(self, chat_log):
        chat_log.set_injection("key", "text", depth=2, role=1)
        assert chat_log.injections["key"] == {"text": "text", "depth": 2, "role": 1}

        chat_log.set_injection("key", "")
        assert "key" not in chat_log.injections

    def test_invalid_record_rejected(self):
        with pytest.raises(ValueError):
            ChatLog([{"mes": "no author"}])


class TestJsonChatLog:

    @pytest.fixture
    def chat_file(self, tmp_path, build_messages):
        path = tmp_path / "chat.json"
        path.write_text(json.dumps({"character_name": "Aria", "messages": build_messages(4)}))
        return path

    def test_loads_file(self, chat_file):
        log = JsonChatLog(str(chat_file))

        assert len(log) == 4
        assert log.chat_id == "chat"
        assert log.character_name == "Aria"

    async def test_persists_summaries(self, chat_file):
        log = JsonChatLog(str(chat_file))
        log[1].meta.summary = "Aria replied."
        log.metadata["timeline"] = []

        await log.persist_chat()

        reloaded = JsonChatLog(str(chat_file))
        assert reloaded[1].meta.summary == "Aria replied."
        assert reloaded.metadata == {"timeline": []}

    def test_missing_file(self, tmp_path):
        with pytest.raises(StorageError):
            JsonChatLog(str(tmp_path / "nope.json"))

    def test_malformed_records(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"messages": [{"text": "no name"}]}))

        with pytest.raises(StorageError):
            JsonChatLog(str(path))
