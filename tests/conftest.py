"""
Shared pytest fixtures for Token Reducer tests.
"""

import pytest
from unittest.mock import AsyncMock

from config.settings import Settings


def word_counter(text: str) -> int:
    """Whitespace word count standing in for a real tokenizer."""
    return len(text.split())


def make_messages(count: int, text: str = None, character: str = "Aria"):
    """Alternating user / character host records, user first."""
    messages = []
    for i in range(count):
        is_user = i % 2 == 0
        messages.append({
            "name": "User" if is_user else character,
            "mes": text or f"This is message number {i} in the chat",
            "is_user": is_user,
        })
    return messages


# --- Settings ---

@pytest.fixture
def make_settings():
    """Build Settings without reading a .env file."""
    def _make(**overrides) -> Settings:
        values = {"MODEL_SUMMARY": "test-model", "RATE_LIMIT": 60}
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return _make


@pytest.fixture
def test_settings(make_settings):
    return make_settings()


# --- Mock LLM client ---

@pytest.fixture
def mock_llm():
    """Mock LLM client for testing without API calls."""
    llm = AsyncMock()
    llm.chat = AsyncMock(return_value="A short summary.")
    return llm


# --- Chat log ---

@pytest.fixture
def chat_log():
    from memory.chat_log import ChatLog

    return ChatLog(make_messages(10), chat_id="chat-1", character_name="Aria")


# --- Session ---

@pytest.fixture
def make_session(make_settings, mock_llm, tmp_path):
    """
    Build a ChatSession over an in-memory chat.

    The gateway never sleeps, the counter counts words and the named store
    lives under tmp_path.
    """
    from agents.session import ChatSession
    from memory.chat_log import ChatLog
    from memory.named_store import JsonDirectoryStore

    def _make(messages=None, metadata=None, **overrides):
        log = ChatLog(
            make_messages(10) if messages is None else messages,
            metadata=metadata,
            chat_id="chat-1",
            character_name="Aria",
        )
        session = ChatSession(
            log,
            settings=make_settings(**overrides),
            llm=mock_llm,
            counter=word_counter,
            named_store=JsonDirectoryStore(str(tmp_path / "stores")),
        )
        session.gateway._sleep = AsyncMock()
        return session
    return _make


@pytest.fixture
def session(make_session):
    return make_session()


@pytest.fixture
def build_messages():
    """Factory for host message records (see make_messages)."""
    return make_messages
