"""
Chat Session.

Wires the components for one chat: gateway, memory store, timeline, token
accountant, summarizer and event router. Every outer entry point (commands,
HTTP, host events) serializes on ``session.lock``; the components themselves
never take it.
"""

import asyncio
from typing import Optional

from agents.event_router import EventRouter
from agents.generation_gateway import GenerationGateway
from agents.summarizer_agent import SummarizerAgent
from config.settings import Settings, settings as default_settings
from core import get_logger
from memory.chat_log import ChatLog
from memory.memory_store import MemoryStore
from memory.named_store import JsonDirectoryStore, NamedStore, StoreWriter
from memory.timeline import TimelineManager
from memory.token_tracker import TokenAccountant
from schemas import TokenSavings
from utils.llm_client import LLMClient
from utils.token_counter import TokenCounter

logger = get_logger(__name__)


class ChatSession:
    """All summarization state for the currently open chat."""

    def __init__(
        self,
        chat_log: ChatLog,
        settings: Optional[Settings] = None,
        llm: Optional[LLMClient] = None,
        counter=None,
        named_store: Optional[NamedStore] = None,
    ):
        self.chat_log = chat_log
        self.settings = settings or default_settings
        self.llm = llm or LLMClient()
        self.counter = counter or TokenCounter(self.settings.TOKENIZER_MODEL)
        self.named_store = named_store or JsonDirectoryStore(self.settings.MEMORY_STORE_DIR)
        self.lock = asyncio.Lock()

        self.gateway = GenerationGateway(self.llm, chat_log, self.settings)
        self.writer = StoreWriter(self.named_store, self.settings, chat_log.character_name)
        self.memory_store = MemoryStore(chat_log, self.settings, self.gateway, self.writer)
        self.timeline = TimelineManager(chat_log)
        self.accountant = TokenAccountant(chat_log, self.settings, self.counter)
        self.summarizer = SummarizerAgent(
            chat_log,
            self.gateway,
            self.timeline,
            self.memory_store,
            self.settings,
            self.counter,
        )
        self.router = EventRouter(
            self.summarizer,
            self.memory_store,
            self.timeline,
            self.accountant,
            self.settings,
            lock=self.lock,
        )

    async def open(self) -> Optional[TokenSavings]:
        """Load per-chat state; call once after construction or after a chat switch."""
        logger.info(
            "Opening chat session",
            chat_id=self.chat_log.chat_id,
            message_count=len(self.chat_log),
        )
        return await self.router.chat_changed()

    def use_settings(self, settings: Settings) -> None:
        """
        Install a new settings object on every component.

        The tokenizer and named store stay as built; presets never carry
        TOKENIZER_MODEL or MEMORY_STORE_DIR.
        """
        self.settings = settings
        for component in (
            self.gateway,
            self.writer,
            self.memory_store,
            self.accountant,
            self.summarizer,
            self.router,
        ):
            component.settings = settings
        logger.info("Settings updated", model=settings.MODEL_SUMMARY)
