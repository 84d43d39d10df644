"""
Lifecycle Event Router.

Host events (message rendered, swiped, edited, chat changed, generation
started) arrive here and are turned into summarization work. Swipe and
continue re-summarization are tracked by a small explicit state machine:

    IDLE --swiped(i)--> AWAITING_SWIPE_RESUMMARIZE(i)
    AWAITING_SWIPE_RESUMMARIZE(i) --rendered(i)--> IDLE (re-summarize i)
    any --rendered(i), normal--> AWAITING_CONTINUE_RESUMMARIZE(i)
    AWAITING_CONTINUE_RESUMMARIZE(i) --rendered(i)--> same (re-summarize i)
    any --chat changed--> IDLE

Handlers never raise into the host; failures are logged.
"""

import asyncio
import re
from enum import Enum
from typing import Optional

from agents.summarizer_agent import SummarizerAgent
from config.settings import Settings
from core import get_logger, TokenReducerException
from memory.memory_store import MemoryStore
from memory.timeline import TimelineManager
from memory.token_tracker import TokenAccountant
from schemas import TokenSavings

logger = get_logger(__name__)

TIMELINE_INJECT_KEY = "tr_timeline_injection"

_EMPTY_SECTION_RE = re.compile(r"^\[[^\]\n]*\]\s*(?=^\[|\Z)", re.MULTILINE)


class RouterState(str, Enum):
    IDLE = "idle"
    AWAITING_SWIPE_RESUMMARIZE = "awaiting_swipe_resummarize"
    AWAITING_CONTINUE_RESUMMARIZE = "awaiting_continue_resummarize"


def build_timeline_injection(template: str, timeline_text: str) -> str:
    """Fill the injection template and drop section headers left without a body."""
    if not timeline_text:
        return ""
    prompt = template.replace("{{timeline}}", timeline_text)
    prompt = prompt.replace("{{timelineResponses}}", "")
    return _EMPTY_SECTION_RE.sub("", prompt.strip()).strip()


class EventRouter:
    """Turns host lifecycle events into summarization work."""

    def __init__(
        self,
        summarizer: SummarizerAgent,
        memory_store: MemoryStore,
        timeline: TimelineManager,
        accountant: TokenAccountant,
        settings: Settings,
        lock: Optional[asyncio.Lock] = None,
    ):
        self.summarizer = summarizer
        self.memory_store = memory_store
        self.timeline = timeline
        self.accountant = accountant
        self.settings = settings
        self.lock = lock or asyncio.Lock()
        self.state = RouterState.IDLE
        self.pending_index: Optional[int] = None

    @property
    def chat_log(self):
        return self.summarizer.chat_log

    def _transition(self, state: RouterState, index: Optional[int] = None) -> None:
        if state != self.state or index != self.pending_index:
            logger.debug("Router state change", state=state.value, index=index)
        self.state = state
        self.pending_index = index

    def _awaiting(self, state: RouterState, index: int) -> bool:
        return self.state == state and self.pending_index == index

    # ==================== Events ====================

    def message_swiped(self, index: int) -> None:
        self._transition(RouterState.AWAITING_SWIPE_RESUMMARIZE, index)

    async def character_message_rendered(self, index: int) -> Optional[TokenSavings]:
        """Handle a rendered character message. Returns fresh token figures."""
        async with self.lock:
            try:
                return await self._on_rendered(index)
            except Exception as e:
                logger.error("Error handling rendered message", index=index, error=str(e))
                return None

    async def message_edited(self, index: int) -> None:
        settings = self.settings
        if not (settings.ENABLE_MESSAGE_SUMMARY and settings.AUTO_SUMMARIZE_ON_EDIT):
            return
        async with self.lock:
            try:
                if self.summarizer.is_message_summarized(index):
                    logger.info("Message edited, re-summarizing", index=index)
                    await self.summarizer.summarize_message(index)
            except Exception as e:
                logger.error("Error re-summarizing edited message", index=index, error=str(e))

    async def chat_changed(self) -> Optional[TokenSavings]:
        """Reload per-chat state after the host switched chats."""
        async with self.lock:
            self._transition(RouterState.IDLE)
            try:
                self.memory_store.rebuild()
                self.timeline.load()
                self.refresh_timeline_injection()
                return await self.accountant.total_savings()
            except Exception as e:
                logger.error("Error on chat change", error=str(e))
                return None

    async def generation_started(self) -> None:
        settings = self.settings
        if not (settings.ENABLE_SMART_RETRIEVAL and settings.RETRIEVAL_ON_SEND):
            return
        async with self.lock:
            try:
                await self.memory_store.inject()
            except Exception as e:
                logger.error("Error injecting memories", error=str(e))

    # ==================== Handlers ====================

    async def _on_rendered(self, index: int) -> TokenSavings:
        settings = self.settings
        summarizing = settings.ENABLE_MESSAGE_SUMMARY

        if self._awaiting(RouterState.AWAITING_SWIPE_RESUMMARIZE, index):
            self._transition(RouterState.IDLE)
            if summarizing and settings.AUTO_SUMMARIZE_ON_SWIPE:
                logger.info("Swipe detected, re-summarizing", index=index)
                await self.summarizer.summarize_message(index)
                return await self.accountant.total_savings()

        if (
            self._awaiting(RouterState.AWAITING_CONTINUE_RESUMMARIZE, index)
            and summarizing
            and settings.AUTO_SUMMARIZE_ON_CONTINUE
            and self.summarizer.is_message_summarized(index)
        ):
            logger.info("Continue detected, re-summarizing", index=index)
            await self.summarizer.summarize_message(index)
            return await self.accountant.total_savings()

        self._transition(RouterState.AWAITING_CONTINUE_RESUMMARIZE, index)

        if settings.ENABLE_SCENE_MODE and settings.AUTO_SCENE_INTERVAL > 0:
            await self._maybe_create_scene(index)

        if summarizing and settings.AUTO_SUMMARIZE:
            await self._auto_summarize_old(index)

        savings = await self.accountant.total_savings()
        if settings.ENABLE_THRESHOLD and settings.REPLACE_WITH_SUMMARY:
            savings = await self._summarize_over_threshold(savings)
        return savings

    async def _maybe_create_scene(self, index: int) -> None:
        last_end = self.timeline.find_last_scene_end(index)
        count = index - last_end
        if count < self.settings.AUTO_SCENE_INTERVAL:
            return

        logger.info("Auto-scene interval reached", message_count=count)
        try:
            if await self.summarizer.summarize_scene(last_end + 1, index):
                self.refresh_timeline_injection()
        except TokenReducerException as e:
            logger.error("Error in auto-scene creation", index=index, error=e.message)

    async def _auto_summarize_old(self, index: int) -> None:
        oldest = min(index - self.settings.SUMMARY_DELAY_MESSAGES, len(self.chat_log))
        for i in range(max(oldest, 0)):
            message = self.chat_log[i]
            if message.meta.summary or message.is_system:
                continue
            if message.is_user and not self.settings.AUTO_SUMMARIZE_USER:
                continue

            logger.info("Auto-summarizing message", index=i, age=index - i)
            try:
                await self.summarizer.summarize_message(i)
            except TokenReducerException as e:
                logger.error("Failed to auto-summarize message", index=i, error=e.message)

    async def _summarize_over_threshold(self, savings: TokenSavings) -> TokenSavings:
        """Summarize oldest messages first until the effective total is under the threshold."""
        while self.accountant.over_threshold(savings):
            logger.info(
                "Token threshold exceeded",
                current=savings.current,
                threshold=self.accountant.threshold_tokens(),
            )
            if not await self.summarizer.summarize_oldest(limit=1):
                break
            savings = await self.accountant.total_savings()
        return savings

    # ==================== Injection ====================

    def refresh_timeline_injection(self) -> str:
        """Install (or clear) the timeline prompt on the host."""
        prompt = ""
        if self.settings.ENABLE_INJECTION:
            prompt = build_timeline_injection(
                self.settings.INJECTION_TEMPLATE,
                self.timeline.render_for_injection(),
            )

        self.chat_log.set_injection(
            TIMELINE_INJECT_KEY,
            prompt,
            depth=self.settings.INJECTION_DEPTH,
            role=self.settings.INJECTION_ROLE,
        )
        if prompt:
            logger.debug("Timeline injection updated", length=len(prompt))
        return prompt
