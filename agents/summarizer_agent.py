"""
Summarization Orchestrator.

Decides what to summarize (one message, a scene range, batches), drives the
Generation Gateway and the Chunking Engine, writes results onto message
metadata and forwards them to the Timeline and the Memory Store.

Single-target operations return "" when generation fails so no partial
metadata is ever written. Batch operations run strictly sequentially: the
rate limiter is one shared timestamp and overlapping writes would corrupt
the scene watermark.
"""

from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from agents.chunking import summarize_large
from agents.generation_gateway import GenerationGateway
from config.settings import Settings
from core import (
    get_logger,
    EmptyRangeError,
    GenerationError,
    InvalidInputError,
    RangeError,
    TokenReducerException,
)
from memory.chat_log import ChatLog
from memory.memory_store import MemoryStore
from memory.timeline import TimelineManager
from prompts import TIMELINE_PLACEHOLDER, as_system_prompt, fill_prompt
from schemas import Arc, Chapter, MemoryType, utc_now
from utils.token_counter import count_tokens

logger = get_logger(__name__)

# Room left in the context window for the scene prompt itself
PROMPT_RESERVE_TOKENS = 500
MIN_AUTOFILL_INTERVAL = 5

MIN_ARC_MESSAGES = 5
ARC_WINDOW_MESSAGES = 100
ARC_MESSAGE_PREVIEW_LENGTH = 300

_arc_list = TypeAdapter(List[Arc])


def parse_arcs(reply: str) -> List[Arc]:
    """
    Read the arc list out of a model reply.

    The JSON array may sit inside a ``` fence and be wrapped in prose.

    Raises:
        GenerationError: No valid arc list in the reply
    """
    text = reply or ""
    if "```json" in text:
        text = text.split("```json", 1)[1].split("```", 1)[0]
    elif "```" in text:
        text = text.split("```")[1]

    start, end = text.find("["), text.rfind("]")
    if start != -1 and end > start:
        text = text[start:end + 1]

    try:
        return _arc_list.validate_json(text)
    except ValidationError as e:
        raise GenerationError("could not read story arcs from the reply", details=str(e))


class SummarizerAgent:
    """Summarization orchestrator for one chat session."""

    def __init__(
        self,
        chat_log: ChatLog,
        gateway: GenerationGateway,
        timeline: TimelineManager,
        memory_store: MemoryStore,
        settings: Settings,
        counter,
    ):
        self.chat_log = chat_log
        self.gateway = gateway
        self.timeline = timeline
        self.memory_store = memory_store
        self.settings = settings
        self.counter = counter

    # ==================== Accessors ====================

    def _message_or_none(self, index: int):
        if 0 <= index < len(self.chat_log):
            return self.chat_log[index]
        return None

    def get_message_summary(self, index: int) -> Optional[str]:
        message = self._message_or_none(index)
        return message.meta.summary if message else None

    def get_scene_summary(self, index: int) -> Optional[str]:
        message = self._message_or_none(index)
        return message.meta.scene_summary if message else None

    def is_message_summarized(self, index: int) -> bool:
        return bool(self.get_message_summary(index))

    def is_scene_end(self, index: int) -> bool:
        message = self._message_or_none(index)
        return bool(message and message.meta.scene_end)

    # ==================== Single message ====================

    async def summarize_message(self, index: int) -> str:
        """
        Summarize one message and record the result on it.

        Args:
            index: Message index

        Returns:
            The summary, or "" when nothing was generated

        Raises:
            RangeError: index is outside the chat
        """
        self.chat_log.check_index(index)
        message = self.chat_log[index]
        system_prompt = as_system_prompt(self.settings.SUMMARY_PROMPT)

        logger.info("Summarizing message", index=index)
        try:
            summary = await self.gateway.generate(message.as_line(), system_prompt)
        except GenerationError as e:
            logger.error("Message summarization failed", index=index, error=e.message)
            return ""

        if not summary:
            logger.warning("Empty message summary generated", index=index)
            return ""

        message.meta.summary = summary
        message.meta.summarized_at = utc_now()
        await self.chat_log.persist_chat()

        await self.memory_store.store(
            summary,
            MemoryType.MESSAGE,
            source_index=index,
            title=f"Message {index} Summary",
        )

        self._collapse_if_old(index)
        if self.settings.AUTO_HIDE_SUMMARIZED:
            await self.auto_hide_summarized()

        logger.info("Message summarized", index=index, summary_length=len(summary))
        return summary

    def _collapse_if_old(self, index: int) -> None:
        if not self.settings.COLLAPSE_SUMMARIZED:
            return
        messages_from_end = len(self.chat_log) - 1 - index
        if messages_from_end >= self.settings.KEEP_RECENT_COUNT:
            self.chat_log.collapse_message(index)

    async def edit_message_summary(self, index: int, summary: str) -> None:
        """Replace a message summary with user-supplied text."""
        self.chat_log.check_index(index)
        message = self.chat_log[index]
        message.meta.summary = summary
        message.meta.summarized_at = utc_now()
        await self.chat_log.persist_chat()
        self.memory_store.replace_summary(MemoryType.MESSAGE, index, summary)

    async def auto_hide_summarized(self, keep_recent: Optional[int] = None) -> int:
        """
        Hide the oldest summarized messages from the AI context.

        The most recent ``keep_recent`` summarized messages stay visible no
        matter how old they are. Re-running on the same state hides nothing.

        Returns:
            Number of messages newly hidden
        """
        keep = self.settings.KEEP_RECENT_COUNT if keep_recent is None else keep_recent
        summarized = [
            i for i, m in enumerate(self.chat_log)
            if m.meta.summary and not m.is_system
        ]

        hide_count = len(summarized) - keep
        if hide_count <= 0:
            logger.debug("Nothing to hide", summarized=len(summarized), keep=keep)
            return 0

        hidden = 0
        for index in summarized[:hide_count]:
            message = self.chat_log[index]
            await self.chat_log.hide_range(index, index)
            message.meta.auto_hidden = True
            hidden += 1

        if hidden:
            await self.chat_log.persist_chat()
            logger.info("Hid summarized messages", hidden=hidden, keep=keep)
        return hidden

    # ==================== Scenes ====================

    async def summarize_scene(self, start: int, end: int) -> str:
        """
        Summarize messages [start, end] into one chapter.

        Returns:
            The scene summary, or "" when nothing was generated

        Raises:
            RangeError: Bad or out-of-bounds range, or it overlaps a chapter
            EmptyRangeError: Every message in range is hidden
        """
        if start < 0 or end >= len(self.chat_log) or start > end:
            raise RangeError(f"{start}-{end} is not a valid range", start=start, end=end)

        overlap = self.timeline.find_overlap(start, end)
        if overlap:
            raise RangeError(
                f"{start}-{end} overlaps chapter "
                f"{overlap.start_message_index}-{overlap.end_message_index}",
                start=start,
                end=end,
            )

        lines = [m.as_line() for m in self.chat_log.messages[start:end + 1] if not m.is_system]
        if not lines:
            raise EmptyRangeError(start, end)

        content = "\n\n".join(lines)
        budget = self.settings.MODEL_CONTEXT_LIMIT - PROMPT_RESERVE_TOKENS
        system_prompt = as_system_prompt(self.settings.SCENE_SUMMARY_PROMPT)

        async def summarize_fn(text: str) -> str:
            return await self.gateway.generate(text, system_prompt)

        try:
            token_count = await count_tokens(self.counter, content)
            if token_count > budget:
                logger.info("Scene is large, summarizing in chunks", start=start, end=end, tokens=token_count)
                summary = await summarize_large(
                    lines,
                    budget,
                    summarize_fn,
                    self.counter,
                    max_passes=self.settings.MAX_CHUNK_PASSES,
                )
            else:
                logger.info("Summarizing scene", start=start, end=end, message_count=len(lines))
                summary = await summarize_fn(content)
        except GenerationError as e:
            logger.error("Scene summarization failed", start=start, end=end, error=e.message)
            return ""

        if not summary:
            logger.warning("Empty scene summary generated", start=start, end=end)
            return ""

        end_meta = self.chat_log[end].meta
        end_meta.scene_end = True
        end_meta.scene_summary = summary
        end_meta.scene_start = start
        end_meta.summarized_at = utc_now()

        if self.settings.HIDE_SUMMARIZED_SCENES:
            for i in range(start, end):
                message = self.chat_log[i]
                if not message.is_system:
                    await self.chat_log.hide_range(i, i)
                    message.meta.auto_hidden = True

        await self.chat_log.persist_chat()
        await self.timeline.add_chapter(summary, start, end)
        await self.memory_store.store(
            summary,
            MemoryType.SCENE,
            source_index=end,
            start_index=start,
            title=f"Scene Summary (Messages {start}-{end})",
        )

        logger.info("Scene summarized", start=start, end=end, message_count=len(lines))
        return summary

    async def end_scene(self, index: int) -> str:
        """Close a scene at index, starting right after the previous scene end."""
        self.chat_log.check_index(index)
        start = self.timeline.find_last_scene_end(index) + 1
        return await self.summarize_scene(start, index)

    async def edit_chapter(self, number: int, summary: str) -> bool:
        """Replace a chapter summary, keeping the scene-end message in step."""
        chapter = self.timeline.get_chapter(number)
        if chapter is None or not await self.timeline.update_chapter(number, summary):
            return False

        end_message = self._message_or_none(chapter.end_message_index)
        if end_message and end_message.meta.scene_end:
            end_message.meta.scene_summary = summary
            await self.chat_log.persist_chat()
        self.memory_store.replace_summary(
            MemoryType.SCENE,
            chapter.end_message_index,
            summary,
            start_index=chapter.start_message_index,
        )
        return True

    async def remove_chapter(self, number: int) -> Optional[Chapter]:
        """Remove a chapter and clear the scene metadata that backs it."""
        removed = await self.timeline.remove_chapter(number)
        if removed is None:
            return None

        end_message = self._message_or_none(removed.end_message_index)
        if end_message and end_message.meta.scene_end:
            end_message.meta.clear_scene()
            await self.chat_log.persist_chat()
        self.memory_store.discard(MemoryType.SCENE, removed.end_message_index)
        return removed

    # ==================== Story Arcs ====================

    async def analyze_arcs(self) -> List[Arc]:
        """
        Ask the model where the unchaptered tail of the chat breaks into story arcs.

        Only the last ARC_WINDOW_MESSAGES visible messages after the watermark
        are sent, each cut to ARC_MESSAGE_PREVIEW_LENGTH characters. Nothing
        is written; use create_chapter_from_arc() to act on a suggestion.

        Raises:
            InvalidInputError: Fewer than MIN_ARC_MESSAGES unchaptered messages
            GenerationError: The call failed or the reply held no arc list
        """
        start = self.timeline.watermark() + 1
        candidates = [
            (i, m) for i, m in enumerate(self.chat_log.messages[start:], start=start)
            if not m.is_system
        ]
        if len(candidates) < MIN_ARC_MESSAGES:
            raise InvalidInputError(
                "messages",
                f"need at least {MIN_ARC_MESSAGES} unchaptered messages to analyze, found {len(candidates)}",
            )

        history = "\n".join(
            f"[ID: {i}] {m.name}: {m.text[:ARC_MESSAGE_PREVIEW_LENGTH]}"
            for i, m in candidates[-ARC_WINDOW_MESSAGES:]
        )
        timeline = self.timeline.render_for_injection() or "(none yet)"
        prompt = fill_prompt(
            self.settings.ARC_ANALYZER_PROMPT.replace(TIMELINE_PLACEHOLDER, timeline),
            history,
        )

        logger.info("Analyzing story arcs", start=start, message_count=len(candidates))
        reply = await self.gateway.generate(prompt)
        arcs = parse_arcs(reply)
        logger.info("Story arcs analyzed", arc_count=len(arcs))
        return arcs

    async def create_chapter_from_arc(self, arc: Arc) -> str:
        """Close a chapter at the arc's end, starting right after the watermark."""
        start = self.timeline.watermark() + 1
        logger.info("Creating chapter from arc", title=arc.title, start=start, end=arc.chapter_end)
        return await self.summarize_scene(start, arc.chapter_end)

    # ==================== Batches ====================

    async def summarize_all_messages(self) -> int:
        """Summarize every visible message that has no summary yet, one at a time."""
        targets = [
            i for i, m in enumerate(self.chat_log)
            if not m.is_system and not m.meta.summary
        ]
        if not targets:
            logger.info("All messages already summarized")
            return 0

        logger.info("Summarizing messages", count=len(targets))
        summarized = 0
        for index in targets:
            try:
                if await self.summarize_message(index):
                    summarized += 1
            except TokenReducerException as e:
                logger.error("Failed to summarize message", index=index, error=e.message)

        logger.info("Batch summarization finished", summarized=summarized, attempted=len(targets))
        return summarized

    async def clear_all_summaries(self) -> int:
        """
        Strip summary metadata from every message.

        Messages this tool hid are shown again; messages the user hid stay
        hidden. The timeline and the memory cache are cleared with them.

        Returns:
            Number of messages that had at least one field removed
        """
        cleared = 0
        restored = 0
        for i, message in enumerate(self.chat_log):
            meta = message.meta
            if meta.has_any:
                meta.clear_message_summary()
                meta.clear_scene()
                cleared += 1
            if meta.auto_hidden:
                await self.chat_log.unhide_range(i, i)
                meta.auto_hidden = False
                restored += 1

        if self.timeline.count:
            await self.timeline.clear()
        self.memory_store.rebuild()

        if cleared or restored:
            await self.chat_log.persist_chat()
        logger.info("Cleared summaries", cleared=cleared, restored=restored)
        return cleared

    async def auto_fill_chapters(self, interval: int) -> int:
        """
        Create chapters of ``interval`` messages after the current watermark.

        A trailing remainder shorter than ``interval`` is left alone. A block
        that fails to summarize is retried one message later.

        Returns:
            Number of chapters created

        Raises:
            InvalidInputError: interval is below 5
        """
        if interval is None or interval < MIN_AUTOFILL_INTERVAL:
            raise InvalidInputError("interval", f"must be at least {MIN_AUTOFILL_INTERVAL} messages")

        created = 0
        block_start = self.timeline.watermark() + 1
        logger.info("Auto-filling chapters", interval=interval, start=block_start)

        while block_start < len(self.chat_log):
            block_end = block_start + interval - 1
            if block_end >= len(self.chat_log):
                break

            existing = self._scene_end_within(block_start, block_end)
            if existing is not None:
                block_start = existing + 1
                continue

            try:
                summary = await self.summarize_scene(block_start, block_end)
            except TokenReducerException as e:
                logger.error(
                    "Failed to auto-fill chapter",
                    start=block_start,
                    end=block_end,
                    error=e.message,
                )
                summary = ""

            if summary:
                created += 1
                block_start = block_end + 1
            else:
                block_start += 1

        logger.info("Auto-fill finished", created=created)
        return created

    def _scene_end_within(self, start: int, end: int) -> Optional[int]:
        for i in range(start, end + 1):
            if self.chat_log[i].meta.scene_end:
                return i
        return None

    async def summarize_oldest(self, limit: int = 1) -> List[int]:
        """Summarize up to ``limit`` of the oldest visible unsummarized messages."""
        done: List[int] = []
        for i, message in enumerate(self.chat_log):
            if len(done) >= limit:
                break
            if message.is_system or message.meta.summary:
                continue
            if not await self.summarize_message(i):
                # Generator is failing; try again on the next event
                break
            done.append(i)
        return done
