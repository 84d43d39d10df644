"""
Memory Store & Retrieval.

An in-process cache of every summary produced for the current chat, rebuilt
from message metadata on chat change, plus a cheap lexical retrieval over it.
Retrieval is a keyword-overlap heuristic with a time-decay penalty, not
semantic search.
"""

import json
from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError

from config.settings import Settings
from core import get_logger, GenerationError, StorageError
from memory.chat_log import ChatLog
from memory.named_store import StoreWriter
from schemas import MemoryEntry, MemoryExportSchema, MemoryType, utc_now

logger = get_logger(__name__)

RETRIEVAL_INJECT_KEY = "tr_retrieval_injection"
MIN_QUERY_WORD_LENGTH = 3
DECAY_PER_DAY = 0.1
QUERY_HISTORY_MESSAGES = 10


class MemoryStore:
    """Session-scoped memory cache."""

    def __init__(
        self,
        chat_log: ChatLog,
        settings: Settings,
        gateway=None,
        writer: Optional[StoreWriter] = None,
    ):
        self.chat_log = chat_log
        self.settings = settings
        self.gateway = gateway
        self.writer = writer
        self._entries: List[MemoryEntry] = []

    @property
    def entries(self) -> List[MemoryEntry]:
        return list(self._entries)

    def rebuild(self) -> int:
        """Rebuild the cache from message metadata, keeping custom entries."""
        custom = [e for e in self._entries if e.type == MemoryType.CUSTOM]
        rebuilt: List[MemoryEntry] = []

        for i, message in enumerate(self.chat_log):
            meta = message.meta
            created_at = meta.summarized_at or utc_now()
            if meta.summary:
                rebuilt.append(MemoryEntry(
                    type=MemoryType.MESSAGE,
                    source_message_index=i,
                    summary=meta.summary,
                    created_at=created_at,
                ))
            if meta.scene_end and meta.scene_summary:
                rebuilt.append(MemoryEntry(
                    type=MemoryType.SCENE,
                    source_message_index=i,
                    start_message_index=meta.scene_start,
                    summary=meta.scene_summary,
                    created_at=created_at,
                ))

        self._entries = rebuilt + custom
        logger.info("Memory cache rebuilt", memory_count=len(self._entries), custom_count=len(custom))
        return len(self._entries)

    async def store(
        self,
        summary: str,
        memory_type: MemoryType = MemoryType.CUSTOM,
        source_index: Optional[int] = None,
        keywords: Optional[List[str]] = None,
        title: Optional[str] = None,
        start_index: Optional[int] = None,
    ) -> MemoryEntry:
        """
        Add a memory to the cache and, when configured, to the named store.

        Storage failures are logged; the cached memory is kept either way.
        """
        if memory_type != MemoryType.CUSTOM and source_index is not None:
            # A re-summarized message replaces its previous memory
            self._entries = [
                e for e in self._entries
                if not (e.type == memory_type and e.source_message_index == source_index)
            ]

        entry = MemoryEntry(
            type=memory_type,
            source_message_index=source_index,
            start_message_index=start_index,
            summary=summary,
            keywords=keywords or [],
        )
        self._entries.append(entry)

        if self.settings.writes_to_store and self.writer is not None:
            try:
                if not entry.keywords and self.gateway is not None:
                    entry.keywords = await self.gateway.generate_keywords(summary)
                await self.writer.write(
                    summary,
                    entry.keywords,
                    title or f"Memory - {entry.created_at:%Y-%m-%d %H:%M}",
                )
            except (StorageError, GenerationError) as e:
                logger.error("Failed to write memory to store", error=e.message)

        return entry

    def _find(self, memory_type: MemoryType, source_index: int) -> Optional[MemoryEntry]:
        for entry in self._entries:
            if entry.type == memory_type and entry.source_message_index == source_index:
                return entry
        return None

    def replace_summary(
        self,
        memory_type: MemoryType,
        source_index: int,
        summary: str,
        start_index: Optional[int] = None,
    ) -> MemoryEntry:
        """Rewrite one cached memory in place, adding it when missing. Other entries are untouched."""
        entry = self._find(memory_type, source_index)
        if entry is None:
            entry = MemoryEntry(
                type=memory_type,
                source_message_index=source_index,
                start_message_index=start_index,
                summary=summary,
            )
            self._entries.append(entry)
        else:
            entry.summary = summary
            entry.created_at = utc_now()
        return entry

    def discard(self, memory_type: MemoryType, source_index: int) -> bool:
        """Drop one cached memory. Returns whether anything was removed."""
        entry = self._find(memory_type, source_index)
        if entry is None:
            return False
        self._entries = [e for e in self._entries if e is not entry]
        return True

    def add_custom(self, summary: str, keywords: Optional[List[str]] = None) -> MemoryEntry:
        """Add an out-of-band memory with no backing message."""
        entry = MemoryEntry(type=MemoryType.CUSTOM, summary=summary, keywords=keywords or [])
        self._entries.append(entry)
        return entry

    def scene_summaries(self) -> List[str]:
        scenes = [e for e in self._entries if e.type == MemoryType.SCENE]
        scenes.sort(key=lambda e: e.source_message_index or 0)
        return [e.summary for e in scenes]

    # ==================== Retrieval ====================

    def last_user_message(self) -> Optional[str]:
        for message in reversed(self.chat_log.messages):
            if message.is_user and not message.is_system:
                return message.text
        return None

    async def _query_from_history(self) -> Optional[str]:
        history = "\n".join(m.as_line() for m in self.chat_log.messages[-QUERY_HISTORY_MESSAGES:])
        try:
            query = await self.gateway.generate_retrieval_query(history)
        except GenerationError as e:
            logger.warning("Retrieval query generation failed", error=e.message)
            return None
        if query:
            logger.debug("Generated retrieval query", query=query)
        return query or None

    @staticmethod
    def score(entry: MemoryEntry, query_words: List[str], now: datetime) -> float:
        summary_words = entry.summary.lower().split()
        score = 0.0
        for word in query_words:
            if len(word) < MIN_QUERY_WORD_LENGTH:
                continue
            if any(word in w for w in summary_words):
                score += 1

        age_days = (now - entry.created_at).total_seconds() / 86400
        return score - age_days * DECAY_PER_DAY

    async def retrieve(self, query: Optional[str] = None, now: Optional[datetime] = None) -> List[MemoryEntry]:
        """
        Rank cached memories against a query.

        Args:
            query: Query text. Defaults to a generated query (when LLM retrieval
                is enabled) or the most recent visible user message.
            now: Reference time for the decay penalty

        Returns:
            Up to MAX_RETRIEVED_MEMORIES entries with a positive score, best first
        """
        if not query and self.settings.ENABLE_LLM_RETRIEVAL and self.gateway is not None:
            query = await self._query_from_history()
        if not query:
            query = self.last_user_message()
        if not query:
            return []

        now = now or utc_now()
        query_words = query.lower().split()
        scored = [(self.score(e, query_words, now), e) for e in self._entries]
        ranked = sorted((s for s in scored if s[0] > 0), key=lambda s: s[0], reverse=True)
        return [e for _, e in ranked[: self.settings.MAX_RETRIEVED_MEMORIES]]

    @staticmethod
    def build_injection(memories: List[MemoryEntry]) -> str:
        return "\n".join(f"[Memory: {m.summary}]" for m in memories)

    async def inject(self) -> List[MemoryEntry]:
        """Retrieve memories for the current context and hand them to the host."""
        memories = await self.retrieve()
        if not memories:
            return []
        self.chat_log.set_injection(
            RETRIEVAL_INJECT_KEY,
            self.build_injection(memories),
            depth=self.settings.INJECTION_DEPTH,
            role=self.settings.INJECTION_ROLE,
        )
        logger.info("Injected memories", memory_count=len(memories))
        return memories

    # ==================== Export / Import ====================

    def export_json(self) -> str:
        export = MemoryExportSchema(
            chat_id=self.chat_log.chat_id,
            character_name=self.chat_log.character_name,
            memories=self._entries,
        )
        return export.model_dump_json(indent=2)

    def import_json(self, data: str) -> int:
        """Merge exported memories, skipping source indices already cached."""
        try:
            raw = json.loads(data)
            if not isinstance(raw, dict) or not isinstance(raw.get("memories"), list):
                raise StorageError("invalid memory data format")
            export = MemoryExportSchema.model_validate(raw)
        except (ValueError, ValidationError) as e:
            raise StorageError(f"invalid memory data format: {e}")

        existing = {e.source_message_index for e in self._entries if e.source_message_index is not None}
        imported = 0
        for memory in export.memories:
            if memory.source_message_index is not None and memory.source_message_index in existing:
                continue
            self._entries.append(memory)
            imported += 1

        logger.info("Imported memories", imported=imported, offered=len(export.memories))
        return imported
