"""
Timeline/Chapter Manager.

Chapters live in the chat metadata under ``timeline`` as an ordered list.
External chapter numbers are 1-based positions in that list. Index ranges
are immutable once created; removing a chapter shifts the numbers of later
chapters but never their ranges.

The watermark (the highest message index closing a scene) is always
recomputed from message metadata, never from the chapter list.
"""

import bisect
from typing import List, Optional

from pydantic import ValidationError

from core import get_logger, RangeError, StorageError
from memory.chat_log import ChatLog
from schemas import Chapter

logger = get_logger(__name__)

TIMELINE_KEY = "timeline"


class TimelineManager:
    """Ordered, non-overlapping list of chapters for one chat."""

    def __init__(self, chat_log: ChatLog):
        self.chat_log = chat_log
        self._chapters: List[Chapter] = []

    # ==================== Persistence ====================

    def load(self) -> List[Chapter]:
        """Load chapters from chat metadata."""
        raw = self.chat_log.metadata.get(TIMELINE_KEY) or []
        try:
            chapters = [Chapter.model_validate(c) for c in raw]
        except ValidationError as e:
            raise StorageError(f"malformed timeline: {e}")
        self._chapters = sorted(chapters, key=lambda c: c.start_message_index)
        logger.info("Timeline loaded", chapter_count=len(self._chapters))
        return self.chapters

    async def save(self) -> None:
        self.chat_log.metadata[TIMELINE_KEY] = [c.model_dump() for c in self._chapters]
        await self.chat_log.persist_metadata()
        logger.debug("Timeline saved", chapter_count=len(self._chapters))

    # ==================== Queries ====================

    @property
    def chapters(self) -> List[Chapter]:
        return [c.model_copy() for c in self._chapters]

    @property
    def count(self) -> int:
        return len(self._chapters)

    def get_chapter(self, number: int) -> Optional[Chapter]:
        """Chapter by 1-based number, or None."""
        if number < 1 or number > len(self._chapters):
            return None
        return self._chapters[number - 1].model_copy()

    def find_overlap(self, start: int, end: int) -> Optional[Chapter]:
        for chapter in self._chapters:
            if chapter.overlaps(start, end):
                return chapter
        return None

    def watermark(self) -> int:
        """Highest message index with scene_end set, or -1."""
        for i in range(len(self.chat_log) - 1, -1, -1):
            if self.chat_log[i].meta.scene_end:
                return i
        return -1

    def find_last_scene_end(self, before_index: int) -> int:
        """Nearest scene end strictly before before_index, or -1."""
        for i in range(min(before_index, len(self.chat_log)) - 1, -1, -1):
            if self.chat_log[i].meta.scene_end:
                return i
        return -1

    # ==================== Mutations ====================

    async def add_chapter(self, summary: str, start: int, end: int) -> int:
        """
        Insert a chapter in index order.

        Returns:
            The new chapter's 1-based number

        Raises:
            RangeError: The range overlaps an existing chapter
        """
        overlap = self.find_overlap(start, end)
        if overlap:
            raise RangeError(
                f"messages {start}-{end} overlap chapter "
                f"{overlap.start_message_index}-{overlap.end_message_index}",
                start=start,
                end=end,
            )

        chapter = Chapter(summary=summary, start_message_index=start, end_message_index=end)
        starts = [c.start_message_index for c in self._chapters]
        position = bisect.bisect_left(starts, start)
        self._chapters.insert(position, chapter)
        await self.save()
        logger.info("Chapter added", number=position + 1, start=start, end=end)
        return position + 1

    async def update_chapter(self, number: int, summary: str) -> bool:
        """Replace a chapter's summary text. Returns False for an unknown number."""
        if number < 1 or number > len(self._chapters):
            return False
        self._chapters[number - 1].summary = summary
        await self.save()
        logger.info("Chapter updated", number=number)
        return True

    async def remove_chapter(self, number: int) -> Optional[Chapter]:
        """Remove a chapter by number and return it, or None for an unknown number."""
        if number < 1 or number > len(self._chapters):
            return None
        removed = self._chapters.pop(number - 1)
        await self.save()
        logger.info(
            "Chapter removed",
            number=number,
            start=removed.start_message_index,
            end=removed.end_message_index,
        )
        return removed

    async def clear(self) -> int:
        cleared = len(self._chapters)
        self._chapters = []
        await self.save()
        return cleared

    # ==================== Rendering ====================

    def render_for_injection(self) -> str:
        return "\n\n".join(
            f"Chapter {n} (Messages {c.start_message_index}-{c.end_message_index}): {c.summary}"
            for n, c in enumerate(self._chapters, start=1)
        )

    def render_list(self, preview_length: int = 150) -> str:
        """Human-readable chapter list for the timeline command."""
        lines = []
        for n, c in enumerate(self._chapters, start=1):
            summary = c.summary
            if len(summary) > preview_length:
                summary = summary[:preview_length] + "..."
            lines.append(
                f"Chapter {n} (Messages {c.start_message_index}-{c.end_message_index}): {summary}"
            )
        return "\n\n".join(lines)
