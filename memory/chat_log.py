"""
Host chat log.

The host owns an ordered, index-addressed sequence of messages plus a chat
metadata mapping. ChatLog is the in-memory host used by sessions and tests;
JsonChatLog persists the same structure to a JSON file. Real hosts subclass
ChatLog and override the visibility, injection and persistence hooks.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from core import get_logger, RangeError, StorageError
from schemas import ChatMessage

logger = get_logger(__name__)


class ChatLog:
    """In-memory chat log with host hooks."""

    def __init__(
        self,
        messages: Optional[Iterable[Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        chat_id: Optional[str] = None,
        character_name: Optional[str] = None,
    ):
        # Host records are validated once, here
        self.messages: List[ChatMessage] = [
            m if isinstance(m, ChatMessage) else ChatMessage.model_validate(m)
            for m in (messages or [])
        ]
        self.metadata: Dict[str, Any] = metadata if metadata is not None else {}
        self.chat_id = chat_id
        self.character_name = character_name
        self.collapsed: set[int] = set()
        self.injections: Dict[str, Dict[str, Any]] = {}

    def __len__(self) -> int:
        return len(self.messages)

    def __getitem__(self, index: int) -> ChatMessage:
        return self.messages[index]

    def __iter__(self):
        return iter(self.messages)

    @property
    def is_active(self) -> bool:
        """A conversation is active when it holds at least one message."""
        return len(self.messages) > 0

    def check_index(self, index: int) -> None:
        if index < 0 or index >= len(self.messages):
            raise RangeError(f"message {index} does not exist", start=index, end=index)

    # ==================== Host hooks ====================

    async def hide_range(self, start: int, end: int) -> None:
        """Remove messages [start, end] from the AI-visible context."""
        for i in range(start, end + 1):
            self.messages[i].is_system = True

    async def unhide_range(self, start: int, end: int) -> None:
        for i in range(start, end + 1):
            self.messages[i].is_system = False

    def collapse_message(self, index: int) -> None:
        """Collapse a message for display. Visual only."""
        self.collapsed.add(index)

    def set_injection(self, key: str, text: str, depth: int = 0, role: int = 0) -> None:
        """Install (or clear, with empty text) an extension prompt."""
        if text:
            self.injections[key] = {"text": text, "depth": depth, "role": role}
        else:
            self.injections.pop(key, None)

    async def persist_chat(self) -> None:
        pass

    async def persist_metadata(self) -> None:
        pass

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chat_id": self.chat_id,
            "character_name": self.character_name,
            "metadata": self.metadata,
            "messages": [m.model_dump(mode="json") for m in self.messages],
        }


class JsonChatLog(ChatLog):
    """Chat log persisted to a single JSON file."""

    def __init__(self, path: str):
        self.path = Path(path)
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageError(f"could not read chat file: {e}", store=str(self.path))

        try:
            super().__init__(
                messages=raw.get("messages", []),
                metadata=raw.get("metadata") or {},
                chat_id=raw.get("chat_id") or self.path.stem,
                character_name=raw.get("character_name"),
            )
        except ValidationError as e:
            raise StorageError(f"malformed chat file: {e}", store=str(self.path))

        logger.info("Chat loaded", path=str(self.path), message_count=len(self.messages))

    async def _write(self) -> None:
        try:
            self.path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"could not write chat file: {e}", store=str(self.path))

    async def persist_chat(self) -> None:
        await self._write()

    async def persist_metadata(self) -> None:
        await self._write()
