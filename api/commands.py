"""
Text command surface.

CommandRouter turns a command line such as ``summarize 12`` or
``/tr-autofill 20`` into a call on the chat session and returns the text to
show the user. Errors come back as ``Error: <message>``; nothing raises past
dispatch().
"""

from typing import Awaitable, Callable, Dict, List, Optional

from agents.session import ChatSession
from config.presets import PresetStore
from core import get_logger, ConfigurationError, InvalidInputError, TokenReducerException
from schemas import Arc, MemoryEntry

logger = get_logger(__name__)

RETRIEVE_PREVIEW_LENGTH = 100
COMMAND_PREFIX = "tr-"

HELP_TEXT = """Token Reducer commands
summarize <id>            Summarize one message
scene-end <id>            Close a scene at message id and create a chapter
autofill <interval>       Create chapters every <interval> messages (min 5)
status                    Show token savings
retrieve [query]          Rank stored memories against a query
summarize-all             Summarize every unsummarized message
clear-summaries           Remove all summaries and chapters
timeline                  List chapters
chapter-edit <n> <text>   Replace the summary of chapter n
chapter-remove <n>        Delete chapter n
analyze                   Suggest chapter breaks for the unchaptered messages
analyze create <n>        Create a chapter from suggested arc n
export-memories           Export the memory cache as JSON
import-memories <json>    Merge exported memories
preset save|load|delete|export <name>
preset import <json>
preset list
help                      Show this text"""


def _parse_int(value: Optional[str], field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInputError(field, f"'{value}' is not a number")


def _preview(text: str, length: int) -> str:
    return text if len(text) <= length else text[:length] + "..."


def format_memories(memories: List[MemoryEntry]) -> str:
    """Numbered list of retrieved memories with short previews."""
    if not memories:
        return "No relevant memories found."
    lines = [f"Retrieved {len(memories)} memories:"]
    for n, memory in enumerate(memories, start=1):
        lines.append(f"{n}. [{memory.type.value}] {_preview(memory.summary, RETRIEVE_PREVIEW_LENGTH)}")
    return "\n".join(lines)


def format_arcs(arcs: List[Arc]) -> str:
    if not arcs:
        return "No story arcs detected."
    lines = [f"Found {len(arcs)} potential arcs:"]
    for n, arc in enumerate(arcs, start=1):
        lines.append(f"{n}. {arc.title} (ends at message {arc.chapter_end})")
        if arc.summary:
            lines.append(f"   {arc.summary}")
        if arc.justification:
            lines.append(f"   Analysis: {arc.justification}")
    lines.append("Use 'analyze create <n>' to turn an arc into a chapter.")
    return "\n".join(lines)


class CommandRouter:
    """Dispatches text commands to a ChatSession."""

    def __init__(self, session: ChatSession, preset_store: Optional[PresetStore] = None):
        self.session = session
        self.preset_store = preset_store
        self._arcs: List[Arc] = []
        self._handlers: Dict[str, Callable[[str], Awaitable[str]]] = {
            "summarize": self._summarize,
            "scene-end": self._scene_end,
            "autofill": self._autofill,
            "status": self._status,
            "retrieve": self._retrieve,
            "summarize-all": self._summarize_all,
            "clear-summaries": self._clear_summaries,
            "timeline": self._timeline,
            "chapter-edit": self._chapter_edit,
            "chapter-remove": self._chapter_remove,
            "analyze": self._analyze,
            "export-memories": self._export_memories,
            "import-memories": self._import_memories,
            "preset": self._preset,
        }

    async def dispatch(self, line: str) -> str:
        """Run one command line and return its output text."""
        name, _, args = (line or "").strip().partition(" ")
        name = name.lstrip("/").lower()
        if name.startswith(COMMAND_PREFIX):
            name = name[len(COMMAND_PREFIX):]
        args = args.strip()

        if not name or name == "help":
            return HELP_TEXT

        handler = self._handlers.get(name)
        if handler is None:
            return f"Error: unknown command '{name}'. Try 'help'."

        logger.info("Command received", command=name)
        try:
            async with self.session.lock:
                return await handler(args)
        except TokenReducerException as e:
            logger.warning("Command failed", command=name, error_code=e.error_code, error=e.message)
            return f"Error: {e.message}"
        except Exception as e:
            logger.error("Unexpected command error", command=name, error=str(e))
            return f"Error: {e}"

    # ==================== Summaries ====================

    async def _summarize(self, args: str) -> str:
        index = _parse_int(args or None, "message id")
        summary = await self.session.summarizer.summarize_message(index)
        if not summary:
            return f"Error: failed to summarize message {index}"
        return f"Message {index} summary:\n{summary}"

    async def _summarize_all(self, args: str) -> str:
        count = await self.session.summarizer.summarize_all_messages()
        return f"Summarized {count} messages"

    async def _clear_summaries(self, args: str) -> str:
        count = await self.session.summarizer.clear_all_summaries()
        self.session.router.refresh_timeline_injection()
        return f"Cleared summaries from {count} messages"

    # ==================== Scenes / Chapters ====================

    async def _scene_end(self, args: str) -> str:
        index = _parse_int(args or None, "message id")
        start = self.session.timeline.find_last_scene_end(index) + 1
        summary = await self.session.summarizer.end_scene(index)
        if not summary:
            return f"Error: failed to summarize scene ending at message {index}"
        self.session.router.refresh_timeline_injection()
        return f"Scene summarized (messages {start}-{index}):\n{summary}"

    async def _autofill(self, args: str) -> str:
        interval = _parse_int(args or None, "interval")
        created = await self.session.summarizer.auto_fill_chapters(interval)
        if created:
            self.session.router.refresh_timeline_injection()
        return f"Auto-fill complete: Created {created} chapters."

    async def _timeline(self, args: str) -> str:
        if not self.session.timeline.count:
            return "No chapters in the timeline yet."
        return self.session.timeline.render_list()

    async def _chapter_edit(self, args: str) -> str:
        number, _, text = args.partition(" ")
        number = _parse_int(number or None, "chapter number")
        text = text.strip()
        if not text:
            raise InvalidInputError("summary", "new chapter text is required")
        if not await self.session.summarizer.edit_chapter(number, text):
            return f"Error: chapter {number} not found"
        self.session.router.refresh_timeline_injection()
        return f"Chapter {number} updated"

    async def _chapter_remove(self, args: str) -> str:
        number = _parse_int(args or None, "chapter number")
        removed = await self.session.summarizer.remove_chapter(number)
        if removed is None:
            return f"Error: chapter {number} not found"
        self.session.router.refresh_timeline_injection()
        return (
            f"Chapter {number} removed "
            f"(messages {removed.start_message_index}-{removed.end_message_index})"
        )

    async def _analyze(self, args: str) -> str:
        action, _, arg = args.partition(" ")
        if not action:
            self._arcs = await self.session.summarizer.analyze_arcs()
            return format_arcs(self._arcs)
        if action.lower() != "create":
            raise InvalidInputError("analyze action", f"'{action}' is not 'create'")

        number = _parse_int(arg.strip() or None, "arc number")
        if not self._arcs:
            raise InvalidInputError("arc number", "no analysis yet, run 'analyze' first")
        if number < 1 or number > len(self._arcs):
            raise InvalidInputError("arc number", f"must be between 1 and {len(self._arcs)}")

        arc = self._arcs[number - 1]
        start = self.session.timeline.watermark() + 1
        summary = await self.session.summarizer.create_chapter_from_arc(arc)
        if not summary:
            return f"Error: failed to create a chapter from arc {number}"
        self.session.router.refresh_timeline_injection()
        return f"Chapter created: {arc.title} (messages {start}-{arc.chapter_end}):\n{summary}"

    # ==================== Tokens / Memories ====================

    async def _status(self, args: str) -> str:
        accountant = self.session.accountant
        return accountant.format_status(await accountant.total_savings())

    async def _retrieve(self, args: str) -> str:
        memories = await self.session.memory_store.retrieve(args or None)
        return format_memories(memories)

    async def _export_memories(self, args: str) -> str:
        return self.session.memory_store.export_json()

    async def _import_memories(self, args: str) -> str:
        if not args:
            raise InvalidInputError("data", "memory JSON is required")
        count = self.session.memory_store.import_json(args)
        return f"Imported {count} memories"

    # ==================== Presets ====================

    async def _preset(self, args: str) -> str:
        if self.preset_store is None:
            raise ConfigurationError("PRESETS_FILE", "no preset store configured")

        action, _, arg = args.partition(" ")
        action = action.lower()
        arg = arg.strip()
        store = self.preset_store

        if action == "list":
            presets = store.list()
            if not presets:
                return "No presets saved."
            return "\n".join(f"- {p.name} ({p.created_at:%Y-%m-%d})" for p in presets)

        if action not in ("save", "load", "delete", "export", "import"):
            raise InvalidInputError("preset action", f"'{action}' is not one of save, load, delete, export, import, list")
        if not arg:
            raise InvalidInputError("preset", f"'{action}' needs an argument")

        if action == "save":
            preset = store.save(arg, self.session.settings)
            return f"Preset '{preset.name}' saved"
        if action == "load":
            self.session.use_settings(store.load(arg, self.session.settings))
            self.session.router.refresh_timeline_injection()
            return f"Preset '{arg}' loaded"
        if action == "delete":
            store.delete(arg)
            return f"Preset '{arg}' deleted"
        if action == "export":
            return store.export(arg)
        preset = store.import_(arg)
        return f"Preset '{preset.name}' imported"
