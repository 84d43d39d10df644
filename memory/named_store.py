"""
Persisted-memory substrate.

A generic document store keyed by name; each document holds an ``entries``
mapping of uid -> entry (content, keys, metadata). JsonDirectoryStore keeps
one JSON file per name. StoreWriter turns summaries into entries.
"""

import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from config.settings import Settings
from core import get_logger, StorageError

logger = get_logger(__name__)

_UNSAFE_NAME_RE = re.compile(r'[/\\:*?"<>|]')
MEMORY_GROUP = "tr_memory"


class NamedStore(ABC):
    """Document store interface the core depends on."""

    @abstractmethod
    async def load(self, name: str) -> Optional[Dict[str, Any]]:
        """Return the document for name, or None when it does not exist."""

    @abstractmethod
    async def create(self, name: str) -> bool:
        """Create an empty document. Returns False when it already exists."""

    @abstractmethod
    async def save(self, name: str, data: Dict[str, Any]) -> None:
        """Overwrite the document for name."""

    @abstractmethod
    async def list_names(self) -> List[str]:
        """Names of all documents."""


class JsonDirectoryStore(NamedStore):
    """One ``<name>.json`` file per document under a directory."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _path(self, name: str) -> Path:
        return self.directory / f"{name}.json"

    async def load(self, name: str) -> Optional[Dict[str, Any]]:
        path = self._path(name)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageError(f"could not read store: {e}", store=name)
        if not isinstance(data, dict) or not isinstance(data.get("entries"), dict):
            raise StorageError("document has no entries mapping", store=name)
        return data

    async def create(self, name: str) -> bool:
        if self._path(name).exists():
            return False
        await self.save(name, {"entries": {}})
        return True

    async def save(self, name: str, data: Dict[str, Any]) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._path(name).write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"could not write store: {e}", store=name)

    async def list_names(self) -> List[str]:
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))


def sanitize_store_name(name: str) -> str:
    """Make a template-derived name safe to use as a file name."""
    name = _UNSAFE_NAME_RE.sub("_", name)
    name = re.sub(r"_{2,}", "_", name)
    return name[:60]


class StoreWriter:
    """Writes memory entries into the configured named store."""

    def __init__(self, store: NamedStore, settings: Settings, character_name: Optional[str] = None):
        self.store = store
        self.settings = settings
        self.character_name = character_name or "Unknown"

    def store_name(self) -> str:
        if self.settings.TARGET_MEMORY_STORE:
            return self.settings.TARGET_MEMORY_STORE
        template = self.settings.MEMORY_STORE_NAME_TEMPLATE
        return sanitize_store_name(template.replace("{{char}}", self.character_name))

    async def open(self) -> tuple[str, Dict[str, Any]]:
        """Load the target document, creating it when allowed."""
        name = self.store_name()
        data = await self.store.load(name)
        if data is not None:
            return name, data

        if not self.settings.AUTO_CREATE_MEMORY_STORE:
            raise StorageError("memory store does not exist and auto-create is disabled", store=name)

        await self.store.create(name)
        logger.info("Memory store created", store=name)
        data = await self.store.load(name)
        if data is None:
            raise StorageError("memory store could not be created", store=name)
        return name, data

    async def write(self, summary: str, keywords: List[str], title: str) -> Dict[str, Any]:
        """Append a memory entry and save the document."""
        name, data = await self.open()
        entries = data["entries"]
        uid = max((int(k) for k in entries.keys()), default=-1) + 1

        entry = {
            "uid": uid,
            "content": f"{self.settings.MEMORY_PREFIX}{summary}{self.settings.MEMORY_SUFFIX}",
            "comment": title,
            "key": list(keywords),
            "depth": self.settings.MEMORY_DEPTH,
            "role": self.settings.MEMORY_ROLE,
            "group": MEMORY_GROUP,
            "constant": False,
            "disable": False,
        }
        entries[str(uid)] = entry
        await self.store.save(name, data)
        logger.info("Memory entry stored", store=name, uid=uid, keyword_count=len(keywords))
        return entry
