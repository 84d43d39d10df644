"""
Pydantic schemas for type-safe data transfer.
"""

from schemas.message import ChatMessage, SummaryMetadata, utc_now
from schemas.memory import MemoryEntry, MemoryType, MemoryExportSchema
from schemas.timeline import Arc, Chapter
from schemas.token_usage import TokenBreakdownItem, TokenSavings
from schemas.preset import Preset

__all__ = [
    "ChatMessage",
    "SummaryMetadata",
    "utc_now",
    "MemoryEntry",
    "MemoryType",
    "MemoryExportSchema",
    "Chapter",
    "Arc",
    "TokenBreakdownItem",
    "TokenSavings",
    "Preset",
]
