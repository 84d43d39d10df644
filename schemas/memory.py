"""Memory entry schemas."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.message import ensure_utc, utc_now


class MemoryType(str, Enum):
    MESSAGE = "message"
    SCENE = "scene"
    CUSTOM = "custom"


class MemoryEntry(BaseModel):
    """A summary held in the in-process memory cache."""

    model_config = ConfigDict(use_enum_values=False)

    type: MemoryType = Field(default=MemoryType.CUSTOM, description="Where the memory came from")
    source_message_index: Optional[int] = Field(
        default=None,
        description="Message carrying the summary (scene end for scenes)",
    )
    start_message_index: Optional[int] = Field(default=None, description="Scene start index")
    summary: str = Field(..., description="Summary text")
    keywords: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class MemoryExportSchema(BaseModel):
    """Envelope for exported memories."""

    chat_id: Optional[str] = None
    character_name: Optional[str] = None
    exported_at: datetime = Field(default_factory=utc_now)
    memories: List[MemoryEntry] = Field(default_factory=list)
