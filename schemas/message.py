"""Chat message and summary metadata schemas."""

from datetime import datetime
from typing import Optional

import pytz
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(pytz.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to UTC; naive datetimes are taken as UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


class SummaryMetadata(BaseModel):
    """Summary fields the core keeps on a chat message."""

    summary: Optional[str] = Field(default=None, description="Per-message summary")
    summarized_at: Optional[datetime] = Field(default=None, description="When the last summary was written")
    scene_end: bool = Field(default=False, description="Message closes a scene/chapter")
    scene_summary: Optional[str] = Field(default=None, description="Summary of the scene ending here")
    scene_start: Optional[int] = Field(default=None, ge=0, description="First message index of the scene")
    auto_hidden: bool = Field(
        default=False,
        description="Message was hidden from the AI context by Token Reducer, not by the user",
    )

    @field_validator("summarized_at")
    @classmethod
    def normalize_summarized_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def has_any(self) -> bool:
        """Whether any summary-related field is set."""
        return bool(
            self.summary
            or self.summarized_at
            or self.scene_end
            or self.scene_summary
            or self.scene_start is not None
        )

    def clear_message_summary(self) -> None:
        self.summary = None
        self.summarized_at = None

    def clear_scene(self) -> None:
        self.scene_end = False
        self.scene_summary = None
        self.scene_start = None
        if not self.summary:
            self.summarized_at = None


class ChatMessage(BaseModel):
    """
    One record of the host chat log.

    The host owns creation and deletion; the core only writes ``meta``
    and, through the host, visibility.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Author display name")
    text: str = Field(
        default="",
        validation_alias=AliasChoices("text", "mes"),
        description="Message body",
    )
    is_user: bool = Field(default=False, description="Authored by the user")
    is_system: bool = Field(default=False, description="Hidden from the AI context")
    meta: SummaryMetadata = Field(default_factory=SummaryMetadata)

    def as_line(self) -> str:
        """Render the message as '{author}: {body}'."""
        return f"{self.name}: {self.text}"
