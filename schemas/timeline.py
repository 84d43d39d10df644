"""Chapter timeline schemas."""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Chapter(BaseModel):
    """A contiguous message range collapsed into one summary."""

    summary: str = Field(..., description="Chapter summary")
    start_message_index: int = Field(..., ge=0, description="First message index")
    end_message_index: int = Field(..., ge=0, description="Last message index (inclusive)")

    @model_validator(mode="after")
    def check_order(self) -> "Chapter":
        if self.start_message_index > self.end_message_index:
            raise ValueError("start_message_index must not exceed end_message_index")
        return self

    def overlaps(self, start: int, end: int) -> bool:
        """Whether this chapter claims any index in [start, end]."""
        return self.start_message_index <= end and start <= self.end_message_index


class Arc(BaseModel):
    """A story arc suggested by the arc analyzer; it can close a chapter at chapter_end."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(default="Untitled arc")
    summary: str = Field(default="")
    chapter_end: int = Field(..., ge=0, alias="chapterEnd", description="Message index where the arc ends")
    justification: str = Field(default="")
